import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from flask import current_app

logger = logging.getLogger(__name__)


class MailError(Exception):
    pass


def send_email(subject: str, body: str, to=None, bcc=None, html=False):
    """
    Sends one message using SMTP config from Flask current_app.config.
    Raises MailError on any delivery problem; callers decide whether to swallow it.
    Returns False without sending when mail is switched off.
    """
    config = current_app.config
    if not config.get("MAIL_ENABLED", True):
        logger.info("Mail disabled, skipping '%s'", subject)
        return False

    smtp_user = config.get("MAIL_USERNAME")
    smtp_pass = config.get("MAIL_PASSWORD")
    if not smtp_user or not smtp_pass:
        raise MailError("Mail credentials missing (MAIL_USERNAME / MAIL_PASSWORD)")

    to = list(to or [])
    bcc = list(bcc or [])
    if not to and not bcc:
        raise MailError("No recipients")

    msg = MIMEMultipart()
    msg["From"] = config.get("MAIL_FROM") or smtp_user
    if to:
        msg["To"] = ", ".join(to)
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "html" if html else "plain"))

    try:
        server = smtplib.SMTP(config.get("MAIL_SERVER", "smtp.gmail.com"), int(config.get("MAIL_PORT", 587)), timeout=50)
        try:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(smtp_user, smtp_pass)
            server.send_message(msg, to_addrs=to + bcc)
        finally:
            server.quit()
    except (smtplib.SMTPException, OSError) as e:
        raise MailError(str(e)) from e

    logger.info("Email '%s' sent to %d recipient(s)", subject, len(to) + len(bcc))
    return True


# --------------------------------
# Password reset
# --------------------------------
def send_reset_link(to_email: str, token: str, base_url: str, minutes: int):
    subject = "Password Reset Request"
    body = (
        "Hello,\n\n"
        "We received a request to reset your portal password.\n\n"
        f"Reset link: {base_url.rstrip('/')}/reset-password?token={token}\n\n"
        f"The link is valid for {minutes} minutes. If you did not ask for this, ignore this email.\n\n"
        "Regards,\n"
        "MCA Department\n"
    )
    return send_email(subject, body, to=[to_email])

import logging
import threading
from html import escape

from flask import current_app

from models.user import User
from utils.email_utils import send_email

logger = logging.getLogger(__name__)


def run_detached(app, target, *args, name="notification"):
    """
    Fire-and-forget: runs target inside an app context, never raises to the caller.
    Runs on a daemon thread unless NOTIFICATIONS_ASYNC is off (tests).
    """
    def runner():
        with app.app_context():
            try:
                target(*args)
            except Exception:
                logger.exception("Background task '%s' failed", name)

    if not app.config.get("NOTIFICATIONS_ASYNC", True):
        runner()
        return None

    thread = threading.Thread(target=runner, name=name, daemon=True)
    thread.start()
    return thread


def _broadcast_html(title, message, link=None):
    button = ""
    if link:
        button = (
            f'<a href="{escape(link)}" style="display:inline-block;background-color:#0070f3;color:white;'
            'padding:10px 20px;text-decoration:none;border-radius:5px;margin-top:15px;">View Details</a>'
        )
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: #333;">New Notification: {escape(title)}</h2>
        <p style="font-size: 16px; color: #555; line-height: 1.5;">{escape(message or '')}</p>
        {button}
        <hr style="margin-top: 30px; border: none; border-top: 1px solid #eee;" />
        <p style="font-size: 12px; color: #999;">MCA Department Notification System</p>
    </div>
    """


def send_broadcast(title, message, link=None):
    """Mails every active user (BCC) about new content."""
    emails = [u.email for u in User.query.filter_by(is_active=True).with_entities(User.email) if u.email]
    if not emails:
        logger.info("No users to broadcast '%s' to", title)
        return 0

    send_email(f"New MCA Notification: {title}", _broadcast_html(title, message, link), bcc=emails, html=True)
    logger.info("Broadcasted notification '%s' to %d users", title, len(emails))
    return len(emails)


def broadcast_information(title, description=None):
    """Announces a newly published information table without blocking the request."""
    app = current_app._get_current_object()
    link = f"{app.config.get('PORTAL_BASE_URL', '').rstrip('/')}/student/information"
    return run_detached(app, send_broadcast, title, description or "New information has been published.", link,
                        name="broadcast-information")

from flask import Blueprint, request, current_app, g

from models import db, utcnow
from models.user import User, STUDENT
from utils.audit_logger import log_action
from utils.auth_utils import Actor, generate_token
from utils.decorators import token_required
from utils.email_utils import send_reset_link
from utils.errors import ValidationError
from utils.notification_utils import run_detached
from utils.responses import ok, fail
from utils.validators import require_fields, require_json, normalize_email

auth_bp = Blueprint("auth", __name__)

MIN_PASSWORD_LENGTH = 8

# Same body whatever happened, so responses cannot be used to discover accounts
REGISTER_MESSAGE = "Registration received. If this email was not already registered, you can now log in."
FORGOT_MESSAGE = "If an account exists for this email, a password reset link has been sent."


def _check_password(password):
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


# -----------------------------
# 1️⃣ REGISTER (students)
# -----------------------------
@auth_bp.route("/register", methods=["POST"])
def register():
    data = require_json(request.get_json(silent=True))
    require_fields(data, ["name", "email", "password"])

    email = normalize_email(data.get("email"))
    if "@" not in email:
        raise ValidationError("A valid email is required")
    _check_password(data.get("password"))

    if not User.query.filter_by(email=email).first():
        user = User(name=str(data["name"]).strip(), email=email, role=STUDENT)
        user.set_password(data["password"])
        db.session.add(user)
        db.session.commit()
        log_action("USER_REGISTERED", "user", user.id, status_code=201, category="AUTH",
                   actor=Actor.from_user(user))
    else:
        current_app.logger.info("Registration attempt for existing account")

    return ok(REGISTER_MESSAGE, code=201)


# -----------------------------
# 2️⃣ LOGIN
# -----------------------------
@auth_bp.route("/login", methods=["POST"])
def login():
    data = require_json(request.get_json(silent=True))
    require_fields(data, ["email", "password"])

    user = User.query.filter_by(email=normalize_email(data.get("email"))).first()
    if not user or not user.is_active or not user.check_password(str(data.get("password"))):
        log_action("LOGIN_FAILED", "user", user.id if user else None, status_code=401,
                   level="WARN", category="AUTH")
        return fail("Invalid email or password", 401)

    token = generate_token(user.id, user.email, user.role)
    log_action("LOGIN", "user", user.id, category="AUTH", actor=Actor.from_user(user))
    return ok("Login successful", data={"token": token, "user": user.to_dict()})


# -----------------------------
# 3️⃣ CURRENT USER
# -----------------------------
@auth_bp.route("/me", methods=["GET"])
@token_required
def me():
    return ok("Profile fetched", data=g.user.to_dict())


# -----------------------------
# 4️⃣ FORGOT / RESET PASSWORD
# -----------------------------
@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))

    user = User.query.filter_by(email=email).first() if email else None
    if user and user.is_active:
        minutes = current_app.config.get("RESET_TOKEN_MINUTES", 15)
        token = user.generate_reset_token(minutes)
        db.session.commit()
        run_detached(
            current_app._get_current_object(), send_reset_link,
            user.email, token, current_app.config.get("PORTAL_BASE_URL", ""), minutes,
            name="reset-email",
        )
        log_action("PASSWORD_RESET_REQUESTED", "user", user.id, category="AUTH", actor=Actor.from_user(user))

    return ok(FORGOT_MESSAGE)


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    data = require_json(request.get_json(silent=True))
    require_fields(data, ["token", "password"])
    _check_password(data.get("password"))

    user = User.query.filter_by(reset_token=str(data["token"])).first()
    if not user or not user.reset_token_expiry or user.reset_token_expiry < utcnow():
        return fail("Invalid or expired reset token", 400)

    user.set_password(data["password"])
    user.clear_reset_token()
    db.session.commit()
    log_action("PASSWORD_RESET", "user", user.id, category="AUTH", actor=Actor.from_user(user))
    return ok("Password has been reset successfully")

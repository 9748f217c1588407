import logging

from flask import Flask
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from utils import middleware
from utils.errors import PortalError
from utils.responses import fail, from_error


def register_error_handlers(app):
    @app.errorhandler(PortalError)
    def handle_portal_error(err):
        db.session.rollback()
        if err.status_code >= 500:
            app.logger.error("Internal error: %s", err.message)
            return fail("An internal server error occurred", err.status_code)
        return from_error(err)

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return fail(err.description or err.name, err.code)

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        db.session.rollback()
        app.logger.exception("Unhandled error")
        return fail("An internal server error occurred", 500)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize Extensions
    CORS(app, resources={r"/api/*": {
        "origins": app.config.get("CORS_ORIGINS", "*"),
        "allow_headers": ["Content-Type", "Authorization", "X-Request-ID"],
        "methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    }})
    db.init_app(app)
    middleware.init_app(app)
    register_error_handlers(app)

    # Import Blueprints
    from information import information_bp, change_requests_bp
    from routes.auth import auth_bp
    from routes.audit_logs import audit_bp
    from routes.health import health_bp

    # Register Blueprints
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(information_bp, url_prefix="/api/tables")
    app.register_blueprint(change_requests_bp, url_prefix="/api/change-requests")
    app.register_blueprint(audit_bp, url_prefix="/api/admin")
    app.register_blueprint(health_bp, url_prefix="/api")

    @app.route("/")
    def home():
        return {
            "endpoints": {
                "auth": {
                    "register": "POST /api/auth/register",
                    "login": "POST /api/auth/login",
                    "me": "GET /api/auth/me",
                    "forgot_password": "POST /api/auth/forgot-password",
                    "reset_password": "POST /api/auth/reset-password",
                },
                "tables": {
                    "list": "GET /api/tables",
                    "create": "POST /api/tables",
                    "import": "POST /api/tables/import",
                    "update": "PUT /api/tables/<id>",
                    "delete": "DELETE /api/tables/<id>",
                    "rows": "GET /api/tables/<id>/rows",
                    "edit_row": "PUT /api/tables/<id>/rows/<row_id>",
                    "overwrite_row": "PATCH /api/tables/<id>/rows/<row_id>",
                    "delete_row": "DELETE /api/tables/<id>/rows?rowId=<row_id>",
                    "export": "GET /api/tables/<id>/export",
                },
                "change_requests": {
                    "queue": "GET /api/change-requests?status=pending",
                    "mine": "GET /api/change-requests/mine",
                    "approve": "POST /api/change-requests/<id>/approve",
                    "reject": "POST /api/change-requests/<id>/reject",
                },
                "admin": {"logs": "GET /api/admin/logs"},
            },
            "message": "Information Tables Portal API",
            "version": "1.0.0",
        }

    return app


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()

    app.run(debug=True, port=5000)

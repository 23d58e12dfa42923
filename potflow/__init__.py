from typing import Optional

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError, CSRFProtect

from potflow.config import Settings, load_settings
from potflow.db import init_engine
from potflow.logging_config import configure_logging

csrf = CSRFProtect()


def create_app(settings: Optional[Settings] = None):
    settings = settings or load_settings()
    app = Flask(__name__)
    app.config["SETTINGS"] = settings

    # Security configuration
    app.config["SECRET_KEY"] = settings.secret_key
    app.config["WTF_CSRF_TIME_LIMIT"] = 3600  # 1 hour
    app.config["WTF_CSRF_SSL_STRICT"] = False  # Set to True in production with HTTPS

    # Session security configuration
    app.config["SESSION_COOKIE_SECURE"] = settings.app_url.startswith("https://")
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"

    from potflow.api.routes import api_bp, run_automations
    from potflow.auth.routes import auth_bp

    # Session-authenticated writes send the token from /api/csrf-token as X-CSRFToken.
    # The cron trigger authenticates with its shared secret instead.
    csrf.init_app(app)
    csrf.exempt(run_automations)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        return jsonify({"error": e.description}), 400

    configure_logging()
    init_engine(settings.database_url)

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/auth")

    return app

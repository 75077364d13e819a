from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from .gateway import ConnectionGateway
from models import storage  # DBStorage singleton (scoped_session)
from services.authenticator import RequestAuthenticator
from services.maintenance import start_scheduler
from services.refresh_sessions import RefreshSessionStore
from services.revocation import build_revocation_registry
from services.session_service import SessionService
from utils.security import TokenCodec

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Chat Auth API",
        "version": "1.0.0",
        "description": "Sign-up, login, token refresh and logout for the chat backend.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def init_auth(app: Flask) -> dict:
    """Build the auth components once per app and park them on app.extensions."""
    codec = TokenCodec.from_config(app.config)
    registry = build_revocation_registry(app.config, codec)
    refresh_sessions = RefreshSessionStore(expires_in=app.config["REFRESH_TOKEN_EXPIRES"])
    authenticator = RequestAuthenticator(codec, registry)
    components = {
        "codec": codec,
        "registry": registry,
        "refresh_sessions": refresh_sessions,
        "authenticator": authenticator,
        "session_service": SessionService(codec, registry, refresh_sessions),
        "gateway": ConnectionGateway(authenticator),
        "scheduler": None,
    }
    if app.config.get("START_SCHEDULER"):
        components["scheduler"] = start_scheduler(
            registry,
            refresh_sessions,
            blacklist_interval=app.config["BLACKLIST_SWEEP_INTERVAL_SECONDS"],
            refresh_interval=app.config["REFRESH_SWEEP_INTERVAL_SECONDS"],
        )
    app.extensions["auth"] = components
    return components


def create_app(config_name: str | None = None, **overrides) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    `overrides` are applied on top of the selected config (handy in tests).
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    app.config.update(overrides)

    # Cookies carry credentials, so CORS must allow them
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
         supports_credentials=True)

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    storage.reload(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))
    init_auth(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    prefix = app.config["API_PREFIX"].rstrip("/")
    app.register_blueprint(health_bp, url_prefix=prefix)
    app.register_blueprint(auth_bp, url_prefix=f"{prefix}/auth")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Chat Auth API",
            "docs": "/apidocs/",
            "health": f"{prefix}/health",
        }, 200

    return app

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from security.mailer import mailer_from_config
from security.reset import ResetChallenges
from security.session_store import SessionStore
from security.tokens import TokenIssuer
from utils.log import configure_logging

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Library Catalogue API",
        "version": "1.0.0",
        "description": "Accounts, sessions and credential lifecycle for the library catalogue.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
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


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    `overrides` is applied on top of the selected config class (tests use it
    to point at a throwaway database or swap the mailer).
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    configure_logging(app.config.get("LOG_LEVEL"))

    # Credentials travel in a cookie, so CORS must allow credentials
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    # Storage and session core
    storage.connect(app.config["DATABASE_URL"], timeout=app.config["STORE_TIMEOUT_SECONDS"])
    storage.reload()
    session_store = SessionStore(storage)
    # Refuses equal access/refresh secrets
    app.extensions["token_issuer"] = TokenIssuer.from_config(app.config)
    app.extensions["session_store"] = session_store
    app.extensions["reset_challenges"] = ResetChallenges(
        session_store,
        app.config.get("MAILER") or mailer_from_config(app.config),
        ttl=app.config["RESET_CODE_EXPIRES"],
        code_length=app.config["RESET_CODE_LENGTH"],
    )

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to the Library Catalogue API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app

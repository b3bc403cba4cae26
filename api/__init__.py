from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models.account_store import MemoryAccountStore, SQLAccountStore
from models.db_storage import DBStorage
from services.audit import AuditLog
from services.session_service import SessionConfig, SessionService
from utils.logging_setup import configure_logging
from utils.security import Hasher, TokenIssuer

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Session Auth API",
        "version": "1.0.0",
        "description": "Registration, login, refresh-token rotation with reuse detection, and logout.",
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


def build_store(config):
    """Pick the AccountStore adapter named by STORAGE_BACKEND."""
    timeout = config["DB_TIMEOUT_SECONDS"]
    if config["STORAGE_BACKEND"] == "memory":
        return MemoryAccountStore(timeout=timeout), None
    storage = DBStorage(config["DATABASE_URL"], timeout=timeout, echo=config.get("SQL_ECHO", False))
    storage.reload()
    return SQLAccountStore(storage), storage


def create_app(config_name: str | None = None, **overrides) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    Security primitives are built here, so a missing signing key or a broken
    random source raises services.errors.Fatal and the app never starts.
    Keyword overrides replace config keys, or inject collaborators
    (store=, token_issuer=, audit=) directly.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    app.config.update({k: v for k, v in overrides.items() if k.isupper()})

    configure_logging(app.config["LOG_LEVEL"])

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    storage = None
    store = overrides.get("store")
    if store is None:
        store, storage = build_store(app.config)

    issuer = overrides.get("token_issuer") or TokenIssuer(
        app.config.get("JWT_SECRET"),
        algorithm=app.config["JWT_ALGORITHM"],
        issuer=app.config["JWT_ISSUER"],
    )
    hasher = Hasher(
        time_cost=app.config.get("HASH_TIME_COST"),
        memory_cost=app.config.get("HASH_MEMORY_COST"),
        parallelism=app.config.get("HASH_PARALLELISM"),
    )
    audit = overrides.get("audit") or AuditLog()

    app.extensions["account_store"] = store
    app.extensions["token_issuer"] = issuer
    app.extensions["session_service"] = SessionService(
        store, hasher, issuer, audit, SessionConfig.from_mapping(app.config)
    )

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")

    # Ensure the DB session is removed at the end of each request/app context
    if storage is not None:
        @app.teardown_appcontext
        def remove_session(exception=None):
            # This calls scoped_session.remove(), preventing connection leaks
            storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Session Auth API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app

import logging
import os
from flask import Flask, send_from_directory, abort
from .config import get_config
from .extensions import db, migrate, cors
from .security import TokenSigner
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from dotenv import load_dotenv
from werkzeug.middleware.proxy_fix import ProxyFix


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    # Ensure .env is loaded before reading env vars
    load_dotenv()
    app.config.from_object(get_config(config_name))
    # Explicit overrides (tests, scripts) win over environment-derived settings
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Honor proxy headers from Nginx for correct url_for(_external=True) scheme/host
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)  # type: ignore[assignment]

    # Init extensions
    origins = [o.strip() for o in (app.config.get("CORS_ORIGINS") or "").split(",") if o.strip()]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})
    db.init_app(app)
    migrate.init_app(app, db)

    # Token signing secret is fixed for the lifetime of the app
    app.extensions["token_signer"] = TokenSigner(
        secret=app.config["SECRET_KEY"],
        max_age=int(app.config["AUTH_TOKEN_MAX_AGE"]),
    )

    # Register models with the metadata before migrations/create_all run
    from . import models  # noqa: F401

    # Register blueprints (v1 API)
    from .apis.v1 import register_api
    register_api(app)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/db-check")
    def db_check():
        try:
            db.session.execute(text("SELECT 1"))
            return {"db": "ok"}
        except SQLAlchemyError as e:
            app.logger.error("Database check failed: %s", e)
            return {"db": "error", "message": str(e)}, 500

    # Ensure upload folder exists and serve locally stored uploads
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    @app.get("/uploads/<path:filename>")
    def uploads(filename: str):
        """Serve images stored on disk when no object storage bucket is configured."""
        base = app.config["UPLOAD_FOLDER"]
        if os.path.isfile(os.path.join(base, filename)):
            return send_from_directory(base, filename)
        abort(404)

    return app

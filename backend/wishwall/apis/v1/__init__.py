import logging

from flask import Blueprint, Flask, g, request, current_app, jsonify
from marshmallow import ValidationError as SchemaValidationError

from ...errors import WishWallError
from ...modules.auth.routes import bp as auth_bp
from ...modules.wishes.routes import bp as wishes_bp
from ...modules.records.routes import bp as records_bp
from ...modules.users.routes import bp as users_bp
from ...modules.uploads.routes import bp as uploads_bp

logger = logging.getLogger(__name__)


def register_api(app: Flask) -> None:
    api_v1 = Blueprint("api_v1", __name__, url_prefix="/api/v1")

    # Auth context loader. A signed bearer token resolves to g.principal.
    # In development (DEBUG=True) `X-User-Id` + optional `X-User-Role` headers are
    # accepted as well to simplify local testing.
    @api_v1.before_request  # type: ignore
    def _load_principal():  # pragma: no cover - simple request context helper
        from ...security import Principal, ROLES, verify_token
        principal = None
        auth = request.headers.get("Authorization") or ""
        if auth.lower().startswith("bearer "):
            principal = verify_token(auth[7:].strip())
        elif current_app.config.get("DEBUG"):
            raw = (request.headers.get("X-User-Id") or "").strip()
            role = (request.headers.get("X-User-Role") or "user").strip().lower()
            if raw.isdigit() and int(raw) > 0 and role in ROLES:
                principal = Principal(id=int(raw), role=role)
        g.principal = principal  # type: ignore[attr-defined]

    @api_v1.errorhandler(WishWallError)
    def _domain_error(e: WishWallError):
        if e.status >= 500:
            logger.error("%s on %s %s: %s", e.code, request.method, request.path, e.message, exc_info=e.__cause__)
        return jsonify(e.to_dict()), e.status

    @api_v1.errorhandler(SchemaValidationError)
    def _schema_error(e: SchemaValidationError):
        return jsonify({"error": "Invalid request data", "code": "validation_error", "fields": e.messages}), 400

    # Mount feature blueprints
    api_v1.register_blueprint(auth_bp)
    api_v1.register_blueprint(wishes_bp)
    api_v1.register_blueprint(records_bp)
    api_v1.register_blueprint(users_bp)
    api_v1.register_blueprint(uploads_bp)

    app.register_blueprint(api_v1)

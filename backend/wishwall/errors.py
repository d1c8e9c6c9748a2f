"""Domain error taxonomy.

Services raise these; the API layer turns them into ``{"error", "code"}`` JSON
responses using ``status`` as the HTTP status code.
"""

from __future__ import annotations


class WishWallError(Exception):
    code = "error"
    status = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class NotFound(WishWallError):
    code = "not_found"
    status = 404


class AlreadyClaimed(WishWallError):
    code = "already_claimed"
    status = 409


class InvalidTransition(WishWallError):
    code = "invalid_transition"
    status = 409


class ValidationError(WishWallError):
    code = "validation_error"
    status = 400


class Forbidden(WishWallError):
    code = "forbidden"
    status = 403


class StoreError(WishWallError):
    """Persistence failure. Carries no business meaning; callers may retry the whole operation."""

    code = "store_error"
    status = 500

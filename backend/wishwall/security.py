from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from flask import current_app
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: a mini-program user or a back-office admin."""

    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class TokenSigner:
    """Issues and verifies session tokens.

    Built once by the app factory from ``SECRET_KEY`` and kept in
    ``app.extensions["token_signer"]``; the secret is never read from a global.
    """

    secret: str
    max_age: int
    salt: str = "auth-token"

    def _serializer(self) -> URLSafeTimedSerializer:
        # Salt provides namespace isolation for tokens
        return URLSafeTimedSerializer(secret_key=self.secret, salt=self.salt)

    def issue(self, subject_id: int, role: str) -> str:
        """Payload is minimal: {"id": int, "role": str}"""
        return self._serializer().dumps({"id": int(subject_id), "role": str(role)})

    def verify(self, token: str) -> Optional[Principal]:
        """Return the token's principal, or None if it is tampered, expired or malformed."""
        try:
            data: Any = self._serializer().loads(token, max_age=self.max_age)
        except (BadSignature, SignatureExpired):
            return None
        if not isinstance(data, dict) or data.get("id") is None:
            return None
        role = data.get("role")
        if role not in ROLES:
            return None
        try:
            return Principal(id=int(data["id"]), role=role)
        except (TypeError, ValueError):
            return None


def token_signer() -> TokenSigner:
    return current_app.extensions["token_signer"]


def issue_token(subject_id: int, role: str) -> str:
    return token_signer().issue(subject_id, role)


def verify_token(token: str) -> Optional[Principal]:
    return token_signer().verify(token)


def can_access_record(principal: Optional[Principal], record) -> bool:
    """Admins see every claim record; a user only the records they donated."""
    if principal is None:
        return False
    if principal.is_admin:
        return True
    return principal.role == ROLE_USER and int(record.donor_id) == int(principal.id)

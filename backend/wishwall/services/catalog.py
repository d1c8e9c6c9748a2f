"""Wish catalog: publishing, listing and the single claim back-link per wish."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from flask import current_app
from sqlalchemy import update

from . import commit
from ..errors import AlreadyClaimed, NotFound, ValidationError
from ..extensions import db
from ..models import Wish
from ..models.enums import GENDERS
from ..models.types import utcnow
from ..pagination import paginate

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("child_name", "gender", "content", "reason", "grade", "photo_url", "is_published")
REQUIRED_FIELDS = ("child_name", "gender", "content", "reason")


def _clean(attrs: Mapping[str, Any], *, partial: bool = False) -> dict:
    data: dict[str, Any] = {k: attrs[k] for k in EDITABLE_FIELDS if k in attrs}
    for key in ("child_name", "content", "reason", "grade", "photo_url"):
        if isinstance(data.get(key), str):
            data[key] = data[key].strip()
    for key in ("grade", "photo_url"):
        if key in data and not data[key]:
            data[key] = None
    if not partial:
        for key in REQUIRED_FIELDS:
            if not data.get(key):
                raise ValidationError(f"{key} is required")
    else:
        for key in REQUIRED_FIELDS:
            if key in data and not data[key]:
                raise ValidationError(f"{key} cannot be empty")
    if "gender" in data and data["gender"] not in GENDERS:
        raise ValidationError("gender must be 'male' or 'female'")
    if "is_published" in data:
        data["is_published"] = bool(data["is_published"])
    return data


def _build(attrs: Mapping[str, Any]) -> Wish:
    data = _clean(attrs)
    data.setdefault("is_published", False)
    # active_record_id is never accepted from callers
    return Wish(active_record_id=None, **data)


def create_wish(attrs: Mapping[str, Any]) -> Wish:
    wish = _build(attrs)
    db.session.add(wish)
    commit()
    logger.info("Created wish %s for %s", wish.id, wish.child_name)
    return wish


def batch_create_wishes(items: Iterable[Mapping[str, Any]]) -> list[Wish]:
    """Insert all wishes in one transaction; nothing is inserted if any entry is invalid."""
    wishes: list[Wish] = []
    for index, attrs in enumerate(items):
        try:
            wishes.append(_build(attrs))
        except ValidationError as exc:
            raise ValidationError(f"Entry {index + 1}: {exc.message}") from exc
    if not wishes:
        raise ValidationError("Import list cannot be empty")
    db.session.add_all(wishes)
    commit()
    logger.info("Imported %d wishes", len(wishes))
    return wishes


def get_wish(wish_id: int) -> Wish:
    wish = Wish.query.filter(Wish.id == wish_id, Wish.deleted_at.is_(None)).first()
    if wish is None:
        raise NotFound("Wish not found")
    return wish


def update_wish(wish_id: int, attrs: Mapping[str, Any]) -> Wish:
    wish = get_wish(wish_id)
    for key, value in _clean(attrs, partial=True).items():
        setattr(wish, key, value)
    commit()
    return wish


def delete_wish(wish_id: int) -> None:
    """Soft delete. Allowed whatever the claim state; the claim record is left alone."""
    wish = get_wish(wish_id)
    wish.deleted_at = utcnow()
    commit()
    logger.info("Deleted wish %s (claimed=%s)", wish_id, wish.active_record_id is not None)


def claimable(wish: Wish, publish_gate: bool | None = None) -> bool:
    if publish_gate is None:
        publish_gate = bool(current_app.config.get("WISH_PUBLISH_GATE", True))
    if wish.active_record_id is not None or wish.deleted_at is not None:
        return False
    return bool(wish.is_published) or not publish_gate


def mark_claimed(wish: Wish, record_id: int) -> None:
    """Link the wish to its claim record.

    Must run inside the claim transaction. The write only applies while the
    back-link is still empty, so a lost race surfaces as AlreadyClaimed.
    """
    result = db.session.execute(
        update(Wish)
        .where(Wish.id == wish.id, Wish.active_record_id.is_(None))
        .values(active_record_id=record_id, updated_at=utcnow())
    )
    if result.rowcount != 1:
        raise AlreadyClaimed("This wish has already been claimed")


def list_wishes(
    *,
    content: str | None = None,
    claimed: bool | None = None,
    published: bool | None = None,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[Wish], int]:
    """Filter wishes; ``None`` for a flag means "don't filter on it"."""
    q = Wish.query.filter(Wish.deleted_at.is_(None))
    if content:
        q = q.filter(Wish.content.contains(content, autoescape=True))
    if claimed is True:
        q = q.filter(Wish.active_record_id.isnot(None))
    elif claimed is False:
        q = q.filter(Wish.active_record_id.is_(None))
    if published is not None:
        q = q.filter(Wish.is_published == published)
    q = q.order_by(Wish.created_at.desc(), Wish.id.desc())
    return paginate(q, page, page_size)

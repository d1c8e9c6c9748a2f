from flask import Blueprint, jsonify, request, g
from sqlalchemy import func

from ...extensions import db
from ...models.types import isoformat
from ...models.user import User
from ...models.wish_record import WishRecord
from ...pagination import page_args, pagination_dict


bp = Blueprint("users", __name__, url_prefix="/admin/users")


@bp.before_request
def _require_admin():
    principal = getattr(g, "principal", None)
    if principal is None:
        return jsonify({"error": "Authentication required"}), 401
    if not principal.is_admin:
        return jsonify({"error": "Forbidden"}), 403
    return None


def _user_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "nickname": u.nickname,
        "avatarUrl": u.avatar_url,
        "createdAt": isoformat(u.created_at),
        "updatedAt": isoformat(u.updated_at),
    }


@bp.get("")
def list_users():
    """List donors with the number of wishes each has claimed.

    Query params:
    - q: search on nickname
    - pageIndex, pageSize
    """
    q = (request.args.get("q") or "").strip()
    page, page_size = page_args(request.args)

    sub_records = (
        db.session.query(WishRecord.donor_id.label("uid"), func.count(WishRecord.id).label("records_count"))
        .filter(WishRecord.deleted_at.is_(None))
        .group_by(WishRecord.donor_id)
        .subquery()
    )

    base = (
        db.session.query(User, sub_records.c.records_count)
        .outerjoin(sub_records, sub_records.c.uid == User.id)
        .filter(User.deleted_at.is_(None))
    )
    if q:
        like = f"%{q.lower()}%"
        base = base.filter(func.lower(func.coalesce(User.nickname, "")).like(like))

    total = base.count()
    rows = (
        base.order_by(User.created_at.desc(), User.id.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
        .all()
    )

    users = []
    for u, records_count in rows:
        d = _user_to_dict(u)
        d["recordsCount"] = int(records_count or 0)
        users.append(d)

    return jsonify({"items": users, "pagination": pagination_dict(total, page, page_size)})


@bp.get("/<int:user_id>")
def get_user(user_id: int):
    u = db.session.get(User, user_id)
    if not u or u.deleted_at is not None:
        return jsonify({"error": "User not found"}), 404
    return jsonify(_user_to_dict(u))

import logging

from flask import Blueprint, request, jsonify, g, current_app
from werkzeug.security import generate_password_hash, check_password_hash

from ...extensions import db
from ...integrations.wechat.client import WechatError, code_to_session
from ...models.admin import Admin
from ...models.types import isoformat, utcnow
from ...models.user import User
from ...security import ROLE_ADMIN, ROLE_USER, issue_token
from ...services import commit

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)


def _json_error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def _user_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "nickname": u.nickname,
        "avatarUrl": u.avatar_url,
        "createdAt": isoformat(u.created_at),
        "updatedAt": isoformat(u.updated_at),
    }


def _admin_to_dict(a: Admin) -> dict:
    return {
        "id": a.id,
        "username": a.username,
        "lastLoginAt": isoformat(a.last_login_at),
        "createdAt": isoformat(a.created_at),
    }


@bp.post("/user/login")
def wechat_login():
    """Mini-program login.

    Body JSON: { code: str } as returned by wx.login(). Creates the user on first login.
    """
    data = request.get_json(silent=True) or {}
    code = (data.get("code") or "").strip()
    if not code:
        return _json_error("code is required")

    try:
        session = code_to_session(
            code,
            app_id=current_app.config.get("WECHAT_APPID"),
            secret=current_app.config.get("WECHAT_SECRET"),
            api_base=current_app.config.get("WECHAT_API_BASE", "https://api.weixin.qq.com"),
        )
    except WechatError as e:
        return _json_error(str(e), 502)

    openid = session["openid"]
    user = User.query.filter_by(wechat_openid=openid).first()
    if user is not None and user.deleted_at is not None:
        return _json_error("Account disabled", 403)
    if user is None:
        user = User(wechat_openid=openid, wechat_unionid=session.get("unionid") or None)
        db.session.add(user)
        commit()
        logger.info("Registered mini-program user %s", user.id)
    elif session.get("unionid") and not user.wechat_unionid:
        user.wechat_unionid = session["unionid"]
        commit()

    token = issue_token(int(user.id), ROLE_USER)
    return jsonify({"token": token, "user": _user_to_dict(user)})


@bp.put("/user/info")
def update_user_info():
    """Body JSON: { nickName?: str, avatarUrl?: str }"""
    principal = getattr(g, "principal", None)
    if principal is None or principal.role != ROLE_USER:
        return _json_error("Authentication required", 401)
    user = db.session.get(User, principal.id)
    if user is None or user.deleted_at is not None:
        return _json_error("User not found", 404)

    data = request.get_json(silent=True) or {}
    nickname = data.get("nickName")
    avatar_url = data.get("avatarUrl")
    if isinstance(nickname, str):
        user.nickname = nickname.strip()[:120] or None
    if isinstance(avatar_url, str):
        user.avatar_url = avatar_url.strip()[:512] or None
    commit()
    return jsonify(_user_to_dict(user))


@bp.post("/admin/register")
def register_admin():
    """Create a new admin account.

    Body JSON:
      - username: string (required)
      - password: string (required, min 8)
      - invite: string (optional; required unless the caller is already an admin)
    """
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""

    if not username:
        return _json_error("Username is required")
    if not password or len(password) < 8:
        return _json_error("Password must be at least 8 characters")

    # Authorization: require existing admin OR the configured invite code
    principal = getattr(g, "principal", None)
    provided = (request.headers.get("X-Admin-Invite") or data.get("invite") or "").strip()
    expected = current_app.config.get("ADMIN_INVITE_CODE") or ""
    invite_ok = bool(provided and expected and provided == expected)
    if not (principal is not None and principal.is_admin) and not invite_ok:
        return _json_error("Admin registration not permitted", 403)

    if Admin.query.filter_by(username=username).first():
        return _json_error("Username already in use", 409)

    admin = Admin(username=username, password_hash=generate_password_hash(password))
    db.session.add(admin)
    commit()
    logger.info("Registered admin %s", admin.username)

    token = issue_token(int(admin.id), ROLE_ADMIN)
    return jsonify({**_admin_to_dict(admin), "token": token}), 201


@bp.post("/admin/login")
def admin_login():
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        return _json_error("Username and password are required")

    admin = Admin.query.filter_by(username=username).first()
    if not admin or admin.deleted_at is not None or not check_password_hash(admin.password_hash, password):
        return _json_error("Invalid username or password", 401)

    admin.last_login_at = utcnow()
    commit()

    token = issue_token(int(admin.id), ROLE_ADMIN)
    return jsonify({"token": token, "admin": _admin_to_dict(admin)})

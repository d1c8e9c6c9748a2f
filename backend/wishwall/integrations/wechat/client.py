import logging

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.weixin.qq.com"


class WechatError(RuntimeError):
    pass


def code_to_session(code: str, *, app_id: str | None, secret: str | None, api_base: str = DEFAULT_API_BASE) -> dict:
    """Exchange a mini-program login code for the user's openid.

    Returns {"openid", "session_key", "unionid"?}. Raises WechatError when the
    credentials are missing, the HTTP call fails or WeChat answers with an errcode.
    """
    if not app_id or not secret:
        raise WechatError("WeChat credentials are not configured")
    if not code:
        raise WechatError("Login code is required")
    url = f"{api_base.rstrip('/')}/sns/jscode2session"
    params = {
        "appid": app_id,
        "secret": secret,
        "js_code": code,
        "grant_type": "authorization_code",
    }
    try:
        resp = requests.get(url, params=params, timeout=10)
        resp.raise_for_status()
        payload = resp.json()
    except requests.RequestException as e:
        raise WechatError(f"WeChat request failed: {e}") from e
    except ValueError as e:
        raise WechatError(f"WeChat returned a non-JSON response (HTTP {resp.status_code})") from e

    errcode = payload.get("errcode") or 0
    if errcode != 0:
        logger.warning("code2session rejected: errcode=%s errmsg=%s", errcode, payload.get("errmsg"))
        raise WechatError(f"WeChat login failed ({errcode}): {payload.get('errmsg') or 'unknown error'}")
    if not payload.get("openid"):
        raise WechatError("WeChat response did not include an openid")
    return payload

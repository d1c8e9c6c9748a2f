"""HTTP tests for the v1 API."""

from io import BytesIO

import pandas as pd
from PIL import Image

from wishwall.integrations.wechat.client import WechatError
from wishwall.models import User, Wish
from wishwall.security import ROLE_ADMIN


def _png_bytes():
    buf = BytesIO()
    Image.new("RGB", (4, 4), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


def _wish_body(**overrides):
    body = {
        "childName": "Xiao Ming",
        "gender": "male",
        "content": "A football",
        "reason": "We play every afternoon",
        "grade": "Grade 4",
        "isPublished": True,
    }
    body.update(overrides)
    return body


def test_health(client):
    """Test the liveness and database checks."""
    assert client.get("/health").get_json() == {"status": "ok"}
    assert client.get("/db-check").get_json() == {"db": "ok"}


def test_wechat_login_creates_user_once(client, monkeypatch):
    """Test login exchanges the code and reuses the account on later logins."""
    calls = []

    def fake_code_to_session(code, **kwargs):
        calls.append((code, kwargs["app_id"]))
        return {"openid": "openid-abc", "session_key": "sk", "unionid": "union-1"}

    monkeypatch.setattr("wishwall.modules.auth.routes.code_to_session", fake_code_to_session)

    first = client.post("/api/v1/user/login", json={"code": "c1"})
    second = client.post("/api/v1/user/login", json={"code": "c2"})

    assert first.status_code == 200
    assert first.get_json()["token"]
    assert first.get_json()["user"]["id"] == second.get_json()["user"]["id"]
    assert calls == [("c1", "wx-test-app"), ("c2", "wx-test-app")]
    assert User.query.filter_by(wechat_openid="openid-abc").one().wechat_unionid == "union-1"


def test_wechat_login_failure(client, monkeypatch):
    """Test upstream login errors surface as 502."""
    def failing(code, **kwargs):
        raise WechatError("WeChat login failed (40029): invalid code")

    monkeypatch.setattr("wishwall.modules.auth.routes.code_to_session", failing)

    resp = client.post("/api/v1/user/login", json={"code": "bad"})
    assert resp.status_code == 502
    assert client.post("/api/v1/user/login", json={}).status_code == 400


def test_update_user_info(client, donor, auth_headers):
    """Test donors can set their nickname and avatar."""
    resp = client.put(
        "/api/v1/user/info",
        json={"nickName": "Kind Alice", "avatarUrl": "https://img.example.com/a.png"},
        headers=auth_headers(donor.id),
    )
    assert resp.status_code == 200
    assert resp.get_json()["nickname"] == "Kind Alice"
    assert client.put("/api/v1/user/info", json={"nickName": "x"}).status_code == 401


def test_admin_register_and_login(client, auth_headers):
    """Test invite-gated registration followed by password login."""
    body = {"username": "ops", "password": "long-enough"}
    assert client.post("/api/v1/admin/register", json=body).status_code == 403

    resp = client.post("/api/v1/admin/register", json=body, headers={"X-Admin-Invite": "invite-me"})
    assert resp.status_code == 201
    admin_id = resp.get_json()["id"]

    assert client.post("/api/v1/admin/register", json=body, headers={"X-Admin-Invite": "invite-me"}).status_code == 409
    short = {"username": "ops2", "password": "short"}
    assert client.post("/api/v1/admin/register", json=short, headers={"X-Admin-Invite": "invite-me"}).status_code == 400

    # An existing admin can add colleagues without the invite code
    second = client.post(
        "/api/v1/admin/register",
        json={"username": "ops2", "password": "long-enough"},
        headers=auth_headers(admin_id, ROLE_ADMIN),
    )
    assert second.status_code == 201

    login = client.post("/api/v1/admin/login", json=body)
    assert login.status_code == 200
    assert login.get_json()["admin"]["lastLoginAt"] is not None
    assert client.post("/api/v1/admin/login", json={"username": "ops", "password": "wrong-pass"}).status_code == 401


def test_requests_without_token_are_rejected(client, donor):
    """Test debug identity headers are ignored outside debug mode."""
    resp = client.get("/api/v1/wishes", headers={"X-User-Id": str(donor.id)})
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Authentication required"}
    assert client.get("/api/v1/wishes", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_admin_manages_wishes(client, admin, donor, auth_headers):
    """Test create, update, list and delete through the API."""
    admin_h = auth_headers(admin.id, ROLE_ADMIN)

    created = client.post("/api/v1/wishes", json=_wish_body(), headers=admin_h)
    assert created.status_code == 201
    wish = created.get_json()
    assert wish["childName"] == "Xiao Ming"
    assert wish["isDone"] is False

    assert client.post("/api/v1/wishes", json=_wish_body(), headers=auth_headers(donor.id)).status_code == 403

    updated = client.put(f"/api/v1/wishes/{wish['id']}", json={"content": "Two footballs"}, headers=admin_h)
    assert updated.status_code == 200
    assert updated.get_json()["content"] == "Two footballs"
    assert updated.get_json()["childName"] == "Xiao Ming"

    assert client.delete(f"/api/v1/wishes/{wish['id']}", headers=admin_h).get_json() == {"ok": True}
    missing = client.get(f"/api/v1/wishes/{wish['id']}", headers=admin_h)
    assert missing.status_code == 404
    assert missing.get_json()["code"] == "not_found"


def test_invalid_wish_body(client, admin, auth_headers):
    """Test schema errors come back as 400 with field messages."""
    resp = client.post("/api/v1/wishes", json=_wish_body(gender="unknown"), headers=auth_headers(admin.id, ROLE_ADMIN))
    assert resp.status_code == 400
    assert "gender" in resp.get_json()["fields"]

    body = _wish_body()
    del body["reason"]
    resp = client.post("/api/v1/wishes", json=body, headers=auth_headers(admin.id, ROLE_ADMIN))
    assert resp.status_code == 400
    assert "reason" in resp.get_json()["fields"]


def test_donor_list_hides_drafts_and_claimed(client, make_wish, donor, donor_info, auth_headers):
    """Test donors see only open published wishes by default."""
    from wishwall.services import records

    open_wish = make_wish(content="Open")
    make_wish(content="Draft", is_published=False)
    taken = make_wish(content="Taken")
    records.create_claim(taken.id, donor.id, donor_info)

    resp = client.get("/api/v1/wishes", headers=auth_headers(donor.id))
    body = resp.get_json()
    assert [w["id"] for w in body["items"]] == [open_wish.id]
    assert body["pagination"] == {"total": 1, "pageIndex": 1, "pageSize": 10, "pageTotal": 1}

    done = client.get("/api/v1/wishes?isDone=all&isPublished=false", headers=auth_headers(donor.id)).get_json()
    assert {w["content"] for w in done["items"]} == {"Open", "Taken"}


def test_claim_and_progress_flow(client, make_wish, donor, admin, auth_headers):
    """Test a donor claims, ships and follows progress while the admin advances the record."""
    wish = make_wish()
    donor_h = auth_headers(donor.id)
    admin_h = auth_headers(admin.id, ROLE_ADMIN)
    claim_body = {"donorName": "Alice", "donorMobile": "13800000000", "address": "1 Example Road"}

    claimed = client.post(f"/api/v1/wishes/{wish.id}/claim", json=claim_body, headers=donor_h)
    assert claimed.status_code == 201
    record_id = claimed.get_json()["id"]
    assert claimed.get_json()["status"] == "pending_shipment"

    again = client.post(f"/api/v1/wishes/{wish.id}/claim", json=claim_body, headers=donor_h)
    assert again.status_code == 409
    assert again.get_json()["code"] == "already_claimed"
    assert client.post(f"/api/v1/wishes/{wish.id}/claim", json=claim_body, headers=admin_h).status_code == 403

    no_number = client.put(f"/api/v1/records/{record_id}/status", json={"status": "pending_confirmation"}, headers=donor_h)
    assert no_number.status_code == 400

    shipped = client.put(
        f"/api/v1/records/{record_id}/status",
        json={"status": "pending_confirmation", "shippingNumber": "SF100"},
        headers=donor_h,
    )
    assert shipped.status_code == 200
    assert shipped.get_json()["shippingNumber"] == "SF100"
    assert shipped.get_json()["shippingTime"] is not None
    assert shipped.get_json()["confirmationTime"] is None

    forbidden = client.put(f"/api/v1/records/{record_id}/status", json={"status": "confirmed"}, headers=donor_h)
    assert forbidden.status_code == 403

    skip = client.put(f"/api/v1/records/{record_id}/status", json={"status": "completed"}, headers=admin_h)
    assert skip.status_code == 409
    assert skip.get_json()["code"] == "invalid_transition"

    confirmed = client.put(
        f"/api/v1/records/{record_id}/status",
        json={"status": "confirmed", "confirmationMessage": "Arrived"},
        headers=admin_h,
    )
    assert confirmed.get_json()["status"] == "confirmed"
    assert confirmed.get_json()["confirmationMessage"] == "Arrived"
    assert confirmed.get_json()["confirmationTime"].endswith("+00:00")

    detail = client.get(f"/api/v1/records/{record_id}", headers=donor_h).get_json()
    assert [e["type"] for e in detail["progress"]] == ["confirmation", "shipping", "creation"]
    assert detail["progress"][0]["message"] == "Arrived"

    mine = client.get("/api/v1/user/records", headers=donor_h).get_json()
    assert [r["id"] for r in mine["items"]] == [record_id]

    all_records = client.get("/api/v1/admin/records?status=confirmed", headers=admin_h).get_json()
    assert all_records["pagination"]["total"] == 1
    assert all_records["items"][0]["shippingTime"] is not None
    assert client.get("/api/v1/admin/records", headers=donor_h).status_code == 403

    wish_view = client.get(f"/api/v1/wishes/{wish.id}", headers=donor_h).get_json()
    assert wish_view["isDone"] is True
    assert wish_view["activeRecordId"] == record_id


def test_other_donor_cannot_read_record(client, make_wish, make_user, donor, donor_info, auth_headers):
    """Test record details are private to the donor."""
    from wishwall.services import records

    record = records.create_claim(make_wish().id, donor.id, donor_info)
    stranger = make_user("Eve")

    resp = client.get(f"/api/v1/records/{record.id}", headers=auth_headers(stranger.id))
    assert resp.status_code == 403


def test_update_shipping_info(client, make_wish, donor, donor_info, auth_headers):
    """Test donors can correct their contact snapshot."""
    from wishwall.services import records

    record = records.create_claim(make_wish().id, donor.id, donor_info)

    resp = client.put(
        f"/api/v1/records/{record.id}/shipping",
        json={"address": "2 New Street"},
        headers=auth_headers(donor.id),
    )
    assert resp.status_code == 200
    assert resp.get_json()["donorAddress"] == "2 New Street"
    assert resp.get_json()["donorName"] == "Alice Zhang"


def test_batch_import_json(client, admin, auth_headers):
    """Test JSON batch import is atomic."""
    admin_h = auth_headers(admin.id, ROLE_ADMIN)

    bad = client.post(
        "/api/v1/wishes/batch",
        json={"data": [_wish_body(), _wish_body(childName="")]},
        headers=admin_h,
    )
    assert bad.status_code == 400
    assert Wish.query.count() == 0

    ok = client.post(
        "/api/v1/wishes/batch",
        json={"data": [_wish_body(), _wish_body(childName="Xiao Hong", gender="female")]},
        headers=admin_h,
    )
    assert ok.status_code == 201
    assert ok.get_json()["count"] == 2


def test_batch_import_workbook(client, admin, auth_headers):
    """Test an Excel upload creates published wishes."""
    buf = BytesIO()
    df = pd.DataFrame({"姓名": ["小明"], "性别": ["男"], "心愿": ["足球"], "理由": ["喜欢运动"]})
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, index=False)
    buf.seek(0)

    resp = client.post(
        "/api/v1/wishes/batch",
        data={"file": (buf, "wishes.xlsx")},
        content_type="multipart/form-data",
        headers=auth_headers(admin.id, ROLE_ADMIN),
    )

    assert resp.status_code == 201
    assert resp.get_json()["items"][0]["childName"] == "小明"
    assert resp.get_json()["items"][0]["isPublished"] is True


def test_upload_image_local(client, donor, auth_headers):
    """Test uploads land in the local folder and are served back."""
    resp = client.post(
        "/api/v1/upload/image",
        data={"file": (BytesIO(_png_bytes()), "photo.png", "image/png"), "directory": "receipts"},
        content_type="multipart/form-data",
        headers=auth_headers(donor.id),
    )
    assert resp.status_code == 200
    url = resp.get_json()["url"]
    assert url.startswith("/uploads/receipts/") and url.endswith(".png")
    assert client.get(url).status_code == 200


def test_upload_rejects_non_images(client, donor, auth_headers):
    """Test text files are refused."""
    resp = client.post(
        "/api/v1/upload/image",
        data={"file": (BytesIO(b"hello"), "notes.txt", "text/plain")},
        content_type="multipart/form-data",
        headers=auth_headers(donor.id),
    )
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "validation_error"


def test_admin_user_list(client, make_user, admin, donor, auth_headers):
    """Test admins can search donors."""
    make_user("Bob")

    resp = client.get("/api/v1/admin/users?q=ali", headers=auth_headers(admin.id, ROLE_ADMIN))
    body = resp.get_json()
    assert [u["nickname"] for u in body["items"]] == ["Alice"]
    assert body["items"][0]["recordsCount"] == 0
    assert client.get("/api/v1/admin/users", headers=auth_headers(donor.id)).status_code == 403


def test_admin_deletes_uploaded_image(client, donor, admin, auth_headers):
    """Test a stored image can be removed by an admin only."""
    url = client.post(
        "/api/v1/upload/image",
        data={"file": (BytesIO(_png_bytes()), "photo.png", "image/png")},
        content_type="multipart/form-data",
        headers=auth_headers(donor.id),
    ).get_json()["url"]

    assert client.delete(f"/api/v1/upload/image?key={url}", headers=auth_headers(donor.id)).status_code == 403
    assert client.delete("/api/v1/upload/image?key=../secret", headers=auth_headers(admin.id, ROLE_ADMIN)).status_code == 400

    resp = client.delete(f"/api/v1/upload/image?key={url}", headers=auth_headers(admin.id, ROLE_ADMIN))
    assert resp.get_json() == {"ok": True}
    assert client.get(url).status_code == 404

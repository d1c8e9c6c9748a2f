"""Pytest configuration and fixtures."""

import pytest
from werkzeug.security import generate_password_hash

from wishwall import create_app
from wishwall.extensions import db as _db
from wishwall.models import Admin, User, Wish
from wishwall.security import ROLE_ADMIN, ROLE_USER, Principal, issue_token


@pytest.fixture(scope="function")
def app(tmp_path):
    """Create an app bound to a fresh in-memory database for each test."""
    app = create_app("testing")
    app.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="function")
def file_app(tmp_path):
    """App on a file-backed SQLite database so several connections see the same data."""
    app = create_app(
        "testing",
        {
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'wishwall.db'}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False, "timeout": 30}},
            "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        },
    )

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()
        _db.engine.dispose()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(nickname="donor"):
        counter["n"] += 1
        user = User(wechat_openid=f"openid-{counter['n']}", nickname=nickname)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_admin(db):
    def _make(username="admin", password="s3cret-pass"):
        admin = Admin(username=username, password_hash=generate_password_hash(password))
        db.session.add(admin)
        db.session.commit()
        return admin

    return _make


@pytest.fixture
def make_wish(db):
    def _make(**overrides):
        attrs = {
            "child_name": "Xiao Ming",
            "gender": "male",
            "content": "A set of watercolor paints",
            "reason": "I like drawing the mountains behind school",
            "grade": "Grade 3",
            "is_published": True,
        }
        attrs.update(overrides)
        wish = Wish(**attrs)
        db.session.add(wish)
        db.session.commit()
        return wish

    return _make


@pytest.fixture
def donor(make_user):
    return make_user("Alice")


@pytest.fixture
def admin(make_admin):
    return make_admin()


@pytest.fixture
def donor_principal(donor):
    return Principal(id=donor.id, role=ROLE_USER)


@pytest.fixture
def admin_principal(admin):
    return Principal(id=admin.id, role=ROLE_ADMIN)


@pytest.fixture
def auth_headers(app):
    """Build an Authorization header for a user or admin id."""

    def _headers(subject_id, role=ROLE_USER):
        return {"Authorization": f"Bearer {issue_token(subject_id, role)}"}

    return _headers


@pytest.fixture
def donor_info():
    return {
        "name": "Alice Zhang",
        "mobile": "13800000000",
        "address": "1 Example Road, Chengdu",
        "comment": "Happy to help",
    }

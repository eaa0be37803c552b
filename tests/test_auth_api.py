import pytest

from conftest import ADMIN_KEY, PASSWORD, bearer, login, refresh_cookie
from security.errors import SessionPersistenceError

PUBLIC_VIEW_KEYS = {"id", "name", "email", "role"}


def _set_cookie_headers(resp):
    return [h for h in resp.headers.getlist("Set-Cookie") if h.startswith("refreshToken=")]


def _assert_cookie_cleared(resp):
    headers = _set_cookie_headers(resp)
    assert headers, "expected the refresh cookie to be cleared"
    assert any("Max-Age=0" in h or "1970" in h for h in headers)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

def test_register_returns_public_view_only(client):
    resp = client.post("/api/v1/auth/register", json={
        "name": "Ada", "email": " Ada@Example.com ", "password": PASSWORD,
    })
    assert resp.status_code == 201
    user = resp.get_json()["user"]
    assert set(user) == PUBLIC_VIEW_KEYS
    assert user["email"] == "ada@example.com"
    assert user["role"] == "user"


def test_register_duplicate_email(client, make_account):
    make_account(email="ada@example.com")
    resp = client.post("/api/v1/auth/register", json={
        "name": "Ada", "email": "ada@example.com", "password": PASSWORD,
    })
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "CONFLICT"


@pytest.mark.parametrize("password", ["short", "alllowercase1!", "NoSpecial123"])
def test_register_weak_password(client, password):
    resp = client.post("/api/v1/auth/register", json={
        "name": "Ada", "email": "ada@example.com", "password": password,
    })
    assert resp.status_code == 422
    assert "password" in resp.get_json()["details"]


def test_register_unknown_role(client):
    resp = client.post("/api/v1/auth/register", json={
        "name": "Ada", "email": "ada@example.com", "password": PASSWORD, "role": "librarian",
    })
    assert resp.status_code == 422


@pytest.mark.parametrize("admin_key", [None, "", "wrong-key"])
def test_admin_registration_requires_the_key(client, admin_key):
    body = {"name": "Root", "email": "root@example.com", "password": PASSWORD, "role": "admin"}
    if admin_key is not None:
        body["admin_key"] = admin_key
    resp = client.post("/api/v1/auth/register", json=body)
    assert resp.status_code == 403


def test_admin_registration_with_key(client):
    resp = client.post("/api/v1/auth/register", json={
        "name": "Root", "email": "root@example.com", "password": PASSWORD,
        "role": "admin", "admin_key": ADMIN_KEY,
    })
    assert resp.status_code == 201
    assert resp.get_json()["user"]["role"] == "admin"


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

def test_login_sets_protected_refresh_cookie(client, make_account, store):
    account = make_account()
    resp = login(client)
    assert resp.status_code == 200

    body = resp.get_json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 15 * 60
    assert set(body["user"]) == PUBLIC_VIEW_KEYS
    assert "refresh_token" not in body

    header = _set_cookie_headers(resp)[0]
    assert "HttpOnly" in header
    assert "SameSite=Strict" in header
    assert "Path=/" in header
    assert refresh_cookie(client) == store.get_account(account.id).refresh_token


@pytest.mark.parametrize("email,password", [
    ("reader@example.com", "Wrong@1234"),
    ("nobody@example.com", PASSWORD),
])
def test_login_failures_look_the_same(client, make_account, email, password):
    make_account()
    resp = login(client, email=email, password=password)
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Invalid credentials"
    assert not _set_cookie_headers(resp)


def test_login_requires_both_fields(client):
    resp = client.post("/api/v1/auth/login", json={"email": "reader@example.com"})
    assert resp.status_code == 422


def test_login_store_failure_is_503(client, make_account, store, monkeypatch):
    make_account()

    def broken(*args, **kwargs):
        raise SessionPersistenceError()

    monkeypatch.setattr(store, "set_refresh_token", broken)
    resp = login(client)
    assert resp.status_code == 503
    assert "access_token" not in resp.get_json()
    assert not _set_cookie_headers(resp)


# ---------------------------------------------------------------------------
# Rotation
# ---------------------------------------------------------------------------

def test_refresh_rotates_cookie(client, make_account):
    make_account()
    login(client)
    original = refresh_cookie(client)

    resp = client.post("/api/v1/auth/refresh")
    assert resp.status_code == 200
    assert resp.get_json()["access_token"]
    assert set(resp.get_json()["user"]) == PUBLIC_VIEW_KEYS
    assert refresh_cookie(client) != original


def test_refresh_without_cookie(client):
    resp = client.post("/api/v1/auth/refresh")
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Session expired"
    assert not _set_cookie_headers(resp)


def test_refresh_with_garbage_cookie_clears_it(client):
    client.set_cookie("refreshToken", "garbage")
    resp = client.post("/api/v1/auth/refresh")
    assert resp.status_code == 401
    _assert_cookie_cleared(resp)
    assert refresh_cookie(client) is None


def test_replayed_cookie_looks_like_an_expired_session(client, make_account, store):
    account = make_account()
    login(client)
    original = refresh_cookie(client)
    client.post("/api/v1/auth/refresh")
    rotated = refresh_cookie(client)

    client.set_cookie("refreshToken", original)
    replay = client.post("/api/v1/auth/refresh")
    assert replay.status_code == 401
    body = replay.get_json()
    assert body["message"] == "Session expired"
    assert "details" not in body
    _assert_cookie_cleared(replay)
    assert store.get_account(account.id).refresh_token is None

    client.set_cookie("refreshToken", rotated)
    assert client.post("/api/v1/auth/refresh").status_code == 401


def test_refresh_store_failure_keeps_cookie(client, make_account, store, monkeypatch):
    account = make_account()
    login(client)
    original = refresh_cookie(client)

    def broken(*args, **kwargs):
        raise SessionPersistenceError()

    monkeypatch.setattr(store, "set_refresh_token", broken)
    resp = client.post("/api/v1/auth/refresh")
    assert resp.status_code == 503
    assert "access_token" not in resp.get_json()
    assert not _set_cookie_headers(resp)
    monkeypatch.undo()
    assert store.get_account(account.id).refresh_token == original


def test_rotation_reflects_role_change(client, make_account, issuer):
    make_account(id="u1", email="reader@example.com", role="user")
    make_account(email="admin@example.com", name="Admin", role="admin")

    user_login = client.post("/api/v1/auth/login", json={"email": "reader@example.com", "password": PASSWORD})
    assert issuer.decode_access(user_login.get_json()["access_token"]).role == "user"
    user_cookie = refresh_cookie(client)

    admin_client = client.application.test_client()
    admin_token = login(admin_client, email="admin@example.com").get_json()["access_token"]
    resp = admin_client.patch("/api/v1/users/u1/role", json={"role": "admin"}, headers=bearer(admin_token))
    assert resp.status_code == 200

    client.set_cookie("refreshToken", user_cookie)
    rotated = client.post("/api/v1/auth/refresh")
    assert rotated.status_code == 200
    claims = issuer.decode_access(rotated.get_json()["access_token"])
    assert claims.subject_id == "u1"
    assert claims.role == "admin"


# ---------------------------------------------------------------------------
# Access guard over HTTP
# ---------------------------------------------------------------------------

def test_me_with_access_token(client, make_account):
    make_account()
    token = login(client).get_json()["access_token"]
    resp = client.get("/api/v1/auth/me", headers=bearer(token))
    assert resp.status_code == 200
    assert resp.get_json()["user"]["email"] == "reader@example.com"


def test_me_without_token(client):
    resp = client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.get_json()["details"]["code"] == "NO_TOKEN"


def test_me_with_malformed_token(client):
    resp = client.get("/api/v1/auth/me", headers=bearer("not.a.token"))
    assert resp.status_code == 403
    assert resp.get_json()["details"]["code"] == "MALFORMED"


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------

def test_logout_clears_cookie_and_stored_token(client, make_account, store):
    account = make_account()
    token = login(client).get_json()["access_token"]

    resp = client.post("/api/v1/auth/logout", headers=bearer(token))
    assert resp.status_code == 200
    _assert_cookie_cleared(resp)
    assert store.get_account(account.id).refresh_token is None


def test_logout_then_old_cookie_is_rejected(client, make_account):
    make_account()
    token = login(client).get_json()["access_token"]
    cookie = refresh_cookie(client)
    client.post("/api/v1/auth/logout", headers=bearer(token))

    client.set_cookie("refreshToken", cookie)
    assert client.post("/api/v1/auth/refresh").status_code == 401


def test_logout_clears_cookie_even_when_store_write_fails(client, make_account, store, monkeypatch):
    make_account()
    token = login(client).get_json()["access_token"]

    def broken(*args, **kwargs):
        raise SessionPersistenceError()

    monkeypatch.setattr(store, "set_refresh_token", broken)
    resp = client.post("/api/v1/auth/logout", headers=bearer(token))
    assert resp.status_code == 200
    _assert_cookie_cleared(resp)


def test_logout_requires_access_token(client):
    assert client.post("/api/v1/auth/logout").status_code == 401


def test_register_honours_allowed_roles(app, client):
    app.config["ALLOWED_ROLES"] = ["user"]
    resp = client.post("/api/v1/auth/register", json={
        "name": "Root", "email": "root@example.com", "password": PASSWORD,
        "role": "admin", "admin_key": ADMIN_KEY,
    })
    assert resp.status_code == 422
    assert "role" in resp.get_json()["details"]

    resp = client.post("/api/v1/auth/register", json={
        "name": "Ada", "email": "ada@example.com", "password": PASSWORD,
    })
    assert resp.status_code == 201


def test_register_looks_up_duplicates_through_the_store(client, make_account, store, monkeypatch):
    make_account(email="ada@example.com")
    resp = client.post("/api/v1/auth/register", json={
        "name": "Ada", "email": "ADA@example.com", "password": PASSWORD,
    })
    assert resp.status_code == 409

    def broken(*args, **kwargs):
        raise SessionPersistenceError()

    monkeypatch.setattr(store, "get_account_by_email", broken)
    resp = client.post("/api/v1/auth/register", json={
        "name": "Bob", "email": "bob@example.com", "password": PASSWORD,
    })
    assert resp.status_code == 503

import pytest

from api import create_app
from services.errors import Fatal, Unavailable

ALICE = {"email": "alice@example.com", "name": "Alice", "password": "password123"}


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, **overrides):
    body = dict(ALICE, **overrides)
    return client.post("/api/v1/auth/register", json=body)


def refresh(client, access_token, user_id, refresh_token):
    return client.post(
        "/api/v1/auth/refresh",
        json={"userId": user_id, "refreshToken": refresh_token},
        headers=bearer(access_token),
    )


class TestRegister:
    def test_register_returns_tokens_and_public_profile(self, client):
        resp = register(client)
        assert resp.status_code == 201
        body = resp.get_json()
        assert set(body) == {"accessToken", "refreshToken", "expiresIn", "user"}
        assert body["expiresIn"] == 900
        assert len(body["refreshToken"]) == 64
        assert body["user"]["email"] == "alice@example.com"
        assert body["user"]["name"] == "Alice"
        assert body["user"]["avatar"] is None

    def test_user_object_never_exposes_secrets(self, client):
        user = register(client).get_json()["user"]
        assert set(user) == {"id", "email", "name", "avatar"}
        for field in ("password", "passwordHash", "password_hash", "refreshToken", "refresh_token_hash"):
            assert field not in user

    def test_duplicate_email_is_409(self, client):
        register(client)
        resp = register(client, email="ALICE@example.com")
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "CONFLICT"

    def test_short_password_is_400_without_touching_storage(self, app, client, app_store, monkeypatch):
        calls = []
        monkeypatch.setattr(app_store, "create", lambda *a, **k: calls.append(a))
        resp = register(client, password="12345")
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "VALIDATION_ERROR"
        assert "password" in body["details"]
        assert calls == []

    @pytest.mark.parametrize("missing", ["email", "name", "password"])
    def test_missing_field_is_400(self, client, missing):
        body = dict(ALICE)
        body.pop(missing)
        resp = client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 400
        assert missing in resp.get_json()["details"]

    def test_invalid_email_is_400(self, client):
        assert register(client, email="not-an-email").status_code == 400


class TestLogin:
    def test_login_returns_same_shape_as_register(self, client):
        register(client)
        resp = client.post("/api/v1/auth/login", json={"email": "Alice@Example.com", "password": "password123"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert set(body) == {"accessToken", "refreshToken", "expiresIn", "user"}
        assert set(body["user"]) == {"id", "email", "name", "avatar"}

    def test_bad_credentials_are_indistinguishable(self, client):
        register(client)
        unknown = client.post("/api/v1/auth/login", json={"email": "bob@example.com", "password": "password123"})
        wrong = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.get_json() == wrong.get_json()
        assert unknown.get_json()["message"] == "Invalid credentials"

    def test_missing_password_is_400(self, client):
        resp = client.post("/api/v1/auth/login", json={"email": "alice@example.com"})
        assert resp.status_code == 400


class TestRefresh:
    def test_refresh_requires_access_token(self, client):
        body = register(client).get_json()
        resp = client.post(
            "/api/v1/auth/refresh",
            json={"userId": body["user"]["id"], "refreshToken": body["refreshToken"]},
        )
        assert resp.status_code == 401

    def test_refresh_rejects_garbage_access_token(self, client):
        body = register(client).get_json()
        resp = refresh(client, "not.a.jwt", body["user"]["id"], body["refreshToken"])
        assert resp.status_code == 401

    def test_full_rotation_and_reuse_scenario(self, client, audit):
        register(client)
        login = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "password123"})
        first = login.get_json()
        user_id = first["user"]["id"]

        resp = refresh(client, first["accessToken"], user_id, first["refreshToken"])
        assert resp.status_code == 200
        second = resp.get_json()
        assert set(second) == {"accessToken", "refreshToken", "expiresIn"}
        assert second["expiresIn"] == 900
        assert second["refreshToken"] != first["refreshToken"]

        stale = refresh(client, second["accessToken"], user_id, first["refreshToken"])
        assert stale.status_code == 403
        assert stale.get_json()["error"] == "FORBIDDEN"

        # the session was revoked, so the newer secret is dead as well
        revoked = refresh(client, second["accessToken"], user_id, second["refreshToken"])
        assert revoked.status_code == 403
        assert stale.get_json()["message"] == revoked.get_json()["message"]

        assert "token_reuse_attack" in audit.reasons("token_refresh_failed")

    def test_refresh_body_is_validated(self, client):
        body = register(client).get_json()
        resp = refresh(client, body["accessToken"], "not-a-uuid", body["refreshToken"])
        assert resp.status_code == 400
        assert "userId" in resp.get_json()["details"]


class TestLogout:
    def test_logout_twice_succeeds(self, client):
        body = register(client).get_json()
        for _ in range(2):
            resp = client.post("/api/v1/auth/logout", headers=bearer(body["accessToken"]))
            assert resp.status_code == 200
            assert resp.get_json() == {"message": "Successfully logged out"}

    def test_logout_kills_refresh(self, client):
        body = register(client).get_json()
        client.post("/api/v1/auth/logout", headers=bearer(body["accessToken"]))
        resp = refresh(client, body["accessToken"], body["user"]["id"], body["refreshToken"])
        assert resp.status_code == 403

    def test_logout_requires_access_token(self, client):
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 401
        assert resp.headers["WWW-Authenticate"] == "Bearer"


class TestServingLayer:
    def test_health(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_store_outage_is_503(self, client, app_store, monkeypatch):
        def down(*args, **kwargs):
            raise Unavailable("Account store timed out")

        monkeypatch.setattr(app_store, "find_by_email", down)
        resp = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "password123"})
        assert resp.status_code == 503
        assert resp.get_json()["error"] == "UNAVAILABLE"
        assert resp.headers["Retry-After"] == "1"

    def test_missing_signing_key_refuses_to_start(self):
        with pytest.raises(Fatal):
            create_app("testing", JWT_SECRET="")

    def test_sql_backend_end_to_end(self, tmp_path, audit):
        app = create_app(
            "testing",
            audit=audit,
            STORAGE_BACKEND="sql",
            DATABASE_URL=f"sqlite:///{tmp_path / 'auth.db'}",
        )
        client = app.test_client()
        body = register(client).get_json()
        rotated = refresh(client, body["accessToken"], body["user"]["id"], body["refreshToken"])
        assert rotated.status_code == 200
        stale = refresh(client, body["accessToken"], body["user"]["id"], body["refreshToken"])
        assert stale.status_code == 403
        assert client.get("/api/v1/health").status_code == 200


class TestRouting:
    @pytest.mark.parametrize("action", ["register", "login", "refresh", "logout"])
    def test_auth_routes_live_under_auth_prefix(self, app, action):
        rules = {rule.rule for rule in app.url_map.iter_rules()}
        assert f"/api/v1/auth/{action}" in rules
        assert f"/api/v1/{action}" not in rules

    def test_unprefixed_register_is_404(self, client):
        assert client.post("/api/v1/register", json=ALICE).status_code == 404

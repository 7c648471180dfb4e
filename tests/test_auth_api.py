"""HTTP tests for /api/auth."""

from roster.models.session_metadata import SessionMetadata

REGISTER_BODY = {
    "firstName": "Jane",
    "lastName": "Doe",
    "email": "jane@example.com",
    "password": "password123",
}


def _register(client, headers=None, **overrides):
    body = {**REGISTER_BODY, **overrides}
    return client.post("/api/auth/register", json=body, headers=headers or {})


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


class TestRegister:

    def test_returns_both_tokens_for_native_clients(self, client):
        response = _register(client)
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "User registered successfully"
        assert body["accessToken"]
        assert body["refreshToken"]

    def test_duplicate_email(self, client):
        _register(client)
        response = _register(client)
        assert response.status_code == 400
        assert response.json() == {"detail": "User already exists"}

    def test_unknown_role(self, client):
        response = _register(client, role="janitor")
        assert response.status_code == 400
        assert response.json() == {"detail": "Role 'janitor' not found"}

    def test_invalid_body(self, client):
        response = _register(client, email="not-an-email", password="short")
        assert response.status_code == 422

    def test_unknown_client_type(self, client):
        response = _register(client, headers={"X-Client-Type": "fridge"})
        assert response.status_code == 400

    def test_auth_responses_are_not_cached(self, client):
        response = _register(client)
        assert response.headers["Cache-Control"] == "no-store"
        assert response.headers["X-Request-Id"]


class TestLogin:

    def test_success(self, client):
        _register(client)
        response = client.post(
            "/api/auth/login", json={"email": "jane@example.com", "password": "password123"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["accessToken"]
        assert body["refreshToken"]

    def test_unknown_email_and_wrong_password_are_indistinguishable(self, client):
        _register(client)
        wrong_password = client.post(
            "/api/auth/login", json={"email": "jane@example.com", "password": "wrong-password"}
        )
        unknown_email = client.post(
            "/api/auth/login", json={"email": "ghost@example.com", "password": "password123"}
        )

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json() == {"detail": "Invalid credentials"}
        assert wrong_password.headers["WWW-Authenticate"] == "Bearer"


class TestRefresh:

    def test_rotation_and_replay(self, client, auth_header):
        tokens = _register(client).json()

        response = client.post("/api/auth/refresh-token", headers=auth_header(tokens["refreshToken"]))
        assert response.status_code == 200
        rotated = response.json()
        assert rotated["message"] == "Token refreshed successfully"
        assert rotated["accessToken"]
        assert rotated["refreshToken"] != tokens["refreshToken"]

        replay = client.post("/api/auth/refresh-token", headers=auth_header(tokens["refreshToken"]))
        assert replay.status_code == 403
        assert replay.json() == {"detail": "Invalid or revoked refresh token"}

    def test_missing_token(self, client):
        response = client.post("/api/auth/refresh-token")
        assert response.status_code == 401
        assert response.json() == {"detail": "Refresh token required"}

    def test_garbage_token(self, client, auth_header):
        response = client.post("/api/auth/refresh-token", headers=auth_header("invalid.token.here"))
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid or expired token"}

    def test_access_token_is_refused(self, client, auth_header):
        tokens = _register(client).json()
        response = client.post("/api/auth/refresh-token", headers=auth_header(tokens["accessToken"]))
        assert response.status_code == 401

    def test_rotation_survives_a_failed_audit_write(self, client, auth_header, failing_audit_writes):
        tokens = _register(client).json()

        response = client.post("/api/auth/refresh-token", headers=auth_header(tokens["refreshToken"]))
        assert response.status_code == 200
        rotated = response.json()

        retry = client.post("/api/auth/refresh-token", headers=auth_header(rotated["refreshToken"]))
        assert retry.status_code == 200

    def test_new_access_token_works(self, client, auth_header):
        tokens = _register(client).json()
        rotated = client.post(
            "/api/auth/refresh-token", headers=auth_header(tokens["refreshToken"])
        ).json()
        response = client.get("/api/auth/profile", headers=auth_header(rotated["accessToken"]))
        assert response.status_code == 200


class TestWebClients:

    WEB = {"X-Client-Type": "web"}

    def test_refresh_token_only_in_cookie(self, client):
        response = _register(client, headers=self.WEB)
        assert response.status_code == 201
        body = response.json()
        assert body["accessToken"]
        assert "refreshToken" not in body

        cookie = response.headers["set-cookie"].lower()
        assert cookie.startswith("refreshtoken=")
        assert "httponly" in cookie
        assert "samesite=strict" in cookie
        assert "path=/api/auth" in cookie
        assert "max-age=604800" in cookie
        assert "; secure" not in cookie

    def test_refresh_from_cookie_rotates_cookie(self, client):
        _register(client, headers=self.WEB)
        first_cookie = client.cookies.get("refreshToken")
        assert first_cookie

        response = client.post("/api/auth/refresh-token", headers=self.WEB)
        assert response.status_code == 200
        assert "refreshToken" not in response.json()
        assert client.cookies.get("refreshToken") != first_cookie

    def test_logout_clears_cookie(self, client, auth_header):
        tokens = _register(client, headers=self.WEB).json()
        response = client.post(
            "/api/auth/logout", headers={**self.WEB, **auth_header(tokens["accessToken"])}
        )
        assert response.status_code == 200
        assert 'refreshtoken=""' in response.headers["set-cookie"].lower()


class TestLogout:

    def test_logout_then_refresh_fails(self, client, auth_header):
        tokens = _register(client).json()

        response = client.post("/api/auth/logout", headers=auth_header(tokens["accessToken"]))
        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}

        refresh = client.post("/api/auth/refresh-token", headers=auth_header(tokens["refreshToken"]))
        assert refresh.status_code in (401, 403)

    def test_missing_header(self, client):
        response = client.post("/api/auth/logout")
        assert response.status_code == 401
        assert response.json() == {"detail": "Authorization token required"}

    def test_invalid_token(self, client, auth_header):
        response = client.post("/api/auth/logout", headers=auth_header("invalid.token.here"))
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid or expired token"}

    def test_twice(self, client, auth_header):
        tokens = _register(client).json()
        client.post("/api/auth/logout", headers=auth_header(tokens["accessToken"]))
        response = client.post("/api/auth/logout", headers=auth_header(tokens["accessToken"]))
        assert response.status_code == 401
        assert response.json() == {"detail": "Token metadata not found"}

    def test_only_the_calling_device_is_logged_out(self, client, db, auth_header):
        _register(client)
        phone = client.post(
            "/api/auth/login",
            json={"email": "jane@example.com", "password": "password123"},
            headers={"X-Device-Id": "phone"},
        ).json()
        laptop = client.post(
            "/api/auth/login",
            json={"email": "jane@example.com", "password": "password123"},
            headers={"X-Device-Id": "laptop"},
        ).json()

        client.post("/api/auth/logout", headers=auth_header(phone["accessToken"]))

        db.expire_all()
        assert {row.device_id for row in db.query(SessionMetadata)} == {"default", "laptop"}
        response = client.post(
            "/api/auth/refresh-token",
            headers={"X-Device-Id": "laptop", **auth_header(laptop["refreshToken"])},
        )
        assert response.status_code == 200


class TestProfile:

    def test_returns_the_principal(self, client, auth_header):
        tokens = _register(client).json()
        response = client.get("/api/auth/profile", headers=auth_header(tokens["accessToken"]))
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "You are authenticated"
        assert body["user"]["email"] == "jane@example.com"
        assert body["user"]["role"] == "student"
        assert isinstance(body["user"]["id"], int)

    def test_requires_a_token(self, client):
        response = client.get("/api/auth/profile")
        assert response.status_code == 403
        assert response.json() == {"detail": "Authorization token required"}

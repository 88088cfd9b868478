"""
Tests for authentication endpoints.
"""
from lockbox.core.cookies import SESSION_COOKIE


class TestStatelessLogin:
    """Tests for access-token login with signed session tokens."""

    def test_list_requires_session(self, client_factory):
        """Test that protected API routes reject requests without a cookie."""
        client = client_factory("stateless")
        response = client.get("/api/list")

        assert response.status_code == 401
        assert response.json()["status"] == "error"

    def test_login_with_access_token(self, client_factory, login):
        """Test that the access token is exchanged for a working session cookie."""
        client = client_factory("stateless")
        response = login(client)

        assert response.json() == {"status": "success", "message": "Login successful"}
        assert client.cookies.get(SESSION_COOKIE)
        assert client.get("/api/list").status_code == 200

    def test_login_wrong_token(self, client_factory):
        """Test that a wrong access token is rejected without a cookie."""
        client = client_factory("stateless")
        response = client.post("/api/auth/login", json={"token": "0" * 64})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"
        assert SESSION_COOKIE not in response.headers.get("set-cookie", "")

    def test_login_missing_token(self, client_factory):
        """Test that a missing token field is a bad request."""
        client = client_factory("stateless")
        response = client.post("/api/auth/login", json={})

        assert response.status_code == 400
        assert "token" in response.json()["message"]

    def test_login_form_body(self, client_factory):
        """Test that the login fields may also arrive form-encoded."""
        client = client_factory("stateless")
        token = client.app.state.credentials.access_token
        response = client.post("/api/auth/login", data={"token": token})

        assert response.status_code == 200

    def test_login_malformed_json(self, client_factory):
        """Test that an unparseable body is a bad request."""
        client = client_factory("stateless")
        response = client.post(
            "/api/auth/login",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400

    def test_logout_keeps_token_valid(self, client_factory, login):
        """Test that stateless logout only clears the cookie; the token itself stays valid."""
        client = client_factory("stateless")
        login(client)
        old_token = client.cookies.get(SESSION_COOKIE)

        response = client.post("/api/auth/logout")
        assert response.status_code == 200
        assert client.cookies.get(SESSION_COOKIE) is None
        assert client.get("/api/list").status_code == 401

        client.cookies.set(SESSION_COOKIE, old_token)
        assert client.get("/api/list").status_code == 200

    def test_rotated_secret_invalidates_tokens(self, client_factory, login):
        """Test that rotating the server secret revokes every outstanding token."""
        client = client_factory("stateless")
        login(client)

        client.app.state.credentials.rotate_secret()

        assert client.get("/api/list").status_code == 401


class TestStatefulLogin:
    """Tests for username/password login with server-side sessions."""

    def test_login_logout_scenario(self, client_factory, login, test_user_data):
        """Test 401 without a cookie, 200 with it, and 401 again with the revoked cookie."""
        client = client_factory("stateful")
        assert client.get("/api/list").status_code == 401

        login(client, test_user_data["username"], test_user_data["password"])
        old_session = client.cookies.get(SESSION_COOKIE)
        assert client.get("/api/list").status_code == 200

        response = client.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json()["message"] == "Logout successful"

        client.cookies.set(SESSION_COOKIE, old_session)
        response = client.get("/api/list")
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired session"

    def test_login_wrong_password(self, client_factory, test_user_data):
        """Test that a wrong password is rejected."""
        client = client_factory("stateful")
        response = client.post(
            "/api/auth/login",
            json={"username": test_user_data["username"], "password": "wrong-password"},
        )

        assert response.status_code == 401

    def test_login_unknown_user(self, client_factory, test_user_data):
        """Test that unknown users get the same answer as a wrong password."""
        client = client_factory("stateful")
        response = client.post(
            "/api/auth/login",
            json={"username": "nobody", "password": test_user_data["password"]},
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_login_missing_password(self, client_factory, test_user_data):
        """Test that the stateful strategy requires both username and password."""
        client = client_factory("stateful")
        response = client.post(
            "/api/auth/login",
            json={"username": test_user_data["username"]},
        )

        assert response.status_code == 400
        assert "password" in response.json()["message"]

    def test_access_token_not_accepted(self, client_factory):
        """Test that the stateless access token is not a stateful login."""
        client = client_factory("stateful")
        token = client.app.state.credentials.access_token
        response = client.post("/api/auth/login", json={"token": token})

        assert response.status_code == 400

    def test_logout_without_cookie(self, client_factory):
        """Test that logout is public and succeeds without a session."""
        client = client_factory("stateful")
        response = client.post("/api/auth/logout")

        assert response.status_code == 200


class TestSessionCookie:
    """Tests for the session cookie attributes."""

    def test_cookie_attributes(self, client_factory, login):
        """Test HttpOnly, SameSite=Strict, Path and Max-Age on the session cookie."""
        client = client_factory("stateless", session_hours=12)
        response = login(client)
        cookie = response.headers["set-cookie"].lower()

        assert cookie.startswith(f"{SESSION_COOKIE}=")
        assert "httponly" in cookie
        assert "samesite=strict" in cookie
        assert "path=/" in cookie
        assert "max-age=43200" in cookie
        assert "; secure" not in cookie

    def test_cookie_secure_when_forced(self, client_factory, login):
        """Test that LOCKBOX_COOKIE_SECURE marks the cookie Secure over plain HTTP."""
        client = client_factory("stateless", cookie_secure=True)
        token = client.app.state.credentials.access_token
        response = client.post("/api/auth/login", json={"token": token})

        assert response.status_code == 200
        assert "; secure" in response.headers["set-cookie"].lower()

    def test_logout_clears_cookie(self, client_factory, login):
        """Test that logout expires the cookie."""
        client = client_factory("stateless")
        login(client)
        response = client.post("/api/auth/logout")
        cookie = response.headers["set-cookie"].lower()

        assert cookie.startswith(f"{SESSION_COOKIE}=")
        assert "max-age=0" in cookie


class TestLoginRateLimit:
    """Tests for the login rate limit."""

    def test_login_rate_limited(self, client_factory, monkeypatch, rate_limiting):
        """Test that repeated logins from one client are throttled."""
        monkeypatch.setenv("LOCKBOX_LOGIN_RATE_LIMIT", "2/minute")
        client = client_factory("stateless")

        for _ in range(2):
            assert client.post("/api/auth/login", json={"token": "bad"}).status_code == 401

        response = client.post("/api/auth/login", json={"token": "bad"})
        assert response.status_code == 429
        assert response.json() == {"status": "error", "message": "Too many requests"}

    def test_building_an_app_leaves_limiter_alone(self, client_factory, rate_limiting):
        """Test that creating another app does not switch the shared limiter off."""
        client_factory("stateless", rate_limit_enabled=False)

        assert rate_limiting.enabled is True

"""HTTP tests for the captcha, auth and health routes, plus the rate limiter."""
import asyncio
import os
import sys
import time
import unittest
from unittest import mock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ.setdefault("DATABASE_URL", ":memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-that-is-long-enough-32ch")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "10000")

import jwt
from fastapi import FastAPI
from fastapi.testclient import TestClient

from notely.config import settings
from notely.main import app
from notely.middleware.rate_limit import RateLimitMiddleware
from notely.services.token import create_token, decode_token


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self._client_ctx = TestClient(app)
        self.client = self._client_ctx.__enter__()

    def tearDown(self):
        self._client_ctx.__exit__(None, None, None)

    def new_captcha(self) -> tuple[str, str]:
        """Return (id, answer) for a freshly generated challenge."""
        resp = self.client.post("/api/captcha/generate")
        self.assertEqual(resp.status_code, 200)
        captcha_id = resp.json()["id"]
        return captcha_id, app.state.captcha.store.get(captcha_id).answer

    def register(self, **overrides):
        captcha_id, answer = self.new_captcha()
        body = {
            "firstName": "Ada",
            "lastName": "Lovelace",
            "username": "Ada_L",
            "email": "Ada@Example.com",
            "password": "secret123",
            "captchaId": captcha_id,
            "captchaText": answer.lower(),
        }
        body.update(overrides)
        return self.client.post("/api/auth/register", json=body)

    def login(self, login="ada_l", password="secret123"):
        captcha_id, answer = self.new_captcha()
        return self.client.post("/api/auth/login", json={
            "emailOrUsername": login,
            "password": password,
            "captchaId": captcha_id,
            "captchaText": answer,
        })


# ---------------------------------------------------------------------------
# Captcha routes
# ---------------------------------------------------------------------------

class TestCaptchaRoutes(ApiTestCase):
    def test_generate_get_and_post(self):
        for method in ("get", "post"):
            resp = getattr(self.client, method)("/api/captcha/generate")
            self.assertEqual(resp.status_code, 200)
            data = resp.json()
            self.assertEqual(set(data), {"id", "image"})
            self.assertTrue(data["image"].startswith("data:image/svg+xml;base64,"))

    def test_verify_round_trip(self):
        captcha_id, answer = self.new_captcha()
        resp = self.client.post("/api/captcha/verify", json={"id": captcha_id, "text": "nope!"})
        self.assertEqual(resp.json(), {"valid": False})

        resp = self.client.post("/api/captcha/verify", json={"id": captcha_id, "text": answer.lower()})
        self.assertEqual(resp.json(), {"valid": True})

        resp = self.client.post("/api/captcha/verify", json={"id": captcha_id, "text": answer})
        self.assertEqual(resp.json(), {"valid": False})

    def test_verify_unknown_id(self):
        resp = self.client.post("/api/captcha/verify", json={"id": "does-not-exist", "text": "anything"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"valid": False})

    def test_verify_missing_fields_is_validation_error(self):
        for body in ({}, {"id": "abc"}, {"text": "abc"}, {"id": "", "text": "abc"}):
            resp = self.client.post("/api/captcha/verify", json=body)
            self.assertEqual(resp.status_code, 422, body)


# ---------------------------------------------------------------------------
# Auth routes
# ---------------------------------------------------------------------------

class TestAuthRoutes(ApiTestCase):
    def test_register_login_me(self):
        resp = self.register()
        self.assertEqual(resp.status_code, 201, resp.text)
        user = resp.json()["user"]
        self.assertEqual(user["username"], "ada_l")
        self.assertEqual(user["email"], "ada@example.com")
        self.assertEqual(user["firstName"], "Ada")
        self.assertNotIn("password", user)

        resp = self.login(login="ADA@example.com")
        self.assertEqual(resp.status_code, 200, resp.text)
        token = resp.json()["token"]
        self.assertEqual(decode_token(token)["user_id"], user["id"])

        resp = self.client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"]["id"], user["id"])

    def test_register_rejects_bad_captcha(self):
        resp = self.register(captchaText="wrong")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Invalid or expired captcha")

    def test_register_rejects_unknown_captcha(self):
        resp = self.register(captchaId="never-issued")
        self.assertEqual(resp.status_code, 400)

    def test_register_validation(self):
        self.assertEqual(self.register(email="not-an-email").status_code, 422)
        self.assertEqual(self.register(username="ab").status_code, 422)
        self.assertEqual(self.register(password="short").status_code, 422)

    def test_duplicate_registration(self):
        self.assertEqual(self.register().status_code, 201)

        resp = self.register(username="someone_else")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Email already registered")

        resp = self.register(email="other@example.com")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Username already taken")

    def test_login_rejects_bad_captcha_before_credentials(self):
        self.register()
        captcha_id, _ = self.new_captcha()
        resp = self.client.post("/api/auth/login", json={
            "emailOrUsername": "ada_l",
            "password": "secret123",
            "captchaId": captcha_id,
            "captchaText": "wrong",
        })
        self.assertEqual(resp.status_code, 400)

    def test_login_captcha_is_single_use(self):
        self.register()
        captcha_id, answer = self.new_captcha()
        body = {
            "emailOrUsername": "ada_l",
            "password": "secret123",
            "captchaId": captcha_id,
            "captchaText": answer,
        }
        self.assertEqual(self.client.post("/api/auth/login", json=body).status_code, 200)
        self.assertEqual(self.client.post("/api/auth/login", json=body).status_code, 400)

    def test_login_invalid_credentials(self):
        self.register()
        self.assertEqual(self.login(password="wrong-password").status_code, 401)
        self.assertEqual(self.login(login="nobody").status_code, 401)

    def test_me_requires_valid_token(self):
        self.assertEqual(self.client.get("/api/auth/me").status_code, 401)

        resp = self.client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["detail"], "Invalid token")

        now = int(time.time())
        expired = jwt.encode(
            {"user_id": "x", "exp": now - 10, "iat": now - 100},
            settings.jwt_secret,
            algorithm="HS256",
        )
        resp = self.client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["detail"], "Token expired")

        resp = self.client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {create_token('ghost')}"}
        )
        self.assertEqual(resp.status_code, 401)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth(ApiTestCase):
    def test_health(self):
        self.new_captcha()
        resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["message"], "Notely API is running!")
        self.assertNotIn("live_captchas", data)
        self.assertEqual(len(app.state.captcha.store), 1)


class TestLifespan(unittest.TestCase):
    def test_database_closed_when_shutdown_fails(self):
        import notely.database as database
        from notely.main import lifespan

        async def _run():
            async with lifespan(app):
                self.assertIsNotNone(database._db)

        failing_exit = mock.AsyncMock(side_effect=RuntimeError("sweeper stop failed"))
        with mock.patch("notely.main.CaptchaSweeper.__aexit__", failing_exit):
            with self.assertRaises(RuntimeError):
                asyncio.run(_run())
        self.assertIsNone(database._db)


# ---------------------------------------------------------------------------
# Rate Limiter
# ---------------------------------------------------------------------------

def _limited_app() -> FastAPI:
    limited = FastAPI()
    limited.add_middleware(RateLimitMiddleware)

    @limited.post("/ping")
    async def ping():
        return {"ok": True}

    return limited


class TestRateLimiterHttp(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch.multiple(
            settings, rate_limit_requests=3, rate_limit_window_s=60, trust_proxy=False
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = TestClient(_limited_app())

    def test_429_body_and_retry_after(self):
        statuses = [self.client.post("/ping").status_code for _ in range(5)]
        self.assertEqual(statuses, [200, 200, 200, 429, 429])

        resp = self.client.post("/ping")
        self.assertEqual(resp.status_code, 429)
        self.assertEqual(
            resp.json(), {"detail": "Too many requests from this IP, please try again later."}
        )
        self.assertEqual(resp.headers["Retry-After"], "60")

    def test_forwarded_for_ignored_without_trusted_proxy(self):
        for _ in range(3):
            self.assertEqual(self.client.post("/ping").status_code, 200)
        statuses = [
            self.client.post("/ping", headers={"X-Forwarded-For": f"10.0.0.{i}"}).status_code
            for i in range(20)
        ]
        self.assertEqual(set(statuses), {429})

    def test_forwarded_for_used_behind_trusted_proxy(self):
        with mock.patch.object(settings, "trust_proxy", True):
            for _ in range(3):
                resp = self.client.post("/ping", headers={"X-Forwarded-For": "10.0.0.1, 172.16.0.1"})
                self.assertEqual(resp.status_code, 200)
            resp = self.client.post("/ping", headers={"X-Forwarded-For": "10.0.0.1"})
            self.assertEqual(resp.status_code, 429)
            resp = self.client.post("/ping", headers={"X-Forwarded-For": "10.0.0.2"})
            self.assertEqual(resp.status_code, 200)


class TestRateLimiter(unittest.TestCase):
    def _middleware(self) -> RateLimitMiddleware:
        return RateLimitMiddleware(_limited_app())

    def test_allows_under_limit(self):
        mw = self._middleware()
        now = time.monotonic()
        for _ in range(5):
            self.assertTrue(mw.allow("1.2.3.4", now))
        self.assertEqual(len(mw._windows["1.2.3.4"]), 5)

    def test_blocks_over_limit(self):
        mw = self._middleware()
        now = time.monotonic()
        for _ in range(settings.rate_limit_requests):
            self.assertTrue(mw.allow("9.9.9.9", now))
        self.assertFalse(mw.allow("9.9.9.9", now))
        self.assertTrue(mw.allow("8.8.8.8", now))

    def test_window_slides(self):
        mw = self._middleware()
        now = 1000.0
        for _ in range(settings.rate_limit_requests):
            mw.allow("9.9.9.9", now)
        self.assertFalse(mw.allow("9.9.9.9", now))
        self.assertTrue(mw.allow("9.9.9.9", now + settings.rate_limit_window_s + 1))

    def test_idle_clients_are_forgotten(self):
        mw = self._middleware()
        now = 1000.0
        for i in range(50):
            mw.allow(f"10.0.0.{i}", now)
        self.assertEqual(len(mw._windows), 50)

        mw.allow("192.168.1.1", now + settings.rate_limit_window_s + 1)
        self.assertEqual(list(mw._windows), ["192.168.1.1"])


if __name__ == "__main__":
    unittest.main(verbosity=2)

"""Sign in with Apple adapter tests."""

from __future__ import annotations

import json
import time
import unittest
from urllib.parse import parse_qs, urlsplit

import httpx
import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from oauth_router import AppleConfig, AuthError, ProfileFetchError, create_oauth_router
from oauth_router.adapters.providers import AppleAdapter
from oauth_router.core.config import Settings

_TOKEN_URL = "https://appleid.apple.com/auth/token"
_CLIENT_ID = "com.example.web"
# Any key works: id_token claims are read without signature verification.
_ID_TOKEN_KEY = "apple-id-token-test-signing-key-0123456789abcdef"


def _id_token(**overrides) -> str:
    now = int(time.time())
    claims = {
        "iss": "https://appleid.apple.com",
        "aud": _CLIENT_ID,
        "sub": "000123.abcdef.0456",
        "email": "ada@privaterelay.appleid.com",
        "email_verified": "true",
        "iat": now,
        "exp": now + 600,
    }
    claims.update(overrides)
    return jwt.encode(claims, _ID_TOKEN_KEY, algorithm="HS256")


class AppleFlowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.private_key = ec.generate_private_key(ec.SECP256R1())
        self.private_pem = self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("utf-8")
        self.public_pem = self.private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("utf-8")
        self.token_requests: list[httpx.Request] = []
        self.token_payload: dict = {"access_token": "a.apple", "token_type": "Bearer", "id_token": _id_token()}
        self.failures: list[AuthError] = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.token_requests.append(request)
            return httpx.Response(200, json=self.token_payload)

        def on_failure(request: Request, error: AuthError) -> Response:
            self.failures.append(error)
            return JSONResponse(status_code=401, content={"error": str(error)})

        self.config = {
            "clientId": _CLIENT_ID,
            "teamId": "TEAM123456",
            "keyId": "KEY1234567",
            "privateKey": self.private_pem,
        }
        router = create_oauth_router(
            {
                "baseUrl": "https://x/auth",
                "providers": {"apple": self.config},
                "settings": Settings(environment="production", session_secret="test-session-secret"),
                "httpTransport": httpx.MockTransport(handler),
                "onFailure": on_failure,
            }
        )
        self.app = FastAPI()
        self.app.mount("/auth", router)
        self.client = TestClient(self.app, base_url="https://x", follow_redirects=False)

    def _start(self) -> str:
        response = self.client.get("/auth/apple")
        self.assertEqual(response.status_code, 302)
        return parse_qs(urlsplit(response.headers["location"]).query)["state"][0]

    def test_start_requests_form_post_response_mode(self) -> None:
        response = self.client.get("/auth/apple")

        location = urlsplit(response.headers["location"])
        self.assertEqual(location.netloc, "appleid.apple.com")
        self.assertEqual(location.path, "/auth/authorize")
        query = parse_qs(location.query)
        self.assertEqual(query["response_mode"], ["form_post"])
        self.assertEqual(query["response_type"], ["code"])
        self.assertEqual(query["client_id"], [_CLIENT_ID])
        self.assertEqual(query["redirect_uri"], ["https://x/auth/apple/callback"])
        self.assertEqual(query["scope"], ["email"])

    def test_form_posted_callback_returns_identity_from_id_token_and_user_field(self) -> None:
        state = self._start()
        user = {"name": {"firstName": "Ada", "lastName": "Lovelace"}, "email": "ada@privaterelay.appleid.com"}

        response = self.client.post(
            "/auth/apple/callback",
            data={"code": "c.apple", "state": state, "user": json.dumps(user)},
        )

        self.assertEqual(response.status_code, 200)
        identity = response.json()
        self.assertEqual(identity["provider"], "apple")
        self.assertEqual(identity["provider_user_id"], "000123.abcdef.0456")
        self.assertEqual(identity["display_name"], "Ada Lovelace")
        self.assertEqual(identity["emails"], ["ada@privaterelay.appleid.com"])
        self.assertEqual(identity["raw_profile"]["user"], user)

    def test_token_request_carries_es256_client_secret_signed_by_developer_key(self) -> None:
        state = self._start()

        self.client.post("/auth/apple/callback", data={"code": "c.apple", "state": state})

        [token_request] = self.token_requests
        form = parse_qs(token_request.content.decode("utf-8"))
        self.assertEqual(form["client_id"], [_CLIENT_ID])
        self.assertEqual(form["code"], ["c.apple"])
        client_secret = form["client_secret"][0]
        self.assertEqual(jwt.get_unverified_header(client_secret)["kid"], "KEY1234567")
        self.assertEqual(jwt.get_unverified_header(client_secret)["alg"], "ES256")
        claims = jwt.decode(
            client_secret,
            self.public_pem,
            algorithms=["ES256"],
            audience="https://appleid.apple.com",
            issuer="TEAM123456",
        )
        self.assertEqual(claims["sub"], _CLIENT_ID)
        self.assertLessEqual(claims["exp"] - claims["iat"], 300)

    def test_callback_does_not_require_the_session_cookie(self) -> None:
        state = self._start()
        cross_site = TestClient(self.app, base_url="https://x", follow_redirects=False)

        response = cross_site.post("/auth/apple/callback", data={"code": "c.apple", "state": state})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["provider"], "apple")

    def test_unknown_state_is_rejected_without_contacting_apple(self) -> None:
        response = self.client.post("/auth/apple/callback", data={"code": "c.apple", "state": "forged"})

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "https://x/auth/failure")
        self.assertEqual(self.client.get("/auth/failure").status_code, 401)
        self.assertEqual(self.failures[0].code, "STATE_MISMATCH")
        self.assertEqual(self.token_requests, [])

    def test_invalid_id_token_claims_fail_as_profile_fetch_error(self) -> None:
        cases = {
            "wrong_audience": _id_token(aud="com.attacker.web"),
            "wrong_issuer": _id_token(iss="https://evil.example"),
            "expired": _id_token(exp=int(time.time()) - 60),
            "garbage": "not-a-jwt",
        }
        for label, id_token in cases.items():
            with self.subTest(case=label):
                self.failures.clear()
                self.token_payload = {"access_token": "a.apple", "id_token": id_token}
                state = self._start()

                self.client.post("/auth/apple/callback", data={"code": "c.apple", "state": state})
                self.client.get("/auth/failure")

                self.assertIsInstance(self.failures[0], ProfileFetchError)

    def test_missing_id_token_fails_as_profile_fetch_error(self) -> None:
        self.token_payload = {"access_token": "a.apple"}
        state = self._start()

        self.client.post("/auth/apple/callback", data={"code": "c.apple", "state": state})
        self.client.get("/auth/failure")

        self.assertIsInstance(self.failures[0], ProfileFetchError)

    def test_malformed_user_field_is_ignored(self) -> None:
        state = self._start()

        response = self.client.post(
            "/auth/apple/callback",
            data={"code": "c.apple", "state": state, "user": "{not json"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["display_name"])
        self.assertNotIn("user", response.json()["raw_profile"])

    def test_non_string_user_name_and_email_parts_are_ignored(self) -> None:
        cases = {
            "numeric_first_name": {"name": {"firstName": 5}},
            "list_last_name": {"name": {"firstName": "Ada", "lastName": ["Lovelace"]}},
            "object_email": {"name": {"firstName": "Ada"}, "email": {"address": "x@example.com"}},
        }
        expected_names = {"numeric_first_name": None, "list_last_name": "Ada", "object_email": "Ada"}
        self.token_payload = {"access_token": "a.apple", "id_token": _id_token(email=None)}
        for label, user in cases.items():
            with self.subTest(case=label):
                state = self._start()

                response = self.client.post(
                    "/auth/apple/callback",
                    data={"code": "c.apple", "state": state, "user": json.dumps(user)},
                )

                self.assertEqual(response.status_code, 200)
                self.assertEqual(response.json()["display_name"], expected_names[label])
                self.assertEqual(response.json()["emails"], [])

    def test_unparseable_callback_body_redirects_to_failure(self) -> None:
        self._start()

        response = self.client.post(
            "/auth/apple/callback",
            content=b"garbage",
            headers={"content-type": "multipart/form-data"},
        )

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "https://x/auth/failure")
        self.assertEqual(self.client.get("/auth/failure").status_code, 401)
        self.assertEqual(self.failures[0].code, "STATE_MISMATCH")
        self.assertEqual(self.token_requests, [])

    def test_get_on_apple_callback_is_not_routed(self) -> None:
        response = self.client.get("/auth/apple/callback", params={"code": "c", "state": "s"})

        self.assertEqual(response.status_code, 405)

    def test_adapter_client_secret_uses_configured_identifiers(self) -> None:
        adapter = AppleAdapter(
            AppleConfig(client_id=_CLIENT_ID, team_id="TEAM123456", key_id="KEY1234567", private_key=self.private_pem)
        )

        claims = jwt.decode(
            adapter.client_secret(),
            self.public_pem,
            algorithms=["ES256"],
            audience="https://appleid.apple.com",
        )

        self.assertEqual(claims["iss"], "TEAM123456")
        self.assertEqual(claims["sub"], _CLIENT_ID)


if __name__ == "__main__":
    unittest.main()

import os
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

os.environ.setdefault("JWT_SECRET", "test-secret")

import requests

from rondo.core.deps import otp_store_dep, sms_gateway_dep, user_directory_dep
from rondo.core.security import TokenSigningError, validate_session_token
from rondo.main import app
from rondo.services.otp_store import InMemoryOtpStore
from rondo.services.sms_service import SmsDeliveryError, TwilioSmsGateway
from rondo.services.user_directory import InMemoryUserDirectory

PHONE = "+15551234567"


class _Clock:
    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class _Gateway:
    def __init__(self):
        self.fail = False
        self.sent: list[tuple[str, str]] = []

    def send(self, *, to: str, body: str) -> dict:
        if self.fail:
            raise SmsDeliveryError("unreachable")
        self.sent.append((to, body))
        return {"provider": "test", "status": "accepted"}


class OtpApiTests(unittest.TestCase):
    def setUp(self):
        self.clock = _Clock()
        self.store = InMemoryOtpStore(clock=self.clock)
        self.gateway = _Gateway()
        self.users = InMemoryUserDirectory()
        app.dependency_overrides[otp_store_dep] = lambda: self.store
        app.dependency_overrides[sms_gateway_dep] = lambda: self.gateway
        app.dependency_overrides[user_directory_dep] = lambda: self.users
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()

    def _request(self, phone: str = PHONE, code: int = 42017):
        with patch("rondo.services.otp_service.secrets.randbelow", return_value=code):
            return self.client.post("/auth/otp/request", json={"phone_number": phone})

    def _verify(self, otp: str, phone: str = PHONE):
        return self.client.post("/auth/otp/verify", json={"phone_number": phone, "otp": otp})

    def test_request_and_verify_scenario(self):
        sent = self._request()
        self.assertEqual(sent.status_code, 200)
        self.assertEqual(sent.json(), {"message": "OTP sent successfully"})
        self.assertEqual(self.store.get(PHONE).code, "042017")
        self.assertIn("042017", self.gateway.sent[0][1])

        first = self._verify("042017")
        self.assertEqual(first.status_code, 200)
        body = first.json()
        self.assertEqual(body.get("message"), "Phone number verified successfully")
        claims = validate_session_token(body.get("token"))
        self.assertEqual(claims.user_id, f"temp_{PHONE}")

        second = self._verify("042017")
        self.assertEqual(second.status_code, 400)
        self.assertEqual(second.json(), {"error": "No OTP request found for this phone number"})

    def test_wrong_code_then_right_code(self):
        self._request()
        wrong = self._verify("000000")
        self.assertEqual(wrong.status_code, 400)
        self.assertEqual(wrong.json().get("error"), "Invalid OTP")
        right = self._verify("042017")
        self.assertEqual(right.status_code, 200)

    def test_expired_code(self):
        self.clock.now = datetime.now(timezone.utc) - timedelta(minutes=6)
        self._request()
        response = self._verify("042017")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json().get("error"), "OTP has expired")
        self.assertIsNotNone(self.store.get(PHONE))

    def test_delivery_failure_is_500_and_keeps_code(self):
        self.gateway.fail = True
        response = self._request()
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json().get("error"), "Failed to send OTP")
        self.assertEqual(self.store.get(PHONE).code, "042017")

    def test_missing_fields_are_400(self):
        response = self.client.post("/auth/otp/request", json={})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json().get("error"), "Invalid request")

        response = self.client.post("/auth/otp/verify", json={"phone_number": PHONE})
        self.assertEqual(response.status_code, 400)

    def test_bad_phone_shape_is_400(self):
        response = self.client.post("/auth/otp/request", json={"phone_number": "not-a-phone"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json().get("error"), "Invalid phone number")
        self.assertEqual(self.gateway.sent, [])

    def test_signing_failure_is_500(self):
        self._request()
        with patch("rondo.services.otp_service.issue_session_token", side_effect=TokenSigningError("boom")):
            response = self._verify("042017")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json().get("error"), "Failed to generate token")

    def test_twilio_network_error_is_500(self):
        client = MagicMock()
        client.messages.create.side_effect = requests.ConnectionError("down")
        gateway = TwilioSmsGateway(account_sid="AC1", auth_token="tok", from_number="+15550001111", client=client)
        app.dependency_overrides[sms_gateway_dep] = lambda: gateway
        response = self._request()
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json().get("error"), "Failed to send OTP")
        self.assertEqual(self.store.get(PHONE).code, "042017")

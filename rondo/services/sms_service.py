from __future__ import annotations

import logging
from typing import Any, Protocol

import requests
from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from rondo.core.config import settings

_LOG = logging.getLogger("rondo.sms")

DEFAULT_OTP_TEMPLATE = "Hello user, the verification code is: {code}"
MOCK_PROVIDERS = {"", "dummy", "mock", "console"}
TWILIO_PROVIDERS = {"twilio"}


class SmsDeliveryError(Exception):
    pass


class SmsGateway(Protocol):
    def send(self, *, to: str, body: str) -> dict[str, Any]:
        ...


class MockSmsGateway:
    def send(self, *, to: str, body: str) -> dict[str, Any]:
        _LOG.warning("[SMS MOCK] to=%s body=%s", to, body)
        return {
            "provider": "mock_sms",
            "status": "accepted",
            "message": "SMS provider response mocked",
            "sent": False,
            "mocked": True,
        }


class UnsupportedSmsGateway:
    def __init__(self, provider: str):
        self.provider = provider

    def send(self, *, to: str, body: str) -> dict[str, Any]:
        raise SmsDeliveryError(f"Unknown SMS_PROVIDER: {self.provider}")


class TwilioSmsGateway:
    def __init__(self, *, account_sid: str, auth_token: str, from_number: str, client: Any = None):
        self.account_sid = str(account_sid or "").strip()
        self.auth_token = str(auth_token or "").strip()
        self.from_number = str(from_number or "").strip()
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = TwilioClient(self.account_sid, self.auth_token)
        return self._client

    def send(self, *, to: str, body: str) -> dict[str, Any]:
        if not self.configured:
            raise SmsDeliveryError("Twilio credentials are not configured")
        try:
            message = self._get_client().messages.create(to=to, from_=self.from_number, body=body)
        except (TwilioException, requests.RequestException) as exc:
            _LOG.error("Error sending SMS to %s: %s", to, exc)
            raise SmsDeliveryError(f"Twilio rejected the message: {exc}") from exc
        _LOG.info("SMS sent to %s via Twilio sid=%s", to, getattr(message, "sid", None))
        return {
            "provider": "twilio",
            "status": str(getattr(message, "status", None) or "accepted"),
            "message": "SMS sent",
            "sent": True,
            "sid": getattr(message, "sid", None),
        }


def _provider() -> str:
    return str(settings.SMS_PROVIDER or "dummy").strip().lower()


def _twilio_checks() -> dict[str, bool]:
    return {
        "account_sid_configured": bool(str(settings.TWILIO_ACCOUNT_SID or "").strip()),
        "auth_token_configured": bool(str(settings.TWILIO_AUTH_TOKEN or "").strip()),
        "from_number_configured": bool(str(settings.TWILIO_FROM_NUMBER or "").strip()),
    }


def log_configuration_warnings() -> list[str]:
    """Warn about missing gateway settings without refusing to start."""
    provider = _provider()
    warnings: list[str] = []
    if provider in TWILIO_PROVIDERS:
        if not all(_twilio_checks().values()):
            warnings.append(
                "One or more Twilio credentials are missing: "
                "set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER"
            )
    elif provider not in MOCK_PROVIDERS:
        warnings.append(f"Unknown SMS_PROVIDER: {provider}")
    for line in warnings:
        _LOG.warning(line)
    return warnings


def build_sms_gateway() -> SmsGateway:
    provider = _provider()
    if provider in MOCK_PROVIDERS:
        return MockSmsGateway()
    if provider in TWILIO_PROVIDERS:
        return TwilioSmsGateway(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_FROM_NUMBER,
        )
    return UnsupportedSmsGateway(provider)


def build_otp_message(code: str) -> str:
    template = str(settings.OTP_SMS_TEMPLATE or "").strip() or DEFAULT_OTP_TEMPLATE
    try:
        return template.format(code=code)
    except (KeyError, IndexError, ValueError):
        return DEFAULT_OTP_TEMPLATE.format(code=code)


def send_otp_message(gateway: SmsGateway, *, phone: str, code: str) -> dict[str, Any]:
    return gateway.send(to=phone, body=build_otp_message(code))


def sms_provider_health() -> dict[str, Any]:
    provider = _provider()
    if provider in MOCK_PROVIDERS:
        return {
            "provider": "dummy",
            "status": "ok",
            "mode": "mock",
            "can_send": True,
            "checks": {"mock_mode": True},
            "issues": [],
        }

    if provider in TWILIO_PROVIDERS:
        checks = _twilio_checks()
        issues: list[str] = []
        if not checks["account_sid_configured"]:
            issues.append("TWILIO_ACCOUNT_SID is not set")
        if not checks["auth_token_configured"]:
            issues.append("TWILIO_AUTH_TOKEN is not set")
        if not checks["from_number_configured"]:
            issues.append("TWILIO_FROM_NUMBER is not set")
        can_send = all(checks.values())
        return {
            "provider": "twilio",
            "status": "ok" if can_send else "degraded",
            "mode": "real",
            "can_send": can_send,
            "checks": checks,
            "issues": issues,
        }

    return {
        "provider": provider,
        "status": "error",
        "mode": "unknown",
        "can_send": False,
        "checks": {"provider_supported": False},
        "issues": [f"Unknown SMS_PROVIDER: {provider}"],
    }


_cached_gateway: SmsGateway | None = None


def get_sms_gateway() -> SmsGateway:
    global _cached_gateway
    if _cached_gateway is None:
        _cached_gateway = build_sms_gateway()
    return _cached_gateway


def reset_sms_gateway_for_tests() -> None:
    global _cached_gateway
    _cached_gateway = None

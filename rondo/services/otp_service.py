from __future__ import annotations

import hmac
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from rondo.core.security import Identity, issue_session_token
from rondo.services.otp_store import OtpStore
from rondo.services.sms_service import SmsGateway, send_otp_message
from rondo.services.user_directory import UserLookup

_LOG = logging.getLogger("rondo.otp")

OTP_LENGTH = 6
DEFAULT_OTP_TTL = timedelta(minutes=5)
_PHONE_RE = re.compile(r"^\+?[0-9]{7,15}$")
_CODE_RE = re.compile(r"^[0-9]{6}$")


class OtpError(Exception):
    pass


class OtpValidationError(OtpError):
    pass


class OtpNotFoundError(OtpError):
    pass


class OtpExpiredError(OtpError):
    pass


class OtpMismatchError(OtpError):
    pass


@dataclass(frozen=True)
class VerifiedSession:
    token: str
    identity: Identity

    @property
    def registered(self) -> bool:
        return not self.identity.provisional


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def generate_code() -> str:
    # randbelow rejection-samples, so all 10**6 codes are equally likely.
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def normalize_phone(raw: str | None) -> str:
    phone = str(raw or "").strip()
    for ch in (" ", "-", "(", ")"):
        phone = phone.replace(ch, "")
    if not _PHONE_RE.fullmatch(phone):
        raise OtpValidationError("Invalid phone number")
    return phone


def normalize_code(raw: str | None) -> str:
    code = str(raw or "").strip()
    if not _CODE_RE.fullmatch(code):
        raise OtpValidationError("OTP must be exactly 6 digits")
    return code


class OtpAuthService:
    """Issues, checks and consumes phone OTPs and exchanges them for session tokens.

    A phone's state lives only in the store: no record means no active OTP,
    a record older than ``ttl`` is expired, anything else is live. Expired
    and mismatched records are left in place; only a successful verify
    removes one.
    """

    def __init__(
        self,
        *,
        store: OtpStore,
        gateway: SmsGateway,
        users: UserLookup,
        ttl: timedelta = DEFAULT_OTP_TTL,
        clock: Callable[[], datetime] = _now_utc,
        code_factory: Callable[[], str] = generate_code,
    ):
        self.store = store
        self.gateway = gateway
        self.users = users
        self.ttl = ttl
        self._clock = clock
        self._code_factory = code_factory

    def request_otp(self, phone_number: str) -> dict[str, Any]:
        phone = normalize_phone(phone_number)
        code = self._code_factory()
        self.store.put(phone, code)
        # The code stays stored if delivery fails; a new request overwrites it.
        response = send_otp_message(self.gateway, phone=phone, code=code)
        _LOG.info("OTP issued phone=%s provider=%s", phone, response.get("provider"))
        return response

    def verify_otp(self, phone_number: str, otp: str) -> VerifiedSession:
        phone = normalize_phone(phone_number)
        code = normalize_code(otp)

        record = self.store.get(phone)
        if record is None:
            raise OtpNotFoundError("No OTP request found for this phone number")
        if self._clock() - record.issued_at > self.ttl:
            raise OtpExpiredError("OTP has expired")
        if not hmac.compare_digest(record.code, code):
            raise OtpMismatchError("Invalid OTP")
        if not self.store.discard(phone, record):
            # Consumed or replaced by a concurrent request since the read.
            raise OtpNotFoundError("No OTP request found for this phone number")

        user = self.users.get_by_phone(phone)
        if user is not None:
            identity = Identity(
                user_id=user.id,
                phone=user.phone,
                first_name=user.first_name,
                last_name=user.last_name,
            )
        else:
            identity = Identity.provisional_for(phone)
        token = issue_session_token(identity)
        _LOG.info("OTP verified phone=%s provisional=%s", phone, identity.provisional)
        return VerifiedSession(token=token, identity=identity)

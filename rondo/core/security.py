from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from rondo.core.config import settings

HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]
PROVISIONAL_ID_PREFIX = "temp_"


class InvalidTokenError(Exception):
    pass


class TokenSigningError(Exception):
    pass


@dataclass(frozen=True)
class Identity:
    user_id: str
    phone: str
    first_name: str = ""
    last_name: str = ""
    provisional: bool = False

    @classmethod
    def provisional_for(cls, phone: str) -> "Identity":
        """Stand-in identity for a verified phone that has no user record yet."""
        return cls(user_id=f"{PROVISIONAL_ID_PREFIX}{phone}", phone=phone, provisional=True)


@dataclass(frozen=True)
class SessionClaims:
    subject: str
    user_id: str
    phone: str
    first_name: str
    last_name: str
    issuer: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime

    def to_payload(self) -> dict:
        return {
            "sub": self.subject,
            "user_id": self.user_id,
            "phone": self.phone,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "iss": self.issuer,
            "iat": int(self.issued_at.timestamp()),
            "nbf": int(self.not_before.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }

    @classmethod
    def from_payload(cls, data: dict) -> "SessionClaims":
        return cls(
            subject=str(data.get("sub") or ""),
            user_id=str(data.get("user_id") or ""),
            phone=str(data.get("phone") or ""),
            first_name=str(data.get("first_name") or ""),
            last_name=str(data.get("last_name") or ""),
            issuer=str(data.get("iss") or ""),
            issued_at=datetime.fromtimestamp(int(data["iat"]), tz=timezone.utc),
            not_before=datetime.fromtimestamp(int(data["nbf"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(data["exp"]), tz=timezone.utc),
        )

    @property
    def is_provisional(self) -> bool:
        return self.user_id.startswith(PROVISIONAL_ID_PREFIX)


def create_jwt(payload: dict, secret: str, expires_delta: timedelta, *, now: datetime | None = None) -> str:
    issued = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    data = payload.copy()
    data.setdefault("iat", int(issued.timestamp()))
    data.setdefault("nbf", int(issued.timestamp()))
    data.setdefault("exp", int((issued + expires_delta).timestamp()))
    return jwt.encode(data, secret, algorithm=settings.JWT_ALGORITHM)


def decode_jwt(token: str, secret: str, *, issuer: str | None = None) -> dict:
    return jwt.decode(token, secret, algorithms=HMAC_ALGORITHMS, issuer=issuer)


def build_session_claims(identity: Identity, *, now: datetime | None = None) -> SessionClaims:
    issued = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).replace(microsecond=0)
    return SessionClaims(
        subject=identity.user_id,
        user_id=identity.user_id,
        phone=identity.phone,
        first_name=identity.first_name,
        last_name=identity.last_name,
        issuer=settings.JWT_ISSUER,
        issued_at=issued,
        not_before=issued,
        expires_at=issued + timedelta(hours=settings.JWT_TTL_HOURS),
    )


def issue_session_token(identity: Identity, *, now: datetime | None = None) -> str:
    claims = build_session_claims(identity, now=now)
    try:
        return create_jwt(
            claims.to_payload(),
            settings.JWT_SECRET,
            claims.expires_at - claims.issued_at,
            now=claims.issued_at,
        )
    except JWTError as exc:
        raise TokenSigningError("Failed to generate token") from exc


def validate_session_token(token: str) -> SessionClaims:
    """Verify signature, algorithm, issuer and the [nbf, exp] window.

    Every failure collapses into one InvalidTokenError so callers cannot
    tell a bad signature from an expired token.
    """
    try:
        data = decode_jwt(token, settings.JWT_SECRET, issuer=settings.JWT_ISSUER)
        return SessionClaims.from_payload(data)
    except (JWTError, KeyError, TypeError, ValueError) as exc:
        raise InvalidTokenError("Invalid or expired token") from exc

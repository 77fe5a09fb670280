from datetime import timedelta

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from rondo.core.config import settings
from rondo.core.security import InvalidTokenError, SessionClaims, validate_session_token
from rondo.services.game_service import GameRegistry, get_game_registry
from rondo.services.otp_service import OtpAuthService
from rondo.services.otp_store import OtpStore, get_otp_store
from rondo.services.sms_service import SmsGateway, get_sms_gateway
from rondo.services.user_directory import InMemoryUserDirectory, get_user_directory

bearer = HTTPBearer(auto_error=False)

def get_current_session(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> SessionClaims:
    if not request.headers.get("Authorization"):
        raise HTTPException(status_code=401, detail="Authorization header is required")
    if not creds:
        raise HTTPException(status_code=401, detail="Authorization header format must be Bearer {token}")
    try:
        return validate_session_token(creds.credentials)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

def otp_store_dep() -> OtpStore:
    return get_otp_store()

def sms_gateway_dep() -> SmsGateway:
    return get_sms_gateway()

def user_directory_dep() -> InMemoryUserDirectory:
    return get_user_directory()

def game_registry_dep() -> GameRegistry:
    return get_game_registry()

def otp_auth_service_dep(
    store: OtpStore = Depends(otp_store_dep),
    gateway: SmsGateway = Depends(sms_gateway_dep),
    users: InMemoryUserDirectory = Depends(user_directory_dep),
) -> OtpAuthService:
    return OtpAuthService(
        store=store,
        gateway=gateway,
        users=users,
        ttl=timedelta(seconds=settings.OTP_TTL_SECONDS),
    )

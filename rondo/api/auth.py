from __future__ import annotations

import re
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from rondo.api.users import user_out
from rondo.core.deps import get_current_session, otp_auth_service_dep, user_directory_dep
from rondo.core.security import Identity, SessionClaims, TokenSigningError, issue_session_token
from rondo.schemas.auth import MessageOut, OtpRequestIn, OtpVerifyIn, OtpVerifyOut
from rondo.schemas.users import UserRegistrationIn, UserRegisteredOut
from rondo.services.otp_service import (
    OtpAuthService,
    OtpExpiredError,
    OtpMismatchError,
    OtpNotFoundError,
    OtpValidationError,
)
from rondo.services.sms_service import SmsDeliveryError
from rondo.services.user_directory import InMemoryUserDirectory, UserAlreadyExistsError

router = APIRouter()

_DOB_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")


@router.post("/otp/request", response_model=MessageOut)
def request_otp(payload: OtpRequestIn, service: OtpAuthService = Depends(otp_auth_service_dep)):
    try:
        service.request_otp(payload.phone_number)
    except OtpValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SmsDeliveryError as exc:
        raise HTTPException(status_code=500, detail="Failed to send OTP") from exc
    return {"message": "OTP sent successfully"}


@router.post("/otp/verify", response_model=OtpVerifyOut)
def verify_otp(payload: OtpVerifyIn, service: OtpAuthService = Depends(otp_auth_service_dep)):
    try:
        session = service.verify_otp(payload.phone_number, payload.otp)
    except (OtpValidationError, OtpNotFoundError, OtpExpiredError, OtpMismatchError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except TokenSigningError as exc:
        raise HTTPException(status_code=500, detail="Failed to generate token") from exc
    return {"message": "Phone number verified successfully", "token": session.token}


@router.post("/register", response_model=UserRegisteredOut, status_code=201)
def register_user(
    payload: UserRegistrationIn,
    session: SessionClaims = Depends(get_current_session),
    users: InMemoryUserDirectory = Depends(user_directory_dep),
):
    raw_dob = payload.dob.strip()
    try:
        if not _DOB_RE.fullmatch(raw_dob):
            raise ValueError(raw_dob)
        dob = datetime.strptime(raw_dob, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD") from exc

    if not session.phone:
        raise HTTPException(status_code=400, detail="Phone number not found in token")

    try:
        user = users.create_user(
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
            dob=dob,
            phone=session.phone,
        )
    except UserAlreadyExistsError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    identity = Identity(
        user_id=user.id,
        phone=user.phone,
        first_name=user.first_name,
        last_name=user.last_name,
    )
    try:
        token = issue_session_token(identity)
    except TokenSigningError as exc:
        raise HTTPException(status_code=500, detail="Failed to generate token") from exc
    return {"user": user_out(user), "token": token}

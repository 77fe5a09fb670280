from fastapi import APIRouter, Depends, HTTPException

from rondo.core.deps import get_current_session, user_directory_dep
from rondo.schemas.users import UserOut
from rondo.services.otp_service import OtpValidationError, normalize_phone
from rondo.services.user_directory import InMemoryUserDirectory, User

router = APIRouter()


def user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        dob=user.dob,
        phone=user.phone,
        created_at=user.created_at,
    )


@router.get("/{phone}", response_model=UserOut, dependencies=[Depends(get_current_session)])
def get_user_profile(phone: str, users: InMemoryUserDirectory = Depends(user_directory_dep)):
    try:
        user = users.get_by_phone(normalize_phone(phone))
    except OtpValidationError:
        user = None
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user_out(user)

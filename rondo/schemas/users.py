from datetime import date, datetime

from pydantic import BaseModel, Field


class UserRegistrationIn(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    dob: str  # YYYY-MM-DD


class UserOut(BaseModel):
    id: str
    first_name: str
    last_name: str
    dob: date
    phone: str
    created_at: datetime


class UserRegisteredOut(BaseModel):
    user: UserOut
    token: str

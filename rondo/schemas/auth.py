from pydantic import BaseModel


class OtpRequestIn(BaseModel):
    phone_number: str


class OtpVerifyIn(BaseModel):
    phone_number: str
    otp: str


class MessageOut(BaseModel):
    message: str


class OtpVerifyOut(BaseModel):
    message: str
    token: str

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "rondo-api"
    LOG_LEVEL: str = "INFO"

    # Required: Settings() raises when unset or blank.
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "rondo-api"
    JWT_TTL_HOURS: int = 24

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8081"

    OTP_TTL_SECONDS: int = 300
    OTP_SMS_TEMPLATE: str = "Hello user, the verification code is: {code}"
    OTP_STORE_BACKEND: str = "memory"  # memory | redis
    OTP_REDIS_RETENTION_SECONDS: int = 86400
    REDIS_URL: str = "redis://localhost:6379/0"

    SMS_PROVIDER: str = "dummy"  # dummy | twilio
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_FROM_NUMBER: str = ""

    @field_validator("JWT_SECRET")
    @classmethod
    def _secret_not_blank(cls, value: str) -> str:
        if not str(value or "").strip():
            raise ValueError("JWT_SECRET must be set to a non-empty value")
        return value

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def _hmac_only(cls, value: str) -> str:
        alg = str(value or "").strip().upper()
        if alg not in {"HS256", "HS384", "HS512"}:
            raise ValueError("JWT_ALGORITHM must be one of HS256, HS384, HS512")
        return alg

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()

from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None

    CORS_ORIGINS: list[str] = ["*"]

    WS_PATH: str = "/ws"
    WS_HEARTBEAT_SECONDS: float = 30
    WS_MAX_MISSED_HEARTBEATS: int = 3
    WS_AUTH_MODE: Literal["token", "trust"] = "token"

    OTP_TTL_SECONDS: int = 600
    OTP_PRUNE_INTERVAL_SECONDS: float = 60

    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_PHONE_NUMBER: str | None = None
    TWILIO_API_URL: str = "https://api.twilio.com"
    SMS_TIMEOUT_SECONDS: float = 10.0

    REDIS_URL: str = "redis://localhost:6379/0"
    ORDER_EVENTS_ENABLED: bool = False
    ORDER_EVENTS_STREAM: str = "portal.orders"
    ORDER_EVENTS_GROUP: str = "portal-realtime"

    @property
    def twilio_configured(self) -> bool:
        return bool(
            self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_PHONE_NUMBER
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()

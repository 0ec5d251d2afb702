from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PHONE_PATTERN = r"^\+?[0-9\s\-()]+$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestOtpRequest(_CamelModel):
    phone: str = Field(min_length=1)


class RequestOtpResponse(_CamelModel):
    message: str
    expires_at: datetime
    code: str | None = None


class VerifyOtpRequest(_CamelModel):
    phone: str = Field(pattern=PHONE_PATTERN)
    code: str = Field(min_length=6, max_length=6)


class VerifyOtpResponse(_CamelModel):
    message: str
    verified: bool

from __future__ import annotations

from fastapi import APIRouter

from shield_portal.api.deps import CurrentPrincipal, OtpEngineDep, UserLedgerDep
from shield_portal.api.v1.schemas.otp import (
    RequestOtpRequest,
    RequestOtpResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from shield_portal.application.exceptions import ValidationError

router = APIRouter(prefix="/api", tags=["otp"])

INVALID_CODE = "Invalid or expired OTP code"


@router.post("/request-otp", response_model=RequestOtpResponse, response_model_exclude_none=True)
async def request_otp(
    body: RequestOtpRequest,
    principal: CurrentPrincipal,
    engine: OtpEngineDep,
) -> RequestOtpResponse:
    phone = body.phone.strip()
    if not phone:
        raise ValidationError("Phone number is required")
    issue = await engine.request_code(principal.subject_id, phone)
    return RequestOtpResponse(message=issue.message, expires_at=issue.expires_at, code=issue.code)


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(
    body: VerifyOtpRequest,
    principal: CurrentPrincipal,
    engine: OtpEngineDep,
    users: UserLedgerDep,
) -> VerifyOtpResponse:
    phone = body.phone.strip()
    if not await engine.verify_code(principal.subject_id, phone, body.code):
        raise ValidationError(INVALID_CODE)
    await users.mark_verified(principal.subject_id, phone)
    return VerifyOtpResponse(message="Phone verified successfully", verified=True)

"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shield_portal.application.dto.principal import Principal
from shield_portal.application.ports.auth import TokenVerifier
from shield_portal.application.ports.users import UserVerificationWriter
from shield_portal.config import Settings
from shield_portal.infrastructure.auth.hs256_verifier import HS256Verifier
from shield_portal.infrastructure.auth.jwks_verifier import JWKSVerifier
from shield_portal.infrastructure.ws.gateway import RealtimeGateway
from shield_portal.services.otp_service import OtpEngine

_bearer_scheme = HTTPBearer()


def build_verifier(settings: Settings) -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


def get_verifier(request: Request) -> TokenVerifier:
    return request.app.state.verifier


def get_gateway(request: Request) -> RealtimeGateway:
    return request.app.state.gateway


def get_otp_engine(request: Request) -> OtpEngine:
    return request.app.state.otp_engine


def get_user_ledger(request: Request) -> UserVerificationWriter:
    return request.app.state.users


GatewayDep = Annotated[RealtimeGateway, Depends(get_gateway)]
OtpEngineDep = Annotated[OtpEngine, Depends(get_otp_engine)]
UserLedgerDep = Annotated[UserVerificationWriter, Depends(get_user_ledger)]


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_verifier)],
) -> Principal:
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def get_current_admin(principal: CurrentPrincipal) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden - Admin access required")
    return principal


CurrentAdmin = Annotated[Principal, Depends(get_current_admin)]

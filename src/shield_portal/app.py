from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shield_portal.api.deps import build_verifier
from shield_portal.api.middleware.correlation_id import CorrelationIdMiddleware
from shield_portal.api.middleware.metrics import RequestTimingMiddleware
from shield_portal.api.v1.routers import admin_notifications, health, otp, ws
from shield_portal.application.exceptions import ValidationError
from shield_portal.application.ports.clock import SystemClock
from shield_portal.application.ports.sms import SmsSender
from shield_portal.config import Settings, settings as default_settings
from shield_portal.infrastructure.otp.memory_store import InMemoryOtpCodeStore
from shield_portal.infrastructure.periodic import PeriodicTask
from shield_portal.infrastructure.sms.twilio_sender import TwilioSmsSender, UnconfiguredSmsSender
from shield_portal.infrastructure.users.memory_directory import InMemoryUserVerificationLedger
from shield_portal.infrastructure.ws.gateway import RealtimeGateway
from shield_portal.infrastructure.ws.registry import ConnectionRegistry
from shield_portal.services.otp_service import OtpEngine
from shield_portal.workers.order_events_consumer import create_order_events_consumer

logger = logging.getLogger(__name__)


def _build_sms_sender(settings: Settings) -> SmsSender:
    if settings.twilio_configured:
        logger.info("Twilio SMS delivery configured")
        return TwilioSmsSender(
            settings.TWILIO_ACCOUNT_SID,  # type: ignore[arg-type]
            settings.TWILIO_AUTH_TOKEN,  # type: ignore[arg-type]
            settings.TWILIO_PHONE_NUMBER,  # type: ignore[arg-type]
            base_url=settings.TWILIO_API_URL,
            timeout=settings.SMS_TIMEOUT_SECONDS,
        )
    logger.info("Twilio credentials not found, OTP codes will be returned in responses")
    return UnconfiguredSmsSender()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    settings: Settings = app.state.settings
    gateway: RealtimeGateway = app.state.gateway
    engine: OtpEngine = app.state.otp_engine

    tasks = [
        PeriodicTask("ws-heartbeat", settings.WS_HEARTBEAT_SECONDS, gateway.heartbeat),
        PeriodicTask("otp-pruner", settings.OTP_PRUNE_INTERVAL_SECONDS, engine.prune_expired),
    ]
    for task in tasks:
        await task.start()

    consumer = None
    if settings.ORDER_EVENTS_ENABLED:
        app.state.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        consumer = create_order_events_consumer(app.state.redis, gateway, settings)
        await consumer.start()

    yield

    if consumer is not None:
        await consumer.stop()
        await app.state.redis.aclose()
        logger.info("Redis connection pool closed")
    for task in tasks:
        await task.stop()
    await app.state.sms.aclose()


def create_app(settings: Settings | None = None, *, sms: SmsSender | None = None) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(
        title="CyberShield Portal Realtime",
        version="0.1.0",
        lifespan=lifespan,
    )

    clock = SystemClock()
    verifier = build_verifier(settings)
    registry = ConnectionRegistry()
    app.state.settings = settings
    app.state.verifier = verifier
    app.state.gateway = RealtimeGateway(
        registry,
        clock,
        verifier=verifier,
        trust_client_auth=settings.WS_AUTH_MODE == "trust",
        max_missed_heartbeats=settings.WS_MAX_MISSED_HEARTBEATS,
    )
    app.state.sms = sms if sms is not None else _build_sms_sender(settings)
    app.state.otp_engine = OtpEngine(
        InMemoryOtpCodeStore(),
        app.state.sms,
        clock,
        ttl=timedelta(seconds=settings.OTP_TTL_SECONDS),
    )
    app.state.users = InMemoryUserVerificationLedger()
    app.state.redis = None

    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(otp.router)
    app.include_router(admin_notifications.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def _request_validation(_req: Request, exc: RequestValidationError) -> JSONResponse:
        messages = [f"{'.'.join(str(p) for p in err['loc'][1:])}: {err['msg']}" for err in exc.errors()]
        return JSONResponse(status_code=400, content={"detail": "; ".join(messages)})

"""Entrypoint: python -m shield_portal"""
from __future__ import annotations

import uvicorn

from shield_portal.config import settings
from shield_portal.logging_config import configure_logging


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "shield_portal.app:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()

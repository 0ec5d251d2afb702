"""Root conftest: test environment must be in place before shield_portal.config is imported."""
from __future__ import annotations

import os
from pathlib import Path

# Tests must never reach a real SMS provider or Redis.
_FORCED_UNSET = ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER")


def _load_env_file(path: Path) -> None:
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())


_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    _load_env_file(_env_test)
for _key in _FORCED_UNSET:
    os.environ.pop(_key, None)

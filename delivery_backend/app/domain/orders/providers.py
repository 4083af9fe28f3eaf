"""
Injectable clock and identifier providers.

Production code uses SystemClock / RandomIdProvider; tests pass fixed
implementations so lifecycle output is deterministic.
"""

import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Protocol

from delivery_backend.app.core.config import settings

TRACKING_ALPHABET = string.ascii_uppercase + string.digits


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class IdProvider(Protocol):
    def order_id(self) -> str:
        ...

    def tracking_code(self) -> str:
        ...


class SystemClock:
    """Timezone-aware UTC wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class RandomIdProvider:

    def __init__(self, prefix: str = None, code_length: int = 8):
        self.prefix = prefix or settings.tracking_code_prefix
        self.code_length = code_length

    def order_id(self) -> str:
        return f"ord_{uuid.uuid4().hex}"

    def tracking_code(self) -> str:
        suffix = "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(self.code_length))
        return f"{self.prefix}{suffix}"

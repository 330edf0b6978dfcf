"""Application state container."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from .cache import utc_now
from .settings import TreasurySettings

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Passed through the pipeline to avoid global state and enable testing;
    tests swap ``clock`` and ``sleep`` to control time.
    """

    settings: TreasurySettings
    logger: logging.Logger
    clock: Clock = field(default=utc_now)
    sleep: Sleep = field(default=asyncio.sleep)

    def seconds_since(self, moment: datetime) -> float:
        return (self.clock() - moment).total_seconds()

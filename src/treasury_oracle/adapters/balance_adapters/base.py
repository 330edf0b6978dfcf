from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from ...domain import ZERO, AssetSymbol
from ...logger import get_logger
from ...retry import with_retry
from ...settings import TreasurySettings
from ..http import get_json, post_json

logger = get_logger(__name__)


class AdapterUnavailable(Exception):
    """Raised inside an adapter when its source cannot produce a balance.

    Never leaves ``fetch_balance``; callers only see ``None``.
    """


def short_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}" if len(address) > 12 else address


class BaseBalanceAdapter(ABC):
    """Abstract base class for balance adapters.

    Subclasses implement ``_query_balance`` for one provider and may raise
    anything from it; ``fetch_balance`` retries, bounds and normalizes every
    failure into ``None`` (unavailable).
    """

    def __init__(self, config: TreasurySettings):
        """Initialize the adapter with configuration.

        Args:
            config: Treasury oracle settings
        """
        self.config = config
        self.request_timeout = config.request_timeout

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Return the name of this adapter."""
        ...

    @property
    @abstractmethod
    def asset(self) -> AssetSymbol:
        """Return the asset this adapter reports."""
        ...

    @abstractmethod
    async def _query_balance(self, address: str) -> Decimal:
        """Query the provider once and return the balance in whole units."""
        ...

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        return await get_json(url, timeout=self.request_timeout, **kwargs)

    async def _post_json(self, url: str, body: dict[str, Any], **kwargs: Any) -> Any:
        return await post_json(url, body, timeout=self.request_timeout, **kwargs)

    async def fetch_balance(self, address: str) -> Decimal | None:
        """Fetch the balance held by ``address``.

        Returns:
            The balance in whole units, or None when the source is unavailable.
        """
        label = f"{self.adapter_name} ({short_address(address)})"
        try:
            amount = await with_retry(
                lambda: self._query_balance(address),
                label,
                max_attempts=self.config.retry_max_attempts,
                base_delay=self.config.retry_base_delay,
                attempt_timeout=self.request_timeout,
            )
        except Exception as e:
            logger.warning("Adapter '%s' unavailable: %s", label, e)
            return None

        if not amount.is_finite() or amount < 0:
            logger.warning("Adapter '%s' returned invalid amount %s", label, amount)
            return None

        logger.debug("Adapter '%s' reported %s %s", label, amount, self.asset.value)
        return amount

    async def fetch_total(self, addresses: Sequence[str]) -> Decimal | None:
        """Sum the balances of several holder addresses.

        The total is unavailable if any single address is, so a partial sum
        never stands in for the whole treasury.
        """
        results = await asyncio.gather(
            *(self.fetch_balance(address) for address in addresses)
        )
        if any(result is None for result in results):
            return None
        return sum((result for result in results if result is not None), ZERO)

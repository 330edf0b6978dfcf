"""Price fetching with fallbacks to remembered and cached prices."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from ..adapters.price_adapters import CoinGeckoAdapter
from ..cache import utc_now
from ..domain import AssetAmounts, PriceQuote
from ..logger import get_logger

if TYPE_CHECKING:
    from ..state import Clock
    from .context import CycleContext

logger = get_logger(__name__)


class PriceSource(str, Enum):
    LIVE = "live"
    MEMORY = "memory"
    CACHE = "cache"
    NONE = "none"


@dataclass(frozen=True)
class PriceResolution:
    prices: AssetAmounts
    source: PriceSource

    @property
    def is_fallback(self) -> bool:
        return self.source is not PriceSource.LIVE


class PriceOracle:
    """Major and token USD prices.

    A failed live fetch never yields zero prices while a remembered or
    cached positive price exists.
    """

    def __init__(
        self,
        adapter: CoinGeckoAdapter,
        timeout: float | None = None,
        clock: Clock = utc_now,
    ):
        self.adapter = adapter
        self.timeout = timeout
        self.clock = clock
        self.last_prices: AssetAmounts | None = None
        self.token_quotes: dict[str, PriceQuote] = {}

    async def major_prices(self, cached: AssetAmounts | None = None) -> PriceResolution:
        """BTC, ETH and SOL prices: live, else last in-memory, else cached, else zeros."""
        try:
            async with asyncio.timeout(self.timeout):
                prices = await self.adapter.fetch_major_prices()
        except Exception as e:
            logger.warning("Price fetch failed: %s", e)
        else:
            self.last_prices = prices
            logger.debug(
                "Prices: BTC $%s, ETH $%s, SOL $%s", prices.btc, prices.eth, prices.sol
            )
            return PriceResolution(prices, PriceSource.LIVE)

        if self.last_prices is not None and self.last_prices.any_positive():
            logger.warning("Using last known prices")
            return PriceResolution(self.last_prices, PriceSource.MEMORY)
        if cached is not None and cached.any_positive():
            logger.warning("Using cached prices")
            self.last_prices = cached
            return PriceResolution(cached, PriceSource.CACHE)
        logger.error("No prices available; valuing at zero")
        return PriceResolution(AssetAmounts(), PriceSource.NONE)

    async def token_prices(self, price_ids: list[str]) -> dict[str, Decimal]:
        """USD prices for token price ids; invalid prices are dropped, failures give ``{}``.

        Valid quotes are also kept in ``token_quotes`` with the time they
        were observed.
        """
        if not price_ids:
            return {}
        try:
            async with asyncio.timeout(self.timeout):
                prices = await self.adapter.fetch_spot_prices(price_ids)
        except Exception as e:
            logger.warning("Token price fetch failed: %s", e)
            return {}

        observed_at = self.clock()
        quotes = [
            PriceQuote(asset=price_id, usd_price=price, observed_at=observed_at)
            for price_id, price in prices.items()
        ]
        valid = {quote.asset: quote for quote in quotes if quote.is_valid}
        if len(valid) < len(quotes):
            logger.debug(
                "Dropped %d invalid token price(s): %s",
                len(quotes) - len(valid),
                ", ".join(q.asset for q in quotes if q.asset not in valid),
            )
        self.token_quotes.update(valid)
        return {price_id: quote.usd_price for price_id, quote in valid.items()}


async def price_assets(ctx: "CycleContext", oracle: PriceOracle) -> None:
    """Resolve major prices into the context.

    Args:
        ctx: Cycle context holding the cached entry
        oracle: Price oracle carrying remembered prices
    """
    ctx.prices = await oracle.major_prices(ctx.cached_prices)

"""Client for a server-side aggregation endpoint that pre-computes balances."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, StrictFloat, StrictInt, StrictStr, model_validator

from ..domain import AssetAmounts, AssetSymbol
from ..logger import get_logger
from ..settings import TreasurySettings
from ..units import to_decimal
from .http import get_json
from .schemas import ResponseShape, UnrecognizedShape, match_shape

logger = get_logger(__name__)

Number = StrictFloat | StrictInt | StrictStr | None


class ProxyUnavailable(Exception):
    """Raised when the server proxy cannot provide a usable reading."""


class _Triple(BaseModel):
    btc: Number = None
    eth: Number = None
    sol: Number = None


class ProxyError(ResponseShape):
    error: StrictStr


class NestedProxyPayload(ResponseShape):
    """``{"balances": {...}, "prices": {...}, "source": ...}``"""

    balances: _Triple
    prices: _Triple | None = None


class FlatProxyPayload(ResponseShape):
    """``{"btc": ..., "eth": ..., "sol": ..., "prices": {...}}``"""

    btc: Number = None
    eth: Number = None
    sol: Number = None
    prices: _Triple | None = None

    @model_validator(mode="after")
    def require_a_value(self) -> "FlatProxyPayload":
        if self.btc is None and self.eth is None and self.sol is None and self.prices is None:
            raise ValueError("no balances or prices present")
        return self


@dataclass(frozen=True)
class ProxyReading:
    """Positive values reported by the proxy; absent or zero fields are omitted."""

    balances: dict[AssetSymbol, Decimal] = field(default_factory=dict)
    prices: dict[AssetSymbol, Decimal] = field(default_factory=dict)

    def merge_balances(self, last_known: AssetAmounts) -> AssetAmounts:
        return _overlay(last_known, self.balances)

    def merge_prices(self, last_known: AssetAmounts) -> AssetAmounts:
        return _overlay(last_known, self.prices)


def _overlay(base: AssetAmounts, values: dict[AssetSymbol, Decimal]) -> AssetAmounts:
    return AssetAmounts(
        **{asset.value: values.get(asset, base.get(asset)) for asset in AssetSymbol}
    )


def _positive_values(triple: _Triple | FlatProxyPayload | None) -> dict[AssetSymbol, Decimal]:
    values: dict[AssetSymbol, Decimal] = {}
    if triple is None:
        return values
    for asset in AssetSymbol:
        raw = getattr(triple, asset.value)
        if raw is None:
            continue
        try:
            amount = to_decimal(raw)
        except ValueError:
            logger.warning("Server proxy sent invalid %s value %r", asset.value, raw)
            continue
        if amount > 0:
            values[asset] = amount
    return values


class ServerProxyClient:
    """Fetches one pre-aggregated reading from the configured proxy URL."""

    def __init__(self, config: TreasurySettings, url: str | None = None):
        self.config = config
        self.url = url or config.server_proxy_url
        self.timeout = config.server_proxy_timeout

    async def _get_json(self) -> Any:
        if not self.url:
            raise ProxyUnavailable("no server proxy configured")
        return await get_json(self.url, timeout=self.timeout)

    async def fetch(self) -> ProxyReading:
        """Fetch the proxy reading with a single bounded attempt.

        Raises:
            ProxyUnavailable: On transport error, timeout, error payload or
                an unrecognized or empty payload.
        """
        try:
            async with asyncio.timeout(self.timeout):
                payload = await self._get_json()
        except ProxyUnavailable:
            raise
        except Exception as e:
            raise ProxyUnavailable(f"server proxy request failed: {e!r}") from e

        match match_shape(payload, (ProxyError, NestedProxyPayload, FlatProxyPayload)):
            case ProxyError(error=message):
                raise ProxyUnavailable(f"server proxy error: {message}")
            case NestedProxyPayload(balances=balances, prices=prices):
                reading = ProxyReading(
                    balances=_positive_values(balances), prices=_positive_values(prices)
                )
            case FlatProxyPayload(prices=prices) as flat:
                reading = ProxyReading(
                    balances=_positive_values(flat), prices=_positive_values(prices)
                )
            case UnrecognizedShape() as unknown:
                raise ProxyUnavailable(
                    f"unrecognized server proxy response: {unknown.describe()}"
                )

        if not reading.balances and not reading.prices:
            raise ProxyUnavailable("server proxy returned no usable values")
        return reading

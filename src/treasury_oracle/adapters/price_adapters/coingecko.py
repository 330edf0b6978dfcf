from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, RootModel, StrictFloat, StrictInt

from ...constants import COINGECKO_API_URL, MAJOR_PRICE_IDS
from ...domain import AssetAmounts
from ...retry import with_retry
from ...settings import TreasurySettings
from ...units import to_decimal
from ..http import get_json
from ..schemas import ResponseShape, UnrecognizedShape, match_shape
from .base import BasePriceAdapter, InvalidPriceData

logger = logging.getLogger(__name__)


class _UsdQuote(BaseModel):
    usd: StrictFloat | StrictInt | None = None


class SimplePrice(RootModel[dict[str, _UsdQuote]]):
    """``/simple/price`` answer: ``{id: {"usd": price}}``."""


class _ErrorStatus(BaseModel):
    error_code: int | None = None
    error_message: str = ""


class CoinGeckoError(ResponseShape):
    status: _ErrorStatus


class CoinGeckoAdapter(BasePriceAdapter):
    """Adapter for the CoinGecko simple-price API."""

    def __init__(self, config: TreasurySettings, api_url: str = COINGECKO_API_URL):
        super().__init__(config)
        self.api_url = api_url.rstrip("/")
        self._api_key = config.secret("coingecko_api_key")

    @property
    def adapter_name(self) -> str:
        return "coingecko"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["x-cg-demo-api-key"] = self._api_key
        return headers

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        return await get_json(url, timeout=self.config.request_timeout, **kwargs)

    async def _query_prices(self, price_ids: list[str]) -> dict[str, Decimal]:
        payload = await self._get_json(
            f"{self.api_url}/simple/price",
            params={"ids": ",".join(price_ids), "vs_currencies": "usd"},
            headers=self._headers(),
        )
        match match_shape(payload, (CoinGeckoError, SimplePrice)):
            case CoinGeckoError(status=status):
                raise InvalidPriceData(
                    f"CoinGecko error {status.error_code}: {status.error_message}"
                )
            case SimplePrice(root=quotes):
                return {
                    price_id: to_decimal(quote.usd)
                    for price_id, quote in quotes.items()
                    if quote.usd is not None
                }
            case UnrecognizedShape() as unknown:
                raise InvalidPriceData(
                    f"unrecognized CoinGecko response: {unknown.describe()}"
                )

    async def fetch_spot_prices(self, price_ids: list[str]) -> dict[str, Decimal]:
        """Fetch USD prices for CoinGecko ids.

        Args:
            price_ids: CoinGecko coin ids, e.g. ``["bitcoin", "bonk"]``

        Returns:
            Mapping of id to USD price; unknown ids are omitted.

        Raises:
            Exception: The last error once retries are exhausted.
        """
        unique_ids = sorted(set(price_ids))
        if not unique_ids:
            return {}
        prices = await with_retry(
            lambda: self._query_prices(unique_ids),
            self.adapter_name,
            max_attempts=self.config.retry_max_attempts,
            base_delay=self.config.retry_base_delay,
            attempt_timeout=self.config.request_timeout,
        )
        logger.debug("CoinGecko returned %d of %d prices", len(prices), len(unique_ids))
        return prices

    async def fetch_major_prices(self) -> AssetAmounts:
        """Fetch BTC, ETH and SOL prices.

        Raises:
            InvalidPriceData: If any of the three prices is missing or not positive.
        """
        ids = list(MAJOR_PRICE_IDS.values())
        prices = await self.fetch_spot_prices(ids)
        self.validate_prices(prices, ids)
        return AssetAmounts(
            **{asset: prices[price_id] for asset, price_id in MAJOR_PRICE_IDS.items()}
        )

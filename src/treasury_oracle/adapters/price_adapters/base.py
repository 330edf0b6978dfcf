from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from decimal import Decimal

from ...domain import is_usable_price
from ...settings import TreasurySettings


class InvalidPriceData(Exception):
    """Raised when a price source answers with missing or non-positive prices."""


class BasePriceAdapter(ABC):
    """Abstract base class for price adapters."""

    def __init__(self, config: TreasurySettings):
        """Initialize the adapter with configuration."""
        self.config = config

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Return the name of this adapter."""
        ...

    @abstractmethod
    async def fetch_spot_prices(self, price_ids: list[str]) -> dict[str, Decimal]:
        """Fetch USD spot prices keyed by the source's price id.

        Ids the source does not know are omitted from the result.
        """
        ...

    def validate_prices(
        self, prices: Mapping[str, Decimal], required: list[str]
    ) -> None:
        """Raise if any required price is missing, non-finite or non-positive.

        Args:
            prices: Prices returned by ``fetch_spot_prices``
            required: Price ids that must be present and valid

        Raises:
            InvalidPriceData: Listing every offending id
        """
        invalid = [
            (price_id, prices.get(price_id))
            for price_id in required
            if not is_usable_price(prices.get(price_id))
        ]

        if invalid:
            invalid_details = ", ".join(
                f"{price_id}: {price}" for price_id, price in invalid
            )
            raise InvalidPriceData(
                f"Found {len(invalid)} invalid price(s) from {self.adapter_name}: {invalid_details}"
            )

"""Domain models for the treasury oracle."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from ..units import from_base_units

ZERO = Decimal(0)


class AssetSymbol(str, Enum):
    BTC = "btc"
    ETH = "eth"
    SOL = "sol"


@dataclass(frozen=True)
class AssetBalance:
    """Reconciled balance of one asset."""

    amount: Decimal
    unit: AssetSymbol


def is_usable_price(price: Decimal | None) -> bool:
    """Only finite, positive prices may value anything."""
    return price is not None and price.is_finite() and price > 0


@dataclass(frozen=True)
class PriceQuote:
    """Spot USD price for a major asset or a token price id."""

    asset: str
    usd_price: Decimal
    observed_at: datetime

    @property
    def is_valid(self) -> bool:
        return is_usable_price(self.usd_price)


@dataclass(frozen=True)
class AssetAmounts:
    """One value per major asset (balances, prices or USD values)."""

    btc: Decimal = ZERO
    eth: Decimal = ZERO
    sol: Decimal = ZERO

    def get(self, asset: AssetSymbol) -> Decimal:
        return getattr(self, asset.value)

    def total(self) -> Decimal:
        return self.btc + self.eth + self.sol

    def any_positive(self) -> bool:
        return any(value > 0 for value in (self.btc, self.eth, self.sol))

    def to_dict(self) -> dict[str, str]:
        return {"btc": str(self.btc), "eth": str(self.eth), "sol": str(self.sol)}

    @classmethod
    def from_mapping(cls, values: dict[AssetSymbol, Decimal]) -> "AssetAmounts":
        return cls(**{asset.value: amount for asset, amount in values.items()})

    @classmethod
    def from_balances(cls, balances: Iterable[AssetBalance]) -> "AssetAmounts":
        return cls.from_mapping({balance.unit: balance.amount for balance in balances})


@dataclass(frozen=True)
class TokenHolding:
    """A fungible token held by the SOL treasury account."""

    mint: str
    symbol: str
    name: str
    raw_amount: int
    decimals: int
    usd_value: Decimal = ZERO
    logo_uri: str | None = None
    price_id: str | None = None

    @property
    def ui_amount(self) -> Decimal:
        return from_base_units(self.raw_amount, self.decimals)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mint": self.mint,
            "symbol": self.symbol,
            "name": self.name,
            "raw_amount": self.raw_amount,
            "decimals": self.decimals,
            "usd_value": str(self.usd_value),
            "logo_uri": self.logo_uri,
            "price_id": self.price_id,
        }


@dataclass(frozen=True)
class TreasurySnapshot:
    """Aggregate treasury view produced by one reconciliation cycle."""

    balances: AssetAmounts
    prices: AssetAmounts
    usd_values: AssetAmounts
    tokens: tuple[TokenHolding, ...] = field(default_factory=tuple)
    tokens_usd_value: Decimal = ZERO
    total_usd: Decimal = ZERO
    last_updated: datetime | None = None
    is_from_cache: bool = False
    is_fetching: bool = False
    net_worth_usd: Decimal | None = None

    @classmethod
    def empty(cls) -> "TreasurySnapshot":
        return cls(
            balances=AssetAmounts(),
            prices=AssetAmounts(),
            usd_values=AssetAmounts(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "balances": self.balances.to_dict(),
            "prices": self.prices.to_dict(),
            "usd_values": self.usd_values.to_dict(),
            "tokens": [token.to_dict() for token in self.tokens],
            "tokens_usd_value": str(self.tokens_usd_value),
            "total_usd": str(self.total_usd),
            "net_worth_usd": (
                str(self.net_worth_usd) if self.net_worth_usd is not None else None
            ),
            "last_updated": (
                self.last_updated.isoformat() if self.last_updated else None
            ),
            "is_from_cache": self.is_from_cache,
            "is_fetching": self.is_fetching,
        }


__all__ = [
    "AssetAmounts",
    "AssetBalance",
    "AssetSymbol",
    "PriceQuote",
    "TokenHolding",
    "TreasurySnapshot",
    "ZERO",
    "is_usable_price",
]

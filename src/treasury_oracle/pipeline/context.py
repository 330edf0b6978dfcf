from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..cache import CacheEntry
from ..domain import AssetAmounts, AssetBalance, AssetSymbol
from ..processors import BalanceReconciler, Reconciliation, TokenEnumeration, TokenEnumerator
from ..state import AppState
from .pricing import PriceOracle, PriceResolution


@dataclass
class CycleComponents:
    """Long-lived collaborators reused by every cycle.

    Reconcilers and the price oracle keep their last accepted values here
    between cycles.
    """

    reconcilers: dict[AssetSymbol, BalanceReconciler]
    enumerator: TokenEnumerator
    oracle: PriceOracle


@dataclass
class CycleContext:
    state: AppState
    cached: CacheEntry | None = None
    prices: PriceResolution | None = None
    samples: dict[AssetSymbol, list[Decimal | None]] = field(default_factory=dict)
    reconciliations: dict[AssetSymbol, Reconciliation] = field(default_factory=dict)
    tokens: TokenEnumeration | None = None

    def samples_required(self, asset: AssetSymbol) -> list[Decimal | None]:
        if asset not in self.samples:
            raise RuntimeError(
                f"Samples missing for {asset.value}. Ensure collect_balances() is called before reconciling."
            )
        return self.samples[asset]

    @property
    def cached_balances(self) -> AssetAmounts | None:
        return self.cached.balances.to_amounts() if self.cached else None

    @property
    def cached_prices(self) -> AssetAmounts | None:
        return self.cached.prices.to_amounts() if self.cached else None

    @property
    def prices_required(self) -> PriceResolution:
        if self.prices is None:
            raise RuntimeError(
                "Prices have not been set. Ensure price_assets() is called before accessing this property."
            )
        return self.prices

    @property
    def tokens_required(self) -> TokenEnumeration:
        if self.tokens is None:
            raise RuntimeError(
                "Tokens have not been set. Ensure enumerate_tokens() is called before accessing this property."
            )
        return self.tokens

    @property
    def asset_balances(self) -> list[AssetBalance]:
        missing = [a.value for a in AssetSymbol if a not in self.reconciliations]
        if missing:
            raise RuntimeError(
                f"Balances missing for {', '.join(missing)}. Ensure reconcile_balances() is called before accessing this property."
            )
        return [outcome.as_balance(asset) for asset, outcome in self.reconciliations.items()]

    @property
    def balances(self) -> AssetAmounts:
        return AssetAmounts.from_balances(self.asset_balances)

    @property
    def used_fallback(self) -> bool:
        """True when any part of the cycle fell back to remembered or cached data."""
        if any(outcome.is_fallback for outcome in self.reconciliations.values()):
            return True
        return self.prices is not None and self.prices.is_fallback

"""Balance reconciliation for the tracked treasury addresses."""

from __future__ import annotations

import asyncio
from decimal import Decimal

from ..domain import AssetSymbol
from ..processors import BalanceReconciler
from .context import CycleContext


def holder_addresses(ctx: CycleContext, asset: AssetSymbol) -> list[str]:
    s = ctx.state.settings
    match asset:
        case AssetSymbol.BTC:
            return list(s.btc_addresses)
        case AssetSymbol.ETH:
            return [s.eth_address]
        case AssetSymbol.SOL:
            return [s.sol_address]


async def collect_balances(
    ctx: CycleContext, reconcilers: dict[AssetSymbol, BalanceReconciler]
) -> None:
    """Query every asset's adapters concurrently.

    Sets the raw per-asset answers in the context.
    """
    log = ctx.state.logger
    assets = list(reconcilers)

    log.info("Collecting balances for %s...", ", ".join(a.value.upper() for a in assets))
    results = await asyncio.gather(
        *(reconcilers[asset].sample(holder_addresses(ctx, asset)) for asset in assets)
    )
    ctx.samples = dict(zip(assets, results))


def extra_samples(ctx: CycleContext, asset: AssetSymbol) -> tuple[Decimal, ...]:
    """Readings for ``asset`` reported outside its balance adapters.

    Token sources that also see the account's native SOL contribute here.
    """
    if asset is not AssetSymbol.SOL or ctx.tokens is None:
        return ()
    return ctx.tokens.sol_balances


def reconcile_balances(
    ctx: CycleContext, reconcilers: dict[AssetSymbol, BalanceReconciler]
) -> None:
    """Reconcile the collected answers of every asset.

    Args:
        ctx: Cycle context holding the collected samples, the token
            enumeration and the cached entry

    Sets the per-asset reconciliations in the context.
    """
    log = ctx.state.logger
    cached = ctx.cached_balances
    outcomes = {}
    for asset, reconciler in reconcilers.items():
        extra = extra_samples(ctx, asset)
        if extra:
            log.debug(
                "Adding %d %s reading(s) from token sources: %s",
                len(extra),
                asset.value.upper(),
                ", ".join(str(value) for value in extra),
            )
        outcomes[asset] = reconciler.settle(
            [*ctx.samples_required(asset), *extra],
            cached.get(asset) if cached else None,
        )
    ctx.reconciliations = outcomes

"""Single reconciliation cycle orchestration."""

from __future__ import annotations

import asyncio

from .assets import collect_balances, reconcile_balances
from .context import CycleComponents, CycleContext
from .pricing import price_assets
from .tokens import enumerate_tokens


async def run_cycle(ctx: CycleContext, components: CycleComponents) -> CycleContext:
    """Execute one fan-out cycle.

    Prices, the balance adapters and the token enumerator run
    concurrently. Balances are reconciled once all of them finished or
    timed out; native SOL reported by token sources joins the SOL readings.

    Args:
        ctx: Cycle context; ``cached`` should already be loaded
        components: Reconcilers, enumerator and price oracle

    Returns:
        The populated context.
    """
    log = ctx.state.logger
    log.info("Starting reconciliation cycle")

    await asyncio.gather(
        price_assets(ctx, components.oracle),
        collect_balances(ctx, components.reconcilers),
        enumerate_tokens(ctx, components.enumerator),
    )
    reconcile_balances(ctx, components.reconcilers)

    log.info(
        "Cycle finished (prices: %s, fallback used: %s)",
        ctx.prices_required.source.value,
        ctx.used_fallback,
    )
    return ctx

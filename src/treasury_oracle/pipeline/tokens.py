"""Token enumeration for the SOL treasury account."""

from __future__ import annotations

from ..processors import TokenEnumerator
from .context import CycleContext


async def enumerate_tokens(ctx: CycleContext, enumerator: TokenEnumerator) -> None:
    """List and value the account's tokens.

    Sets the token enumeration in the context.
    """
    ctx.tokens = await enumerator.enumerate(ctx.state.settings.sol_address)

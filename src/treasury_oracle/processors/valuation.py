from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from ..domain import (
    ZERO,
    AssetAmounts,
    AssetSymbol,
    TokenHolding,
    TreasurySnapshot,
    is_usable_price,
)
from ..units import to_usd
from .token_enumerator import is_net_worth, tokens_usd_total


def usd_value(amount: Decimal, price: Decimal) -> Decimal:
    """USD value of ``amount`` at ``price``; zero for an invalid price."""
    if not is_usable_price(price):
        return to_usd(ZERO)
    return to_usd(amount * price)


def value_balances(balances: AssetAmounts, prices: AssetAmounts) -> AssetAmounts:
    return AssetAmounts.from_mapping(
        {asset: usd_value(balances.get(asset), prices.get(asset)) for asset in AssetSymbol}
    )


def find_net_worth(tokens: Sequence[TokenHolding]) -> Decimal | None:
    """USD value of a positive net-worth pseudo-token, if present."""
    for token in tokens:
        if is_net_worth(token) and token.usd_value.is_finite() and token.usd_value > 0:
            return token.usd_value
    return None


def build_snapshot(
    balances: AssetAmounts,
    prices: AssetAmounts,
    tokens: Sequence[TokenHolding],
    last_updated: datetime | None,
    is_from_cache: bool = False,
    is_fetching: bool = False,
) -> TreasurySnapshot:
    """Value balances and tokens and assemble a snapshot.

    A positive net-worth pseudo-token supersedes the SOL side of the
    treasury: it becomes the SOL USD value and individually valued tokens
    are left out of the total, since the net worth already covers them.
    """
    usd_values = value_balances(balances, prices)
    tokens_value = to_usd(tokens_usd_total(tokens))
    net_worth = find_net_worth(tokens)

    if net_worth is not None:
        usd_values = AssetAmounts(
            btc=usd_values.btc, eth=usd_values.eth, sol=to_usd(net_worth)
        )
        total = usd_values.total()
    else:
        total = usd_values.total() + tokens_value

    return TreasurySnapshot(
        balances=balances,
        prices=prices,
        usd_values=usd_values,
        tokens=tuple(tokens),
        tokens_usd_value=tokens_value,
        total_usd=to_usd(total),
        last_updated=last_updated,
        is_from_cache=is_from_cache,
        is_fetching=is_fetching,
        net_worth_usd=net_worth,
    )

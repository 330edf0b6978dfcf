from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from ..adapters.token_adapters.base import BaseNetWorthAdapter, BaseTokenAdapter
from ..constants import (
    NET_WORTH_MINT,
    NET_WORTH_SYMBOL,
    TOKEN_PRICE_IDS,
    WRAPPED_SOL_MINT,
)
from ..domain import ZERO, TokenHolding, is_usable_price
from ..logger import get_logger
from ..units import to_usd

logger = get_logger(__name__)

PriceLookup = Callable[[list[str]], Awaitable[dict[str, Decimal]]]


@dataclass(frozen=True)
class TokenEnumeration:
    """Tokens found for an account plus the optional provider net worth.

    ``sol_balances`` holds the positive native SOL amounts reported by every
    source that answered, whether or not its token list was used.
    """

    tokens: tuple[TokenHolding, ...]
    net_worth: Decimal | None = None
    source: str | None = None
    sol_balances: tuple[Decimal, ...] = ()

    @property
    def listed(self) -> bool:
        """True when a token source answered with at least one holding."""
        return self.source is not None


def is_native_sol(token: TokenHolding) -> bool:
    return token.symbol.upper() == "SOL" or token.mint == WRAPPED_SOL_MINT


def is_net_worth(token: TokenHolding) -> bool:
    return token.symbol == NET_WORTH_SYMBOL or token.mint == NET_WORTH_MINT


def net_worth_token(net_worth: Decimal) -> TokenHolding:
    """Pseudo-token carrying the provider's total account value."""
    return TokenHolding(
        mint=NET_WORTH_MINT,
        symbol=NET_WORTH_SYMBOL,
        name="Total Account Value (Solana.fm)",
        raw_amount=1,
        decimals=0,
        usd_value=to_usd(net_worth),
    )


def merge_holdings(sources: Iterable[Sequence[TokenHolding]]) -> list[TokenHolding]:
    """Merge token lists into one list keyed by mint.

    For a mint seen more than once, the first non-zero amount (with its
    decimals) is kept, while symbol, name, logo and valuation come from the
    last source that supplied a non-empty value. Amounts are never summed.
    Native SOL is excluded; it is reconciled as a balance, not a token.
    """
    merged: dict[str, TokenHolding] = {}
    for holdings in sources:
        for token in holdings:
            if is_native_sol(token):
                continue
            current = merged.get(token.mint)
            if current is None:
                merged[token.mint] = token
                continue
            if current.raw_amount == 0 and token.raw_amount != 0:
                current = replace(
                    current, raw_amount=token.raw_amount, decimals=token.decimals
                )
            merged[token.mint] = replace(
                current,
                symbol=token.symbol or current.symbol,
                name=token.name or current.name,
                logo_uri=token.logo_uri or current.logo_uri,
                price_id=token.price_id or current.price_id,
                usd_value=token.usd_value if token.usd_value > 0 else current.usd_value,
            )
    return list(merged.values())


def price_id_for(token: TokenHolding) -> str | None:
    return token.price_id or TOKEN_PRICE_IDS.get(token.symbol.upper())


def value_tokens(
    tokens: Sequence[TokenHolding], prices: dict[str, Decimal]
) -> list[TokenHolding]:
    """Attach price ids and USD values.

    Tokens without a known price keep their existing value (zero unless a
    source supplied one) and stay in the list.
    """
    valued = []
    for token in tokens:
        price_id = price_id_for(token)
        price = prices.get(price_id) if price_id else None
        if is_usable_price(price):
            usd_value = to_usd(token.ui_amount * price)
        else:
            usd_value = token.usd_value
        valued.append(replace(token, price_id=price_id, usd_value=usd_value))
    return valued


def tokens_usd_total(tokens: Iterable[TokenHolding]) -> Decimal:
    """USD value of real tokens; the net-worth pseudo-token is not counted."""
    return sum(
        (token.usd_value for token in tokens if not is_net_worth(token)), ZERO
    )


class TokenEnumerator:
    """Lists and values the SPL tokens held by the SOL treasury account.

    Sources are queried concurrently; by default the first source in
    priority order that lists any token wins, with ``merge_sources`` every
    source's list is merged. Native SOL readings are collected from all of
    them.
    """

    def __init__(
        self,
        sources: list[BaseTokenAdapter],
        net_worth_source: BaseNetWorthAdapter | None,
        price_lookup: PriceLookup,
        merge_sources: bool = False,
    ):
        self.sources = sources
        self.net_worth_source = net_worth_source
        self.price_lookup = price_lookup
        self.merge_sources = merge_sources

    async def _net_worth(self, address: str) -> Decimal | None:
        if self.net_worth_source is None:
            return None
        return await self.net_worth_source.fetch_net_worth(address)

    async def enumerate(self, address: str) -> TokenEnumeration:
        listings, net_worth = await asyncio.gather(
            asyncio.gather(*(source.fetch_tokens(address) for source in self.sources)),
            self._net_worth(address),
        )

        sol_balances = tuple(
            listing.sol_balance
            for listing in listings
            if listing is not None
            and listing.sol_balance is not None
            and listing.sol_balance > 0
        )

        chosen: list[list[TokenHolding]] = []
        source_names: list[str] = []
        for source, listing in zip(self.sources, listings):
            if listing is None or not listing.tokens:
                continue
            chosen.append(listing.tokens)
            source_names.append(source.adapter_name)
            if not self.merge_sources:
                break

        tokens = merge_holdings(chosen)
        if tokens:
            price_ids = sorted({pid for t in tokens if (pid := price_id_for(t))})
            prices = await self.price_lookup(price_ids) if price_ids else {}
            tokens = value_tokens(tokens, prices)
            logger.info(
                "Found %d tokens via %s (%d priced)",
                len(tokens),
                "+".join(source_names),
                sum(1 for t in tokens if t.usd_value > 0),
            )
        else:
            logger.warning("No token source listed any holdings")

        if net_worth is not None:
            logger.info("Account net worth: $%s", net_worth)
            tokens.append(net_worth_token(net_worth))

        return TokenEnumeration(
            tokens=tuple(tokens),
            net_worth=to_usd(net_worth) if net_worth is not None else None,
            source="+".join(source_names) or None,
            sol_balances=sol_balances,
        )

from __future__ import annotations

from decimal import Decimal

import pytest

from treasury_oracle.adapters.token_adapters import TokenListing
from treasury_oracle.constants import NET_WORTH_SYMBOL, WRAPPED_SOL_MINT
from treasury_oracle.domain import TokenHolding
from treasury_oracle.processors.token_enumerator import (
    TokenEnumerator,
    merge_holdings,
    tokens_usd_total,
    value_tokens,
)

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


def holding(mint, symbol, raw_amount, decimals=6, **kwargs):
    return TokenHolding(
        mint=mint, symbol=symbol, name=kwargs.pop("name", symbol), raw_amount=raw_amount, decimals=decimals, **kwargs
    )


class StubTokenSource:
    def __init__(self, name, tokens, sol_balance=None):
        self.adapter_name = name
        self.tokens = tokens
        self.sol_balance = sol_balance
        self.calls = 0

    async def fetch_tokens(self, address):
        self.calls += 1
        if self.tokens is None:
            return None
        return TokenListing(self.tokens, self.sol_balance)


class StubNetWorth:
    adapter_name = "stub_net_worth"

    def __init__(self, value):
        self.value = value

    async def fetch_net_worth(self, address):
        return self.value


def price_lookup(prices):
    requested = []

    async def lookup(ids):
        requested.append(list(ids))
        return {pid: prices[pid] for pid in ids if pid in prices}

    lookup.requested = requested
    return lookup


def test_merge_keeps_first_non_zero_amount_and_last_metadata():
    first = [holding(USDC_MINT, "USDC", 0, name=""), holding(BONK_MINT, "BONK", 500, decimals=5)]
    second = [
        holding(USDC_MINT, "USDC", 2_000_000, name="USD Coin", logo_uri="https://logo"),
        holding(BONK_MINT, "BONK", 900, decimals=5, name="Bonk"),
    ]

    merged = {token.mint: token for token in merge_holdings([first, second])}

    assert merged[USDC_MINT].raw_amount == 2_000_000
    assert merged[USDC_MINT].name == "USD Coin"
    assert merged[USDC_MINT].logo_uri == "https://logo"
    # never summed: first non-zero amount wins
    assert merged[BONK_MINT].raw_amount == 500
    assert merged[BONK_MINT].name == "Bonk"


def test_merge_deduplicates_within_one_list():
    tokens = [holding(USDC_MINT, "USDC", 1_000_000), holding(USDC_MINT, "USDC", 3_000_000)]

    merged = merge_holdings([tokens])

    assert len(merged) == 1
    assert merged[0].raw_amount == 1_000_000


def test_merge_excludes_native_sol():
    tokens = [
        holding(WRAPPED_SOL_MINT, "WSOL", 10, decimals=9),
        holding("SoMeMint", "SOL", 10, decimals=9),
        holding(USDC_MINT, "USDC", 1),
    ]

    assert [t.mint for t in merge_holdings([tokens])] == [USDC_MINT]


def test_value_tokens_uses_symbol_table_and_keeps_unpriced():
    tokens = [holding(USDC_MINT, "usdc", 2_500_000), holding("Unknown1111", "Unkn0w", 7)]

    valued = value_tokens(tokens, {"usd-coin": Decimal("1.0")})

    assert valued[0].price_id == "usd-coin"
    assert valued[0].usd_value == Decimal("2.50")
    assert valued[1].price_id is None
    assert valued[1].usd_value == 0


@pytest.mark.asyncio
async def test_first_non_empty_source_wins():
    primary = StubTokenSource("primary", [])
    secondary = StubTokenSource("secondary", [holding(USDC_MINT, "USDC", 1_000_000)])
    tertiary = StubTokenSource("tertiary", [holding(BONK_MINT, "BONK", 1, decimals=5)])
    enumerator = TokenEnumerator(
        [primary, secondary, tertiary], None, price_lookup({"usd-coin": Decimal(1)})
    )

    result = await enumerator.enumerate("owner")

    assert result.source == "secondary"
    assert [t.mint for t in result.tokens] == [USDC_MINT]
    assert result.tokens[0].usd_value == Decimal("1.00")
    assert result.listed


@pytest.mark.asyncio
async def test_merge_sources_combines_every_listing():
    a = StubTokenSource("a", [holding(USDC_MINT, "USDC", 1_000_000)])
    b = StubTokenSource("b", [holding(BONK_MINT, "BONK", 100_000, decimals=5)])
    lookup = price_lookup({"usd-coin": Decimal(1), "bonk": Decimal("0.00002")})
    enumerator = TokenEnumerator([a, b], None, lookup, merge_sources=True)

    result = await enumerator.enumerate("owner")

    assert result.source == "a+b"
    assert {t.symbol for t in result.tokens} == {"USDC", "BONK"}
    assert lookup.requested == [["bonk", "usd-coin"]]
    assert tokens_usd_total(result.tokens) == Decimal("1.00")


@pytest.mark.asyncio
async def test_net_worth_adds_pseudo_token():
    source = StubTokenSource("a", [holding(USDC_MINT, "USDC", 300_000_000)])
    enumerator = TokenEnumerator(
        [source], StubNetWorth(Decimal("1000")), price_lookup({"usd-coin": Decimal(1)})
    )

    result = await enumerator.enumerate("owner")

    assert result.net_worth == Decimal("1000.00")
    assert result.tokens[-1].symbol == NET_WORTH_SYMBOL
    assert result.tokens[-1].usd_value == Decimal("1000.00")
    assert tokens_usd_total(result.tokens) == Decimal("300.00")


@pytest.mark.asyncio
async def test_no_listing_reports_unlisted():
    enumerator = TokenEnumerator(
        [StubTokenSource("a", None), StubTokenSource("b", [])], StubNetWorth(None), price_lookup({})
    )

    result = await enumerator.enumerate("owner")

    assert result.tokens == ()
    assert not result.listed
    assert result.net_worth is None


@pytest.mark.asyncio
async def test_native_sol_collected_from_every_answering_source():
    primary = StubTokenSource("primary", [holding(USDC_MINT, "USDC", 1_000_000)], Decimal("2.5"))
    secondary = StubTokenSource("secondary", [], Decimal("2.4"))
    empty = StubTokenSource("empty", [], Decimal(0))
    failed = StubTokenSource("failed", None)
    enumerator = TokenEnumerator(
        [primary, secondary, empty, failed], None, price_lookup({"usd-coin": Decimal(1)})
    )

    result = await enumerator.enumerate("owner")

    assert result.source == "primary"
    assert result.sol_balances == (Decimal("2.5"), Decimal("2.4"))
    assert all(t.symbol != "SOL" for t in result.tokens)

from decimal import Decimal

import pytest

from treasury_oracle.adapters.token_adapters.solana_rpc import (
    SolanaTokenAccountsAdapter,
    describe_mint,
)
from treasury_oracle.constants import SPL_TOKEN_PROGRAM_ID
from treasury_oracle.settings import TreasurySettings

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
OTHER_MINT = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


@pytest.fixture
def config():
    return TreasurySettings(retry_max_attempts=1, retry_base_delay=0)


def account(mint, amount, decimals):
    return {
        "pubkey": "AccountPubkey",
        "account": {
            "data": {
                "program": "spl-token",
                "parsed": {
                    "type": "account",
                    "info": {
                        "mint": mint,
                        "owner": "owner",
                        "tokenAmount": {"amount": amount, "decimals": decimals, "uiAmount": None},
                    },
                },
            },
            "lamports": 2039280,
        },
    }


def token_accounts(*accounts):
    return {"jsonrpc": "2.0", "id": 1, "result": {"context": {"slot": 1}, "value": list(accounts)}}


def test_describe_mint():
    assert describe_mint(USDC_MINT) == ("USDC", "USD Coin")
    assert describe_mint(OTHER_MINT) == ("7xKXtg", "Token 7xKXtg2CW8...")


@pytest.mark.asyncio
async def test_scan_lists_non_empty_accounts(config, monkeypatch):
    calls = []

    async def _post_json(url, body, **kwargs):
        calls.append((url, body))
        return token_accounts(
            account(USDC_MINT, "2500000", 6),
            account(OTHER_MINT, "0", 9),
            account(OTHER_MINT, "123", 9),
        )

    adapter = SolanaTokenAccountsAdapter(config, endpoints={"primary": "https://rpc.example"})
    monkeypatch.setattr(adapter, "_post_json", _post_json)

    listing = await adapter.fetch_tokens("owner")

    assert [(t.symbol, t.raw_amount, t.decimals) for t in listing.tokens] == [
        ("USDC", 2_500_000, 6),
        ("7xKXtg", 123, 9),
    ]
    body = calls[0][1]
    assert body["method"] == "getParsedTokenAccountsByOwner"
    assert body["params"] == [
        "owner",
        {"programId": SPL_TOKEN_PROGRAM_ID},
        {"encoding": "jsonParsed"},
    ]


@pytest.mark.asyncio
async def test_falls_through_failing_endpoints(config, monkeypatch):
    async def _post_json(url, body, **kwargs):
        if "first" in url:
            raise ConnectionError("refused")
        if "second" in url:
            return {"jsonrpc": "2.0", "id": 1, "error": {"code": -32600, "message": "bad"}}
        return token_accounts(account(USDC_MINT, "1", 6))

    adapter = SolanaTokenAccountsAdapter(
        config,
        endpoints={"a": "https://first.example", "b": "https://second.example", "c": "https://third.example"},
    )
    monkeypatch.setattr(adapter, "_post_json", _post_json)

    listing = await adapter.fetch_tokens("owner")

    assert [t.mint for t in listing.tokens] == [USDC_MINT]


@pytest.mark.asyncio
async def test_all_endpoints_failing_is_unavailable(config, monkeypatch):
    async def _post_json(url, body, **kwargs):
        raise ConnectionError("refused")

    adapter = SolanaTokenAccountsAdapter(config, endpoints={"a": "https://a", "b": "https://b"})
    monkeypatch.setattr(adapter, "_post_json", _post_json)

    assert await adapter.fetch_tokens("owner") is None


@pytest.mark.asyncio
async def test_scan_reports_native_balance_from_answering_endpoint(config, monkeypatch):
    methods = []

    async def _post_json(url, body, **kwargs):
        methods.append((url, body["method"]))
        if body["method"] == "getBalance":
            return {"jsonrpc": "2.0", "id": 1, "result": {"context": {"slot": 1}, "value": 3_250_000_000}}
        return token_accounts(account(USDC_MINT, "1", 6))

    adapter = SolanaTokenAccountsAdapter(config, endpoints={"primary": "https://rpc.example"})
    monkeypatch.setattr(adapter, "_post_json", _post_json)

    listing = await adapter.fetch_tokens("owner")

    assert listing.sol_balance == Decimal("3.25")
    assert methods == [
        ("https://rpc.example", "getParsedTokenAccountsByOwner"),
        ("https://rpc.example", "getBalance"),
    ]


@pytest.mark.asyncio
async def test_failed_native_balance_keeps_token_list(config, monkeypatch):
    async def _post_json(url, body, **kwargs):
        if body["method"] == "getBalance":
            raise ConnectionError("reset")
        return token_accounts(account(USDC_MINT, "1", 6))

    adapter = SolanaTokenAccountsAdapter(config, endpoints={"primary": "https://rpc.example"})
    monkeypatch.setattr(adapter, "_post_json", _post_json)

    listing = await adapter.fetch_tokens("owner")

    assert listing.sol_balance is None
    assert [t.mint for t in listing.tokens] == [USDC_MINT]

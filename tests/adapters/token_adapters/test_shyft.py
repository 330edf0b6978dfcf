from decimal import Decimal

import pytest

from treasury_oracle.adapters.token_adapters.shyft import ShyftTokenAdapter
from treasury_oracle.constants import WRAPPED_SOL_MINT
from treasury_oracle.settings import TreasurySettings

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


@pytest.fixture
def config():
    return TreasurySettings(retry_max_attempts=1, retry_base_delay=0, shyft_api_key="shyft-key")


def serving(payload):
    async def _get_json(url, **kwargs):
        if isinstance(payload, Exception):
            raise payload
        return payload

    return _get_json


def test_requires_api_key():
    with pytest.raises(ValueError, match="shyft_api_key"):
        ShyftTokenAdapter(TreasurySettings())


@pytest.mark.asyncio
async def test_lists_tokens_in_base_units(config, monkeypatch):
    payload = {
        "success": True,
        "result": [
            {
                "address": USDC_MINT,
                "balance": 12.5,
                "info": {"name": "USD Coin"},
                "symbol": "USDC",
                "name": "USD Coin",
                "decimals": 6,
                "logo": "https://logo/usdc.png",
            },
            {"mint": "BonkMint111", "symbol": "BONK", "amount": "1000", "decimals": "5"},
            {"mint": "EmptyMint111", "symbol": "DUST", "balance": 0, "decimals": 2},
            {"mint": "BadMint111", "symbol": "BAD", "value": "n/a", "decimals": 2},
            "not-a-token",
        ],
    }
    adapter = ShyftTokenAdapter(config)
    monkeypatch.setattr(adapter, "_get_json", serving(payload))

    listing = await adapter.fetch_tokens("owner")

    assert [t.symbol for t in listing.tokens] == ["USDC", "BONK"]
    usdc, bonk = listing.tokens
    assert usdc.mint == USDC_MINT
    assert usdc.raw_amount == 12_500_000
    assert usdc.decimals == 6
    assert usdc.logo_uri == "https://logo/usdc.png"
    assert bonk.raw_amount == 100_000_000
    assert bonk.name == "BONK"
    assert listing.sol_balance is None


@pytest.mark.asyncio
async def test_failure_reports_unavailable(config, monkeypatch):
    adapter = ShyftTokenAdapter(config)
    monkeypatch.setattr(adapter, "_get_json", serving(ConnectionError("down")))

    assert await adapter.fetch_tokens("owner") is None


@pytest.mark.asyncio
async def test_unrecognized_payload_reports_unavailable(config, monkeypatch):
    adapter = ShyftTokenAdapter(config)
    monkeypatch.setattr(adapter, "_get_json", serving({"success": False, "message": "bad key"}))

    assert await adapter.fetch_tokens("owner") is None


@pytest.mark.asyncio
async def test_native_sol_entry_is_reported_apart_from_tokens(config, monkeypatch):
    payload = {
        "success": True,
        "result": [
            {"symbol": "SOL", "balance": "2.5"},
            {"mint": USDC_MINT, "symbol": "USDC", "balance": 1, "decimals": 6},
        ],
    }
    adapter = ShyftTokenAdapter(config)
    monkeypatch.setattr(adapter, "_get_json", serving(payload))

    listing = await adapter.fetch_tokens("owner")

    assert listing.sol_balance == Decimal("2.5")
    assert [t.symbol for t in listing.tokens] == ["USDC"]


@pytest.mark.asyncio
async def test_wrapped_sol_mint_counts_as_native(config, monkeypatch):
    payload = {"result": [{"address": WRAPPED_SOL_MINT, "symbol": "wSOL", "amount": 0.75, "decimals": 9}]}
    adapter = ShyftTokenAdapter(config)
    monkeypatch.setattr(adapter, "_get_json", serving(payload))

    listing = await adapter.fetch_tokens("owner")

    assert listing.sol_balance == Decimal("0.75")
    assert listing.tokens == []

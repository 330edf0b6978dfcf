from decimal import Decimal

import pytest

from treasury_oracle.adapters.price_adapters.base import InvalidPriceData
from treasury_oracle.adapters.price_adapters.coingecko import CoinGeckoAdapter
from treasury_oracle.domain import AssetAmounts
from treasury_oracle.settings import TreasurySettings


@pytest.fixture
def config():
    return TreasurySettings(retry_max_attempts=1, retry_base_delay=0)


@pytest.fixture
def adapter(config):
    return CoinGeckoAdapter(config)


def serving(payload):
    calls = []

    async def _get_json(url, **kwargs):
        calls.append((url, kwargs))
        return payload

    _get_json.calls = calls
    return _get_json


def test_adapter_name(adapter):
    assert adapter.adapter_name == "coingecko"


@pytest.mark.asyncio
async def test_fetch_spot_prices_dedupes_ids(adapter, monkeypatch):
    get_json = serving({"bonk": {"usd": 0.00002}, "usd-coin": {"usd": 1}})
    monkeypatch.setattr(adapter, "_get_json", get_json)

    prices = await adapter.fetch_spot_prices(["usd-coin", "bonk", "usd-coin"])

    assert prices == {"bonk": Decimal("0.00002"), "usd-coin": Decimal(1)}
    url, kwargs = get_json.calls[0]
    assert url.endswith("/simple/price")
    assert kwargs["params"] == {"ids": "bonk,usd-coin", "vs_currencies": "usd"}
    assert "x-cg-demo-api-key" not in kwargs["headers"]


@pytest.mark.asyncio
async def test_unknown_ids_are_omitted(adapter, monkeypatch):
    monkeypatch.setattr(adapter, "_get_json", serving({"bonk": {"usd": 0.1}, "mystery": {}}))

    assert await adapter.fetch_spot_prices(["bonk", "mystery"]) == {"bonk": Decimal("0.1")}


@pytest.mark.asyncio
async def test_empty_request_skips_network(adapter, monkeypatch):
    get_json = serving({})
    monkeypatch.setattr(adapter, "_get_json", get_json)

    assert await adapter.fetch_spot_prices([]) == {}
    assert get_json.calls == []


def test_api_key_header():
    config = TreasurySettings(coingecko_api_key="demo-key")
    adapter = CoinGeckoAdapter(config)

    assert adapter._headers()["x-cg-demo-api-key"] == "demo-key"


@pytest.mark.asyncio
async def test_error_payload_raises(adapter, monkeypatch):
    monkeypatch.setattr(
        adapter,
        "_get_json",
        serving({"status": {"error_code": 429, "error_message": "You've exceeded the Rate Limit"}}),
    )

    with pytest.raises(InvalidPriceData, match="429"):
        await adapter.fetch_spot_prices(["bitcoin"])


@pytest.mark.asyncio
async def test_fetch_major_prices(adapter, monkeypatch):
    monkeypatch.setattr(
        adapter,
        "_get_json",
        serving({"bitcoin": {"usd": 50000}, "ethereum": {"usd": 3000.5}, "solana": {"usd": 150}}),
    )

    prices = await adapter.fetch_major_prices()

    assert prices == AssetAmounts(btc=Decimal(50000), eth=Decimal("3000.5"), sol=Decimal(150))


@pytest.mark.asyncio
async def test_fetch_major_prices_rejects_missing_or_zero(adapter, monkeypatch):
    monkeypatch.setattr(
        adapter,
        "_get_json",
        serving({"bitcoin": {"usd": 50000}, "ethereum": {"usd": 0}}),
    )

    with pytest.raises(InvalidPriceData, match="Found 2 invalid price"):
        await adapter.fetch_major_prices()

import asyncio
from decimal import Decimal

import pytest

from treasury_oracle.adapters.proxy import ProxyReading, ProxyUnavailable, ServerProxyClient
from treasury_oracle.domain import AssetAmounts, AssetSymbol
from treasury_oracle.settings import TreasurySettings


@pytest.fixture
def config():
    return TreasurySettings(server_proxy_url="https://proxy.example/balances", server_proxy_timeout=0.2)


def client_serving(config, monkeypatch, payload=None, delay=0.0, error=None):
    client = ServerProxyClient(config)

    async def _get_json():
        if delay:
            await asyncio.sleep(delay)
        if error is not None:
            raise error
        return payload

    monkeypatch.setattr(client, "_get_json", _get_json)
    return client


@pytest.mark.asyncio
async def test_nested_payload(config, monkeypatch):
    client = client_serving(
        config,
        monkeypatch,
        {
            "balances": {"btc": "1.5", "eth": 20, "sol": 0},
            "prices": {"btc": 50000, "eth": 3000.25},
            "source": "server",
        },
    )

    reading = await client.fetch()

    assert reading.balances == {AssetSymbol.BTC: Decimal("1.5"), AssetSymbol.ETH: Decimal(20)}
    assert reading.prices == {AssetSymbol.BTC: Decimal(50000), AssetSymbol.ETH: Decimal("3000.25")}


@pytest.mark.asyncio
async def test_flat_payload(config, monkeypatch):
    client = client_serving(config, monkeypatch, {"btc": 2, "sol": "100.5"})

    reading = await client.fetch()

    assert reading.balances == {AssetSymbol.BTC: Decimal(2), AssetSymbol.SOL: Decimal("100.5")}
    assert reading.prices == {}


def test_zero_or_missing_fields_keep_last_known_values():
    reading = ProxyReading(balances={AssetSymbol.BTC: Decimal(3)})
    last = AssetAmounts(btc=Decimal(1), eth=Decimal(2), sol=Decimal(4))

    assert reading.merge_balances(last) == AssetAmounts(btc=Decimal(3), eth=Decimal(2), sol=Decimal(4))
    assert reading.merge_prices(last) == last


@pytest.mark.parametrize(
    "payload",
    [
        {"error": "upstream failure"},
        {"status": "ok"},
        {"balances": {"btc": 0, "eth": None}},
        ["not", "an", "object"],
    ],
)
@pytest.mark.asyncio
async def test_unusable_payloads_raise(config, monkeypatch, payload):
    client = client_serving(config, monkeypatch, payload)

    with pytest.raises(ProxyUnavailable):
        await client.fetch()


@pytest.mark.asyncio
async def test_timeout_is_unavailable(config, monkeypatch):
    client = client_serving(config, monkeypatch, {"btc": 1}, delay=5)

    with pytest.raises(ProxyUnavailable, match="request failed"):
        await client.fetch()


@pytest.mark.asyncio
async def test_transport_error_is_unavailable(config, monkeypatch):
    client = client_serving(config, monkeypatch, error=ConnectionError("refused"))

    with pytest.raises(ProxyUnavailable):
        await client.fetch()


@pytest.mark.asyncio
async def test_unconfigured_proxy_is_unavailable():
    client = ServerProxyClient(TreasurySettings())

    with pytest.raises(ProxyUnavailable, match="no server proxy configured"):
        await client.fetch()

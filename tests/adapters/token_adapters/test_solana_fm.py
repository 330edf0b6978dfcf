from decimal import Decimal

import pytest

from treasury_oracle.adapters.token_adapters.solana_fm import SolanaFmNetWorthAdapter
from treasury_oracle.settings import TreasurySettings


@pytest.fixture
def adapter():
    config = TreasurySettings(retry_max_attempts=1, retry_base_delay=0)
    return SolanaFmNetWorthAdapter(config)


def serving(payload):
    async def _get_json(url, **kwargs):
        return payload

    return _get_json


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"result": [{"usdValue": 600}, {"value": 400.5}, {}]}, Decimal("1000.5")),
        ({"data": {"netWorth": 1234.5}}, Decimal("1234.5")),
        ({"data": {"tokens": [{"usdValue": 10}, {"usdValue": 15}]}}, Decimal(25)),
        ({"totalValue": 99}, Decimal(99)),
    ],
)
@pytest.mark.asyncio
async def test_net_worth_shapes(adapter, monkeypatch, payload, expected):
    monkeypatch.setattr(adapter, "_get_json", serving(payload))

    assert await adapter.fetch_net_worth("owner") == expected


@pytest.mark.parametrize(
    "payload",
    [
        {"result": []},
        {"totalValue": 0},
        {"data": {"netWorth": -5}},
        {"status": "error"},
    ],
)
@pytest.mark.asyncio
async def test_absent_or_non_positive_net_worth(adapter, monkeypatch, payload):
    monkeypatch.setattr(adapter, "_get_json", serving(payload))

    assert await adapter.fetch_net_worth("owner") is None

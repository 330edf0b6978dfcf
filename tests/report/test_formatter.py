from datetime import datetime, timezone
from decimal import Decimal

from rich.console import Console

from treasury_oracle.domain import AssetAmounts, TokenHolding
from treasury_oracle.processors.token_enumerator import net_worth_token
from treasury_oracle.processors.valuation import build_snapshot
from treasury_oracle.report import format_snapshot_table


def render(snapshot):
    console = Console(record=True, width=140, color_system=None)
    format_snapshot_table(snapshot, console=console)
    return console.export_text()


def sample_snapshot(tokens, is_from_cache=False):
    return build_snapshot(
        AssetAmounts(btc=Decimal("1.5"), eth=Decimal(2), sol=Decimal(10)),
        AssetAmounts(btc=Decimal(50000), eth=Decimal(3000), sol=Decimal(150)),
        tokens,
        last_updated=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        is_from_cache=is_from_cache,
    )


def test_renders_assets_tokens_and_total():
    usdc = TokenHolding(
        mint="usdc-mint", symbol="USDC", name="USD Coin", raw_amount=2_500_000, decimals=6,
        usd_value=Decimal("2.50"),
    )
    unpriced = TokenHolding(mint="odd-mint", symbol="ODD", name="Odd Token", raw_amount=5, decimals=0)

    text = render(sample_snapshot([usdc, unpriced]))

    assert "$82,502.50" in text
    assert "1.50000000" in text
    assert "$50,000.00" in text
    assert "USD Coin" in text
    assert "<N/A>" in text
    assert "live" in text


def test_net_worth_row_and_cached_status():
    text = render(sample_snapshot([net_worth_token(Decimal(1000))], is_from_cache=True))

    assert "SOL net worth" in text
    assert "$1,000.00" in text
    assert "NET_WORTH" not in text
    assert "cached / fallback" in text

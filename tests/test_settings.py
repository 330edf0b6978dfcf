"""Tests for settings configuration loading."""

from __future__ import annotations

import os
from decimal import Decimal
from textwrap import dedent

import pytest
from pydantic import SecretStr, ValidationError

from treasury_oracle.processors.reconciler import ReconcileConfig
from treasury_oracle.settings import TreasurySettings


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep the developer's env and config files out of these tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in list(os.environ):
        if key.startswith("TREASURY_ORACLE_"):
            monkeypatch.delenv(key)


def test_loads_values_from_toml_table(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        dedent(
            """
            [treasury_oracle]
            sol_address = "SoLTreasury111"
            zero_quorum = 4
            refresh_interval_seconds = 60
            disabled_adapters = ["solscan"]

            [treasury_oracle.solana_rpc_urls]
            private = "https://rpc.example"
            """
        ).strip()
    )
    monkeypatch.setenv("TREASURY_ORACLE_CONFIG", str(config_path))

    settings = TreasurySettings()

    assert settings.sol_address == "SoLTreasury111"
    assert settings.zero_quorum == 4
    assert settings.refresh_interval_seconds == 60
    assert settings.disabled_adapters == ["solscan"]
    assert settings.solana_rpc_urls == {"private": "https://rpc.example"}


def test_env_overrides_toml(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text('eth_address = "0xfromfile"\n')
    monkeypatch.setenv("TREASURY_ORACLE_CONFIG", str(config_path))
    monkeypatch.setenv("TREASURY_ORACLE_ETH_ADDRESS", "0xfromenv")

    assert TreasurySettings().eth_address == "0xfromenv"


def test_init_kwargs_override_env(monkeypatch):
    monkeypatch.setenv("TREASURY_ORACLE_LOG_LEVEL", "DEBUG")

    assert TreasurySettings(log_level="WARNING").log_level == "WARNING"


def test_local_config_file_is_discovered(tmp_path):
    (tmp_path / "treasury-oracle.toml").write_text("cache_validity_seconds = 12\n")

    assert TreasurySettings().cache_validity_seconds == 12


def test_secret_in_toml_is_rejected(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text('shyft_api_key = "leaked"\n')
    monkeypatch.setenv("TREASURY_ORACLE_CONFIG", str(config_path))

    with pytest.raises(ValueError, match="Security violation"):
        TreasurySettings()


def test_secrets_are_wrapped_and_redacted():
    settings = TreasurySettings(etherscan_api_key="abc123", helius_api_key="  ")

    assert isinstance(settings.etherscan_api_key, SecretStr)
    assert settings.secret("etherscan_api_key") == "abc123"
    assert settings.helius_api_key is None
    assert settings.secret("helius_api_key") is None

    safe = settings.as_safe_dict()
    assert safe["etherscan_api_key"] == "***redacted***"
    assert safe["helius_api_key"] is None
    assert "abc123" not in str(safe)


def test_outlier_filter_minimum_must_cover_stats_minimum():
    with pytest.raises(ValueError, match="min_samples_for_outlier_filter"):
        TreasurySettings(min_samples_for_stats=4, min_samples_for_outlier_filter=3)


def test_zero_quorum_must_be_positive():
    with pytest.raises(ValidationError, match="greater than or equal to 1"):
        TreasurySettings(zero_quorum=0)


def test_btc_addresses_cannot_be_empty():
    with pytest.raises(ValidationError, match="at least one address"):
        TreasurySettings(btc_addresses=[])


def test_default_adapter_timeout_covers_retry_budget():
    settings = TreasurySettings()

    assert settings.retry_budget == 48.0
    assert settings.adapter_timeout > settings.retry_budget


def test_adapter_timeout_shorter_than_retry_budget_is_rejected():
    with pytest.raises(ValidationError, match="retry budget"):
        TreasurySettings(adapter_timeout=45, request_timeout=15, retry_max_attempts=3)

    assert TreasurySettings(adapter_timeout=45, retry_max_attempts=2).retry_budget == 31.0


def test_reconcile_config_carries_thresholds():
    settings = TreasurySettings(
        zero_quorum=3,
        min_samples_for_stats=2,
        min_samples_for_outlier_filter=4,
        outlier_sigma=Decimal("1.5"),
    )

    assert settings.reconcile_config == ReconcileConfig(
        zero_quorum=3,
        min_samples_for_stats=2,
        min_samples_for_outlier_filter=4,
        outlier_sigma=Decimal("1.5"),
        stddev_epsilon=Decimal("0.0001"),
    )


def test_adapter_enabled_matches_name_and_family():
    settings = TreasurySettings(disabled_adapters=["Blockchair", "eth_rpc"])

    assert not settings.adapter_enabled("blockchair")
    assert not settings.adapter_enabled("eth_rpc:ankr")
    assert settings.adapter_enabled("sol_rpc:ankr")
    assert settings.adapter_enabled("ethplorer")


def test_cache_dir_defaults_under_home(tmp_path):
    assert TreasurySettings().cache_dir_resolved == tmp_path / ".cache" / "treasury-oracle"
    assert TreasurySettings(cache_dir=tmp_path / "c").cache_dir_resolved == tmp_path / "c"

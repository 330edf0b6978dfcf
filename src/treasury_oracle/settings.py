"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv
from pydantic import (
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    DEFAULT_ETH_RPC_URLS,
    DEFAULT_SOLANA_RPC_URLS,
    TREASURY_BTC_ADDRESSES,
    TREASURY_ETH_ADDRESS,
    TREASURY_SOL_ADDRESS,
)

if TYPE_CHECKING:
    from .processors.reconciler import ReconcileConfig

load_dotenv()

SECRET_FIELDS = (
    "etherscan_api_key",
    "alchemy_api_key",
    "helius_api_key",
    "shyft_api_key",
    "coingecko_api_key",
)


class TreasurySettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with TREASURY_ORACLE_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- tracked addresses ---
    btc_addresses: list[str] = Field(
        default_factory=lambda: list(TREASURY_BTC_ADDRESSES.values())
    )
    eth_address: str = TREASURY_ETH_ADDRESS
    sol_address: str = TREASURY_SOL_ADDRESS

    # --- endpoints ---
    eth_rpc_urls: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_ETH_RPC_URLS)
    )
    solana_rpc_urls: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SOLANA_RPC_URLS)
    )
    server_proxy_url: str | None = None
    disabled_adapters: list[str] = Field(default_factory=list)

    # --- api keys ---
    etherscan_api_key: SecretStr | None = None
    alchemy_api_key: SecretStr | None = None
    helius_api_key: SecretStr | None = None
    shyft_api_key: SecretStr | None = None
    coingecko_api_key: SecretStr | None = None

    # --- timeouts and retries ---
    request_timeout: float = Field(default=15.0, gt=0)
    adapter_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Deadline for one adapter call, covering all of its retries.",
    )
    price_timeout: float = Field(default=30.0, gt=0)
    server_proxy_timeout: float = Field(default=8.0, gt=0)
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)

    # --- reconciliation ---
    zero_quorum: int = Field(
        default=5,
        ge=1,
        description="Number of zero answers that is accepted as a true empty balance.",
    )
    min_samples_for_stats: int = Field(default=3, ge=1)
    min_samples_for_outlier_filter: int = Field(default=5, ge=1)
    outlier_sigma: Decimal = Field(default=Decimal(2), gt=0)
    stddev_epsilon: Decimal = Field(default=Decimal("0.0001"), ge=0)

    # --- tokens ---
    token_merge_sources: bool = False

    # --- cache and scheduling ---
    cache_dir: Path | None = None
    cache_validity_seconds: float = Field(default=300.0, ge=0)
    refresh_interval_seconds: float = Field(default=300.0, gt=0)
    cache_retention_seconds: float = Field(default=86_400.0, gt=0)

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="TREASURY_ORACLE_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator(*SECRET_FIELDS, mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        if isinstance(v, str) and not v.strip():
            return None
        return SecretStr(v)

    @field_validator("btc_addresses")
    @classmethod
    def require_btc_addresses(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("btc_addresses must contain at least one address")
        return v

    @model_validator(mode="after")
    def validate_sample_thresholds(self) -> "TreasurySettings":
        """Check thresholds that depend on each other."""
        if self.min_samples_for_outlier_filter < self.min_samples_for_stats:
            raise ValueError(
                f"min_samples_for_outlier_filter ({self.min_samples_for_outlier_filter}) "
                f"must be at least min_samples_for_stats ({self.min_samples_for_stats})"
            )
        if self.adapter_timeout < self.retry_budget:
            raise ValueError(
                f"adapter_timeout ({self.adapter_timeout}s) must cover the retry budget "
                f"of {self.retry_budget}s ({self.retry_max_attempts} attempts of "
                f"request_timeout {self.request_timeout}s plus backoff waits)"
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("TREASURY_ORACLE_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    # Try default locations
                    local_config = Path("treasury-oracle.toml")
                    user_config = (
                        Path.home() / ".config" / "treasury-oracle" / "config.toml"
                    )
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [treasury_oracle]
                body = data.get("treasury_oracle", data)
                if not isinstance(body, dict):
                    return {}

                for key in SECRET_FIELDS:
                    if key in body:
                        raise ValueError(
                            f"Security violation: '{key}' found in TOML config file. "
                            f"Secrets must only be provided via environment variables or CLI flags."
                        )

                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,  # optional secrets dir
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a JSON-friendly dict with secrets redacted."""
        data = self.model_dump(mode="json")
        for key in SECRET_FIELDS:
            if getattr(self, key) is not None:
                data[key] = "***redacted***"
        return data

    def secret(self, name: str) -> str | None:
        """Plain value of an API key, or None when it is not configured."""
        value: SecretStr | None = getattr(self, name)
        return value.get_secret_value() if value is not None else None

    def adapter_enabled(self, adapter_name: str) -> bool:
        """Check ``disabled_adapters``; ``eth_rpc`` also disables ``eth_rpc:ankr``."""
        disabled = {name.lower() for name in self.disabled_adapters}
        name = adapter_name.lower()
        return name not in disabled and name.split(":", 1)[0] not in disabled

    @property
    def retry_budget(self) -> float:
        """Longest time one adapter call can take through every retry."""
        attempts = self.retry_max_attempts
        waits = self.retry_base_delay * attempts * (attempts - 1) / 2
        return attempts * self.request_timeout + waits

    @property
    def cache_dir_resolved(self) -> Path:
        if self.cache_dir is not None:
            return self.cache_dir
        return Path.home() / ".cache" / "treasury-oracle"

    @property
    def reconcile_config(self) -> "ReconcileConfig":
        from .processors.reconciler import ReconcileConfig

        return ReconcileConfig(
            zero_quorum=self.zero_quorum,
            min_samples_for_stats=self.min_samples_for_stats,
            min_samples_for_outlier_filter=self.min_samples_for_outlier_filter,
            outlier_sigma=self.outlier_sigma,
            stddev_epsilon=self.stddev_epsilon,
        )

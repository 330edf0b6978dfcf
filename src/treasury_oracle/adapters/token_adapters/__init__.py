from __future__ import annotations

from ...logger import get_logger
from ...settings import TreasurySettings
from .base import BaseNetWorthAdapter, BaseTokenAdapter, TokenListing
from .shyft import ShyftTokenAdapter
from .solana_fm import SolanaFmNetWorthAdapter
from .solana_rpc import SolanaTokenAccountsAdapter, describe_mint

logger = get_logger(__name__)


def build_token_adapters(config: TreasurySettings) -> list[BaseTokenAdapter]:
    """Token list sources in priority order."""
    adapters: list[BaseTokenAdapter] = []
    if config.secret("shyft_api_key"):
        adapters.append(ShyftTokenAdapter(config))
    adapters.append(SolanaTokenAccountsAdapter(config))
    enabled = [a for a in adapters if config.adapter_enabled(a.adapter_name)]
    for adapter in adapters:
        if adapter not in enabled:
            logger.info("Token source '%s' disabled by configuration", adapter.adapter_name)
    return enabled


def build_net_worth_adapter(config: TreasurySettings) -> BaseNetWorthAdapter | None:
    adapter = SolanaFmNetWorthAdapter(config)
    return adapter if config.adapter_enabled(adapter.adapter_name) else None


__all__ = [
    "BaseNetWorthAdapter",
    "BaseTokenAdapter",
    "ShyftTokenAdapter",
    "SolanaFmNetWorthAdapter",
    "SolanaTokenAccountsAdapter",
    "TokenListing",
    "build_net_worth_adapter",
    "build_token_adapters",
    "describe_mint",
]

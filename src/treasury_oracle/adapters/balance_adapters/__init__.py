from __future__ import annotations

from collections.abc import Callable

from ...domain import AssetSymbol
from ...logger import get_logger
from ...settings import TreasurySettings
from .base import AdapterUnavailable, BaseBalanceAdapter
from .bitcoin import BlockchainInfoAdapter, EsploraAdapter, build_bitcoin_adapters
from .ethereum import (
    BlockchairAdapter,
    EthereumRpcAdapter,
    EtherscanAdapter,
    EthplorerAdapter,
    build_ethereum_adapters,
)
from .solana import (
    ShyftBalanceAdapter,
    SolanaRpcAdapter,
    SolflareAdapter,
    SolscanAdapter,
    build_solana_adapters,
    solana_rpc_endpoints,
)

logger = get_logger(__name__)

AdapterBuilder = Callable[[TreasurySettings], list[BaseBalanceAdapter]]

ADAPTER_REGISTRY: dict[AssetSymbol, AdapterBuilder] = {
    AssetSymbol.BTC: build_bitcoin_adapters,
    AssetSymbol.ETH: build_ethereum_adapters,
    AssetSymbol.SOL: build_solana_adapters,
}


def build_balance_adapters(
    config: TreasurySettings, asset: AssetSymbol
) -> list[BaseBalanceAdapter]:
    """Instantiate every enabled balance adapter for ``asset``.

    Args:
        config: Treasury oracle settings
        asset: Asset whose providers should be built

    Returns:
        Adapters in priority order, minus those named in ``disabled_adapters``
    """
    adapters = []
    for adapter in ADAPTER_REGISTRY[asset](config):
        if config.adapter_enabled(adapter.adapter_name):
            adapters.append(adapter)
        else:
            logger.info("Adapter '%s' disabled by configuration", adapter.adapter_name)
    return adapters


__all__ = [
    "ADAPTER_REGISTRY",
    "AdapterUnavailable",
    "BaseBalanceAdapter",
    "BlockchainInfoAdapter",
    "BlockchairAdapter",
    "EsploraAdapter",
    "EthereumRpcAdapter",
    "EtherscanAdapter",
    "EthplorerAdapter",
    "ShyftBalanceAdapter",
    "SolanaRpcAdapter",
    "SolflareAdapter",
    "SolscanAdapter",
    "build_balance_adapters",
    "solana_rpc_endpoints",
]

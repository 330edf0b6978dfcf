from __future__ import annotations

from .balance_adapters import ADAPTER_REGISTRY, build_balance_adapters
from .proxy import ProxyUnavailable, ServerProxyClient
from .token_adapters import build_net_worth_adapter, build_token_adapters

__all__ = [
    "ADAPTER_REGISTRY",
    "ProxyUnavailable",
    "ServerProxyClient",
    "build_balance_adapters",
    "build_net_worth_adapter",
    "build_token_adapters",
]

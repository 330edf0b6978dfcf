from __future__ import annotations

from .reconciler import (
    AllSourcesExhausted,
    BalanceReconciler,
    ReconcileConfig,
    ReconcileMethod,
    Reconciliation,
    reconcile_amounts,
)
from .token_enumerator import TokenEnumeration, TokenEnumerator, merge_holdings
from .valuation import build_snapshot

__all__ = [
    "AllSourcesExhausted",
    "BalanceReconciler",
    "ReconcileConfig",
    "ReconcileMethod",
    "Reconciliation",
    "TokenEnumeration",
    "TokenEnumerator",
    "build_snapshot",
    "merge_holdings",
    "reconcile_amounts",
]

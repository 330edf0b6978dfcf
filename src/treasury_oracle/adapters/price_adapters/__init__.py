from __future__ import annotations

from .base import BasePriceAdapter, InvalidPriceData
from .coingecko import CoinGeckoAdapter

__all__ = ["BasePriceAdapter", "CoinGeckoAdapter", "InvalidPriceData"]

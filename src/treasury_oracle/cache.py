"""Persistent snapshot cache behind an injectable key-value store."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ValidationError

from .constants import CACHE_KEY_PREFIX
from .domain import AssetAmounts, TokenHolding, TreasurySnapshot
from .logger import get_logger

logger = get_logger(__name__)


class CacheCorrupt(Exception):
    """Raised when a stored cache entry cannot be decoded."""


class CacheStore(Protocol):
    """Minimal string key-value store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def evict(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class InMemoryCacheStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def evict(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileCacheStore:
    """One JSON file per key under ``directory``; writes are atomic renames."""

    SUFFIX = ".json"

    def __init__(self, directory: Path):
        self.directory = directory

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}{self.SUFFIX}"

    def get(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def evict(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(path.stem for path in self.directory.glob(f"*{self.SUFFIX}"))


class CachedToken(BaseModel):
    mint: str
    symbol: str
    name: str
    raw_amount: int
    decimals: int
    usd_value: Decimal = Decimal(0)
    logo_uri: str | None = None
    price_id: str | None = None

    @classmethod
    def from_holding(cls, token: TokenHolding) -> "CachedToken":
        return cls(**token.to_dict())

    def to_holding(self) -> TokenHolding:
        return TokenHolding(**self.model_dump())


class CachedAmounts(BaseModel):
    btc: Decimal = Decimal(0)
    eth: Decimal = Decimal(0)
    sol: Decimal = Decimal(0)

    def to_amounts(self) -> AssetAmounts:
        return AssetAmounts(btc=self.btc, eth=self.eth, sol=self.sol)


class CacheEntry(BaseModel):
    """Stored form of one snapshot; ``timestamp`` is the write time in epoch seconds."""

    balances: CachedAmounts
    prices: CachedAmounts
    tokens: list[CachedToken] = []
    last_updated: datetime | None = None
    timestamp: float
    address: str

    @property
    def written_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


def cache_key(address: str) -> str:
    return f"{CACHE_KEY_PREFIX}{address}"


def decode_entry(raw: str) -> CacheEntry:
    """Parse a stored entry.

    Raises:
        CacheCorrupt: If the text is not a valid entry.
    """
    try:
        return CacheEntry.model_validate_json(raw)
    except (ValidationError, json.JSONDecodeError, ValueError) as e:
        raise CacheCorrupt(str(e)) from e


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TreasuryCache:
    """Saves and restores snapshots for one treasury address."""

    def __init__(
        self,
        store: CacheStore,
        address: str,
        retention_seconds: float = 86_400.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.address = address
        self.key = cache_key(address)
        self.retention_seconds = retention_seconds
        self.clock = clock

    def save(self, snapshot: TreasurySnapshot) -> CacheEntry:
        entry = CacheEntry(
            balances=CachedAmounts(**vars(snapshot.balances)),
            prices=CachedAmounts(**vars(snapshot.prices)),
            tokens=[CachedToken.from_holding(token) for token in snapshot.tokens],
            last_updated=snapshot.last_updated,
            timestamp=self.clock().timestamp(),
            address=self.address,
        )
        self.store.set(self.key, entry.model_dump_json())
        logger.debug("Saved snapshot to cache key %s", self.key)
        return entry

    def load(self) -> CacheEntry | None:
        """Read this address's entry; a corrupt entry is evicted and treated as a miss."""
        raw = self.store.get(self.key)
        if raw is None:
            return None
        try:
            return decode_entry(raw)
        except CacheCorrupt as e:
            logger.warning("Evicting corrupt cache entry %s: %s", self.key, e)
            self.store.evict(self.key)
            return None

    def is_expired(self, entry: CacheEntry) -> bool:
        return self.clock().timestamp() - entry.timestamp > self.retention_seconds

    def sweep(self) -> int:
        """Evict expired or corrupt entries for any address.

        Best effort: a store error stops the sweep and is logged.

        Returns:
            Number of evicted entries.
        """
        evicted = 0
        try:
            for key in self.store.keys():
                if not key.startswith(CACHE_KEY_PREFIX):
                    continue
                raw = self.store.get(key)
                if raw is None:
                    continue
                try:
                    expired = self.is_expired(decode_entry(raw))
                except CacheCorrupt:
                    expired = True
                if expired:
                    self.store.evict(key)
                    evicted += 1
        except OSError as e:
            logger.warning("Cache sweep stopped early: %s", e)
        if evicted:
            logger.info("Evicted %d expired cache entries", evicted)
        return evicted

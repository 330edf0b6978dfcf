from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from ..adapters.balance_adapters.base import BaseBalanceAdapter
from ..domain import ZERO, AssetBalance, AssetSymbol
from ..logger import get_logger

logger = get_logger(__name__)


class AllSourcesExhausted(Exception):
    """Raised when every adapter for an asset is unavailable."""


class ReconcileMethod(str, Enum):
    QUORUM_ZERO = "quorum_zero"
    MEDIAN = "median"
    FILTERED_MEDIAN = "filtered_median"
    PREVIOUS = "previous"
    CACHE = "cache"
    DEFAULT = "default"


@dataclass(frozen=True)
class ReconcileConfig:
    """Thresholds for turning disagreeing provider answers into one value."""

    zero_quorum: int = 5
    min_samples_for_stats: int = 3
    min_samples_for_outlier_filter: int = 5
    outlier_sigma: Decimal = Decimal(2)
    stddev_epsilon: Decimal = Decimal("0.0001")


@dataclass(frozen=True)
class Reconciliation:
    """Outcome of reconciling one asset."""

    amount: Decimal
    method: ReconcileMethod
    samples: tuple[Decimal, ...] = ()
    rejected: tuple[Decimal, ...] = ()
    zero_count: int = 0
    unavailable_count: int = 0

    @property
    def is_fallback(self) -> bool:
        return self.method in (
            ReconcileMethod.PREVIOUS,
            ReconcileMethod.CACHE,
            ReconcileMethod.DEFAULT,
        )

    def as_balance(self, asset: AssetSymbol) -> AssetBalance:
        return AssetBalance(amount=self.amount, unit=asset)


def median(values: Sequence[Decimal]) -> Decimal:
    """Median of a non-empty sequence; the mean of the middle pair for even sizes."""
    if not values:
        raise ValueError("median of an empty sequence")
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def mean_and_stddev(values: Sequence[Decimal]) -> tuple[Decimal, Decimal]:
    """Mean and population standard deviation."""
    count = Decimal(len(values))
    mean = sum(values, ZERO) / count
    variance = sum(((value - mean) ** 2 for value in values), ZERO) / count
    return mean, variance.sqrt()


def reconcile_amounts(
    results: Sequence[Decimal | None],
    previous: Decimal | None = None,
    cached: Decimal | None = None,
    config: ReconcileConfig | None = None,
) -> Reconciliation:
    """Reconcile provider answers for one asset into a single amount.

    Args:
        results: One entry per adapter; None means the adapter was unavailable.
        previous: Last value accepted in this process.
        cached: Value from the persistent cache.
        config: Thresholds; defaults apply when omitted.

    Returns:
        The reconciled amount and how it was chosen. Zero is reported only
        when at least ``zero_quorum`` sources agree on it or no fallback
        value exists.
    """
    config = config or ReconcileConfig()
    available = [value for value in results if value is not None]
    unavailable = len(results) - len(available)
    zeros = [value for value in available if value == 0]
    non_zero = [value for value in available if value > 0]

    if len(zeros) >= config.zero_quorum:
        return Reconciliation(
            ZERO,
            ReconcileMethod.QUORUM_ZERO,
            zero_count=len(zeros),
            unavailable_count=unavailable,
        )

    if not non_zero:
        for fallback, method in (
            (previous, ReconcileMethod.PREVIOUS),
            (cached, ReconcileMethod.CACHE),
        ):
            if fallback is not None and fallback > 0:
                return Reconciliation(
                    fallback,
                    method,
                    zero_count=len(zeros),
                    unavailable_count=unavailable,
                )
        return Reconciliation(
            ZERO,
            ReconcileMethod.DEFAULT,
            zero_count=len(zeros),
            unavailable_count=unavailable,
        )

    samples = tuple(sorted(non_zero))
    if (
        len(samples) >= config.min_samples_for_stats
        and len(samples) >= config.min_samples_for_outlier_filter
    ):
        mean, stddev = mean_and_stddev(samples)
        if stddev > config.stddev_epsilon:
            bound = config.outlier_sigma * stddev
            kept = [value for value in samples if abs(value - mean) <= bound]
            rejected = tuple(value for value in samples if abs(value - mean) > bound)
            if kept:
                return Reconciliation(
                    median(kept),
                    ReconcileMethod.FILTERED_MEDIAN,
                    samples=samples,
                    rejected=rejected,
                    zero_count=len(zeros),
                    unavailable_count=unavailable,
                )

    return Reconciliation(
        median(samples),
        ReconcileMethod.MEDIAN,
        samples=samples,
        zero_count=len(zeros),
        unavailable_count=unavailable,
    )


@dataclass
class BalanceReconciler:
    """Runs every adapter for one asset and reconciles their answers.

    ``previous`` carries the last accepted amount across cycles.
    """

    asset: AssetSymbol
    adapters: list[BaseBalanceAdapter]
    config: ReconcileConfig = field(default_factory=ReconcileConfig)
    adapter_timeout: float | None = None
    previous: Decimal | None = None

    async def _run_adapter(
        self, adapter: BaseBalanceAdapter, addresses: Sequence[str]
    ) -> Decimal | None:
        try:
            if self.adapter_timeout is None:
                return await adapter.fetch_total(addresses)
            return await asyncio.wait_for(
                adapter.fetch_total(addresses), timeout=self.adapter_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Adapter '%s' timed out after %.1fs",
                adapter.adapter_name,
                self.adapter_timeout,
            )
            return None

    async def collect(self, addresses: Sequence[str]) -> list[Decimal | None]:
        """Query all adapters concurrently.

        Raises:
            AllSourcesExhausted: If no adapter produced a value.
        """
        results = await asyncio.gather(
            *(self._run_adapter(adapter, addresses) for adapter in self.adapters)
        )
        if not any(result is not None for result in results):
            raise AllSourcesExhausted(
                f"all {len(self.adapters)} {self.asset.value} adapters unavailable"
            )
        return list(results)

    async def sample(self, addresses: Sequence[str]) -> list[Decimal | None]:
        """Adapter answers for ``addresses``; all None when every adapter failed."""
        try:
            return await self.collect(addresses)
        except AllSourcesExhausted as e:
            logger.error("%s", e)
            return [None] * len(self.adapters)

    def settle(
        self,
        results: Sequence[Decimal | None],
        cached: Decimal | None = None,
    ) -> Reconciliation:
        """Reconcile collected answers and remember the accepted amount."""
        outcome = reconcile_amounts(results, self.previous, cached, self.config)
        if outcome.rejected:
            logger.info(
                "Rejected %s outliers: %s",
                self.asset.value.upper(),
                ", ".join(str(value) for value in outcome.rejected),
            )
        if outcome.is_fallback:
            logger.warning(
                "%s balance from %s fallback: %s",
                self.asset.value.upper(),
                outcome.method.value,
                outcome.amount,
            )
        else:
            logger.debug(
                "%s balance %s via %s (%d samples, %d zero, %d unavailable)",
                self.asset.value.upper(),
                outcome.amount,
                outcome.method.value,
                len(outcome.samples),
                outcome.zero_count,
                outcome.unavailable_count,
            )
        self.previous = outcome.amount
        return outcome

    async def reconcile(
        self,
        addresses: Sequence[str],
        cached: Decimal | None = None,
        extra_samples: Sequence[Decimal] = (),
    ) -> Reconciliation:
        """Fetch and reconcile the balance held across ``addresses``.

        Args:
            addresses: Every address whose balance is summed.
            cached: Persisted amount used when nothing else is known.
            extra_samples: Readings obtained outside the adapters, counted
                like any other answer.
        """
        results = await self.sample(addresses)
        return self.settle([*results, *extra_samples], cached)

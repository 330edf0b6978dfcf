"""Treasury aggregator: refresh state machine, cache, timer and publication."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from enum import Enum

from .adapters import (
    ProxyUnavailable,
    ServerProxyClient,
    build_balance_adapters,
    build_net_worth_adapter,
    build_token_adapters,
)
from .adapters.price_adapters import CoinGeckoAdapter
from .cache import CacheEntry, CacheStore, JsonFileCacheStore, TreasuryCache
from .domain import AssetAmounts, AssetSymbol, TokenHolding, TreasurySnapshot
from .events import Listener, SnapshotChannel
from .logger import get_logger
from .pipeline.context import CycleComponents, CycleContext
from .pipeline.pricing import PriceOracle
from .pipeline.run import run_cycle
from .processors import BalanceReconciler, TokenEnumerator, build_snapshot
from .processors.token_enumerator import is_net_worth
from .settings import TreasurySettings
from .state import AppState, Clock, Sleep


class CycleState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SUCCESS = "success"
    FAILED = "failed"


def _real_tokens(tokens: tuple[TokenHolding, ...] | list[TokenHolding]) -> list[TokenHolding]:
    return [token for token in tokens if not is_net_worth(token)]


class TreasuryAggregator:
    """Keeps a current treasury snapshot and republishes it to subscribers.

    At most one cycle runs at a time; callers that ask for a refresh while
    one is in flight share its result. ``refresh`` never raises: an
    unexpected failure publishes a best-effort snapshot built from the last
    known values.
    """

    def __init__(
        self,
        state: AppState,
        components: CycleComponents,
        cache: TreasuryCache,
        proxy: ServerProxyClient | None = None,
        channel: SnapshotChannel | None = None,
    ):
        self.state = state
        self.components = components
        self.cache = cache
        self.proxy = proxy
        self.channel = channel or SnapshotChannel()
        self.cycle_state = CycleState.IDLE
        self._snapshot = TreasurySnapshot.empty()
        self._inflight: asyncio.Task[TreasurySnapshot] | None = None
        self._fetching = False
        self._timer: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: TreasurySettings,
        store: CacheStore | None = None,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
    ) -> "TreasuryAggregator":
        """Wire adapters, processors and cache from settings."""
        state = AppState(settings=settings, logger=get_logger("treasury_oracle"))
        if clock is not None:
            state.clock = clock
        if sleep is not None:
            state.sleep = sleep

        reconcilers = {
            asset: BalanceReconciler(
                asset=asset,
                adapters=build_balance_adapters(settings, asset),
                config=settings.reconcile_config,
                adapter_timeout=settings.adapter_timeout,
            )
            for asset in AssetSymbol
        }
        oracle = PriceOracle(
            CoinGeckoAdapter(settings), timeout=settings.price_timeout, clock=state.clock
        )
        enumerator = TokenEnumerator(
            build_token_adapters(settings),
            build_net_worth_adapter(settings),
            oracle.token_prices,
            merge_sources=settings.token_merge_sources,
        )
        cache = TreasuryCache(
            store or JsonFileCacheStore(settings.cache_dir_resolved),
            settings.sol_address,
            retention_seconds=settings.cache_retention_seconds,
            clock=state.clock,
        )
        proxy = ServerProxyClient(settings) if settings.server_proxy_url else None
        return cls(
            state,
            CycleComponents(reconcilers=reconcilers, enumerator=enumerator, oracle=oracle),
            cache,
            proxy=proxy,
        )

    # --- snapshot access ---

    @property
    def is_fetching(self) -> bool:
        return self._fetching

    def get_snapshot(self) -> TreasurySnapshot:
        """Current snapshot; never blocks on the network."""
        return replace(self._snapshot, is_fetching=self.is_fetching)

    def is_stale(self) -> bool:
        last_updated = self._snapshot.last_updated
        if last_updated is None:
            return True
        validity = self.state.settings.cache_validity_seconds
        return self.state.seconds_since(last_updated) > validity

    # --- subscriptions ---

    def subscribe(self, listener: Listener) -> None:
        """Register ``listener`` and hand it the current snapshot right away."""
        self.channel.subscribe(listener)
        self.channel.deliver(listener, self.get_snapshot())

    def unsubscribe(self, listener: Listener) -> None:
        self.channel.unsubscribe(listener)

    def _publish(self, snapshot: TreasurySnapshot) -> None:
        self._snapshot = snapshot
        self.channel.publish(self.get_snapshot())

    # --- cache ---

    def save_to_cache(self, snapshot: TreasurySnapshot) -> bool:
        try:
            self.cache.save(snapshot)
        except Exception as e:
            self.state.logger.warning("Could not write cache: %s", e)
            return False
        return True

    def _snapshot_from_entry(self, entry: CacheEntry) -> TreasurySnapshot:
        return build_snapshot(
            entry.balances.to_amounts(),
            entry.prices.to_amounts(),
            [token.to_holding() for token in entry.tokens],
            last_updated=entry.last_updated or entry.written_at,
            is_from_cache=True,
        )

    def _load_entry(self) -> CacheEntry | None:
        try:
            return self.cache.load()
        except Exception as e:
            self.state.logger.warning("Could not read cache: %s", e)
            return None

    def load_from_cache(self) -> TreasurySnapshot | None:
        """Adopt the cached snapshot, if any, and publish it."""
        entry = self._load_entry()
        if entry is None:
            return None
        snapshot = self._snapshot_from_entry(entry)
        self.state.logger.info(
            "Loaded cached snapshot from %s (total $%s)",
            snapshot.last_updated.isoformat() if snapshot.last_updated else "unknown",
            snapshot.total_usd,
        )
        self._publish(snapshot)
        return snapshot

    # --- refresh ---

    async def refresh(self, force: bool = False) -> TreasurySnapshot:
        """Run a cycle if forced, if there is no snapshot yet, or if it is stale.

        Concurrent callers await the cycle already in flight.
        """
        if self._inflight is not None and not self._inflight.done():
            self.state.logger.debug("Refresh already in flight; awaiting it")
            return await asyncio.shield(self._inflight)
        if not force and not self.is_stale():
            return self.get_snapshot()

        self._fetching = True
        self._inflight = asyncio.create_task(self._run())
        return await asyncio.shield(self._inflight)

    async def _run(self) -> TreasurySnapshot:
        self.cycle_state = CycleState.FETCHING
        try:
            snapshot = await self._cycle()
            self.cycle_state = CycleState.SUCCESS
        except asyncio.CancelledError:
            self._fetching = False
            self.cycle_state = CycleState.IDLE
            raise
        except Exception:
            self.state.logger.exception("Reconciliation cycle failed")
            self.cycle_state = CycleState.FAILED
            snapshot = self._best_effort_snapshot()

        self._fetching = False
        self._publish(snapshot)
        self.cycle_state = CycleState.IDLE
        return self.get_snapshot()

    async def _from_proxy(self) -> TreasurySnapshot | None:
        if self.proxy is None:
            return None
        try:
            reading = await self.proxy.fetch()
        except ProxyUnavailable as e:
            self.state.logger.warning("%s; reconciling directly", e)
            return None

        self.state.logger.info("Using server proxy reading")
        previous = self._snapshot
        return build_snapshot(
            reading.merge_balances(previous.balances),
            reading.merge_prices(previous.prices),
            previous.tokens,
            last_updated=self.state.clock(),
        )

    def _fallback_tokens(self, ctx: CycleContext) -> list[TokenHolding]:
        previous = _real_tokens(self._snapshot.tokens)
        if previous:
            self.state.logger.warning("Token sources failed; keeping previous token list")
            return previous
        if ctx.cached is not None and ctx.cached.tokens:
            self.state.logger.warning("Token sources failed; using cached token list")
            return _real_tokens([token.to_holding() for token in ctx.cached.tokens])
        return []

    async def _cycle(self) -> TreasurySnapshot:
        snapshot = await self._from_proxy()
        if snapshot is not None:
            self.save_to_cache(snapshot)
            return snapshot

        ctx = CycleContext(state=self.state, cached=self._load_entry())
        await run_cycle(ctx, self.components)

        enumeration = ctx.tokens_required
        from_cache = ctx.used_fallback
        if enumeration.listed:
            tokens = list(enumeration.tokens)
        else:
            tokens = self._fallback_tokens(ctx)
            from_cache = from_cache or bool(tokens)
            tokens.extend(t for t in enumeration.tokens if is_net_worth(t))

        snapshot = build_snapshot(
            ctx.balances,
            ctx.prices_required.prices,
            tokens,
            last_updated=self.state.clock(),
            is_from_cache=from_cache,
        )
        self.save_to_cache(snapshot)
        self.state.logger.info(
            "Treasury total $%s (BTC $%s, ETH $%s, SOL $%s, tokens $%s)",
            snapshot.total_usd,
            snapshot.usd_values.btc,
            snapshot.usd_values.eth,
            snapshot.usd_values.sol,
            snapshot.tokens_usd_value,
        )
        return snapshot

    def _best_effort_snapshot(self) -> TreasurySnapshot:
        previous = self._snapshot
        remembered = {
            asset: reconciler.previous
            for asset, reconciler in self.components.reconcilers.items()
            if reconciler.previous is not None
        }
        balances = AssetAmounts.from_mapping(
            {asset: remembered.get(asset, previous.balances.get(asset)) for asset in AssetSymbol}
        )
        prices = self.components.oracle.last_prices or previous.prices
        return build_snapshot(
            balances,
            prices,
            previous.tokens,
            last_updated=previous.last_updated,
            is_from_cache=True,
        )

    # --- timer ---

    async def _timer_loop(self) -> None:
        interval = self.state.settings.refresh_interval_seconds
        await self.refresh()
        while True:
            await self.state.sleep(interval)
            await self.refresh(force=True)

    async def start(self) -> None:
        """Load the cache, sweep expired entries and start periodic refreshes."""
        if self._timer is not None and not self._timer.done():
            return
        self.load_from_cache()
        self.cache.sweep()
        self._timer = asyncio.create_task(self._timer_loop())
        self.state.logger.info(
            "Aggregator started (refresh every %.0fs)",
            self.state.settings.refresh_interval_seconds,
        )

    async def stop(self) -> None:
        """Cancel the periodic refresh; an in-flight cycle is left to finish."""
        timer, self._timer = self._timer, None
        if timer is None:
            return
        timer.cancel()
        try:
            await timer
        except asyncio.CancelledError:
            pass
        self.state.logger.info("Aggregator stopped")

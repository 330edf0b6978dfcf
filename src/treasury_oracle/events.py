"""Snapshot publication to in-process subscribers."""

from __future__ import annotations

from collections.abc import Callable

from .domain import TreasurySnapshot
from .logger import get_logger

logger = get_logger(__name__)

Listener = Callable[[TreasurySnapshot], None]


class SnapshotChannel:
    """Delivers snapshots to listeners in subscription order.

    A failing listener is logged and skipped; it never affects the others
    or the publisher.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)
        logger.debug("Subscriber added (%d total)", len(self._listeners))

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
        logger.debug("Subscriber removed (%d total)", len(self._listeners))

    def deliver(self, listener: Listener, snapshot: TreasurySnapshot) -> None:
        try:
            listener(snapshot)
        except Exception:
            logger.exception("Subscriber %r failed", listener)

    def publish(self, snapshot: TreasurySnapshot) -> None:
        for listener in list(self._listeners):
            self.deliver(listener, snapshot)

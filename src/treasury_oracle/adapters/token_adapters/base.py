from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, TypeVar

from ...domain import TokenHolding
from ...logger import get_logger
from ...retry import with_retry
from ...settings import TreasurySettings
from ..http import get_json, post_json

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TokenListing:
    """One source's answer: SPL holdings plus the native SOL it saw, if any."""

    tokens: list[TokenHolding] = field(default_factory=list)
    sol_balance: Decimal | None = None


class TokenSource(ABC):
    """Shared plumbing for token and net-worth sources.

    Sources never raise to their caller: a failed lookup is logged and
    reported as ``None``.
    """

    def __init__(self, config: TreasurySettings):
        self.config = config
        self.request_timeout = config.request_timeout

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Return the name of this adapter."""
        ...

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        return await get_json(url, timeout=self.request_timeout, **kwargs)

    async def _post_json(self, url: str, body: dict[str, Any], **kwargs: Any) -> Any:
        return await post_json(url, body, timeout=self.request_timeout, **kwargs)

    async def _guarded(self, operation: Callable[[], Awaitable[T]]) -> T | None:
        try:
            return await with_retry(
                operation,
                self.adapter_name,
                max_attempts=self.config.retry_max_attempts,
                base_delay=self.config.retry_base_delay,
                attempt_timeout=self.request_timeout,
            )
        except Exception as e:
            logger.warning("Token source '%s' unavailable: %s", self.adapter_name, e)
            return None


class BaseTokenAdapter(TokenSource):
    """Abstract base class for sources listing the tokens an account holds."""

    @abstractmethod
    async def _query_tokens(self, address: str) -> TokenListing:
        """Query the source once; may raise."""
        ...

    async def fetch_tokens(self, address: str) -> TokenListing | None:
        """List token holdings of ``address``.

        Returns:
            Holdings in source order with the native SOL balance when the
            source reports one, or None when the source is unavailable.
        """
        listing = await self._guarded(lambda: self._query_tokens(address))
        if listing is not None:
            logger.debug(
                "Token source '%s' listed %d tokens (native SOL: %s)",
                self.adapter_name,
                len(listing.tokens),
                listing.sol_balance,
            )
        return listing


class BaseNetWorthAdapter(TokenSource):
    """Abstract base class for sources reporting an account's total USD value."""

    @abstractmethod
    async def _query_net_worth(self, address: str) -> Decimal | None:
        """Query the source once; None when it has no valuation."""
        ...

    async def fetch_net_worth(self, address: str) -> Decimal | None:
        """Provider-computed USD net worth, or None when absent or not positive."""
        net_worth = await self._guarded(lambda: self._query_net_worth(address))
        if net_worth is None or not net_worth.is_finite() or net_worth <= 0:
            return None
        return net_worth

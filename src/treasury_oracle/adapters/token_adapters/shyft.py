from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import StrictFloat, StrictInt, StrictStr

from ...constants import SHYFT_API_URL, WRAPPED_SOL_MINT
from ...domain import TokenHolding
from ...logger import get_logger
from ...settings import TreasurySettings
from ...units import to_decimal
from ..balance_adapters.base import AdapterUnavailable
from ..schemas import ResponseShape, UnrecognizedShape, match_shape
from .base import BaseTokenAdapter, TokenListing

logger = get_logger(__name__)

Quantity = StrictStr | StrictFloat | StrictInt | None


class ShyftToken(ResponseShape):
    """One ``all_tokens`` entry.

    The held quantity has appeared as ``balance``, ``amount`` or ``value``,
    either as a number or a numeric string, always in whole token units.
    """

    symbol: StrictStr | None = None
    name: StrictStr | None = None
    mint: StrictStr | None = None
    address: StrictStr | None = None
    decimals: StrictInt | StrictStr = 0
    logo: StrictStr | None = None
    balance: Quantity = None
    amount: Quantity = None
    value: Quantity = None

    @property
    def quantity(self) -> str | float | int | None:
        for candidate in (self.balance, self.amount, self.value):
            if candidate is not None:
                return candidate
        return None

    @property
    def is_native_sol(self) -> bool:
        return self.symbol == "SOL" or WRAPPED_SOL_MINT in (self.mint, self.address)

    def ui_amount(self) -> Decimal | None:
        """Positive held quantity, or None when absent or unparseable."""
        if self.quantity is None:
            return None
        try:
            amount = to_decimal(self.quantity)
        except ValueError:
            return None
        return amount if amount > 0 else None


class ShyftAllTokens(ResponseShape):
    result: list[Any]


def _to_holding(token: ShyftToken, ui_amount: Decimal) -> TokenHolding | None:
    mint = token.mint or token.address
    if not mint:
        return None
    try:
        decimals = int(token.decimals)
    except ValueError:
        return None
    if decimals < 0:
        return None

    symbol = token.symbol or "Unknown"
    return TokenHolding(
        mint=mint,
        symbol=symbol,
        name=token.name or token.symbol or "Unknown Token",
        raw_amount=int(ui_amount.scaleb(decimals).to_integral_value()),
        decimals=decimals,
        logo_uri=token.logo or None,
    )


class ShyftTokenAdapter(BaseTokenAdapter):
    """Token list from the Shyft ``wallet/all_tokens`` indexer (API key required)."""

    def __init__(self, config: TreasurySettings, api_url: str = SHYFT_API_URL):
        super().__init__(config)
        api_key = config.secret("shyft_api_key")
        if api_key is None:
            raise ValueError("shyft_api_key is required for the Shyft token adapter")
        self._api_key = api_key
        self.api_url = api_url.rstrip("/")

    @property
    def adapter_name(self) -> str:
        return "shyft_tokens"

    async def _query_tokens(self, address: str) -> TokenListing:
        payload = await self._get_json(
            f"{self.api_url}/wallet/all_tokens",
            params={"network": "mainnet-beta", "wallet": address},
            headers={"x-api-key": self._api_key, "Accept": "application/json"},
        )
        match match_shape(payload, (ShyftAllTokens,)):
            case ShyftAllTokens(result=entries):
                pass
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized Shyft all_tokens response: {unknown.describe()}"
                )

        holdings: list[TokenHolding] = []
        sol_balance: Decimal | None = None
        for entry in entries:
            match match_shape(entry, (ShyftToken,)):
                case ShyftToken() as token:
                    pass
                case UnrecognizedShape() as unknown:
                    logger.debug("Skipping malformed Shyft token %s", unknown.describe())
                    continue
            ui_amount = token.ui_amount()
            if ui_amount is None:
                continue
            if token.is_native_sol:
                sol_balance = ui_amount
                continue
            holding = _to_holding(token, ui_amount)
            if holding is not None:
                holdings.append(holding)
        return TokenListing(tokens=holdings, sol_balance=sol_balance)


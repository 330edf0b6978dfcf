from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, StrictFloat, StrictInt

from ...constants import SOLANA_FM_API_URL
from ...domain import ZERO
from ...settings import TreasurySettings
from ...units import to_decimal
from ..balance_adapters.base import AdapterUnavailable
from ..schemas import ResponseShape, UnrecognizedShape, match_shape
from .base import BaseNetWorthAdapter

Number = StrictFloat | StrictInt


class _ValuedToken(BaseModel):
    usdValue: Number | None = None
    value: Number | None = None

    @property
    def usd(self) -> Decimal:
        for candidate in (self.usdValue, self.value):
            if candidate is not None:
                return to_decimal(candidate)
        return ZERO


class ResultTokens(ResponseShape):
    result: list[_ValuedToken]


class _NetWorth(BaseModel):
    netWorth: Number


class DirectNetWorth(ResponseShape):
    data: _NetWorth


class _TokenList(BaseModel):
    tokens: list[_ValuedToken]


class DataTokens(ResponseShape):
    data: _TokenList


class TotalValue(ResponseShape):
    totalValue: Number


def _sum_tokens(tokens: list[_ValuedToken]) -> Decimal | None:
    if not tokens:
        return None
    return sum((token.usd for token in tokens), ZERO)


class SolanaFmNetWorthAdapter(BaseNetWorthAdapter):
    """Account net worth from the Solana.fm account tokens API."""

    SHAPES = (ResultTokens, DirectNetWorth, DataTokens, TotalValue)

    def __init__(self, config: TreasurySettings, api_url: str = SOLANA_FM_API_URL):
        super().__init__(config)
        self.api_url = api_url.rstrip("/")

    @property
    def adapter_name(self) -> str:
        return "solana_fm"

    async def _query_net_worth(self, address: str) -> Decimal | None:
        payload = await self._get_json(f"{self.api_url}/accounts/{address}/tokens")
        match match_shape(payload, self.SHAPES):
            case ResultTokens(result=tokens):
                return _sum_tokens(tokens)
            case DirectNetWorth(data=data):
                return to_decimal(data.netWorth)
            case DataTokens(data=data):
                return _sum_tokens(data.tokens)
            case TotalValue(totalValue=total):
                return to_decimal(total)
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized Solana.fm response: {unknown.describe()}"
                )

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, StrictInt, StrictStr

from ...constants import KNOWN_SPL_MINTS, SPL_TOKEN_PROGRAM_ID
from ...domain import TokenHolding
from ...logger import get_logger
from ...settings import TreasurySettings
from ..balance_adapters.base import AdapterUnavailable
from ..balance_adapters.solana import RpcError, parse_rpc_balance, solana_rpc_endpoints
from ..http import json_rpc_body
from ..schemas import ResponseShape, UnrecognizedShape, match_shape
from .base import BaseTokenAdapter, TokenListing

logger = get_logger(__name__)


class _TokenAmount(BaseModel):
    amount: StrictStr
    decimals: StrictInt


class _AccountInfo(BaseModel):
    mint: StrictStr
    tokenAmount: _TokenAmount


class _Parsed(BaseModel):
    info: _AccountInfo


class _ParsedData(BaseModel):
    parsed: _Parsed


class _Account(BaseModel):
    data: _ParsedData


class _KeyedAccount(BaseModel):
    account: _Account


class _AccountList(BaseModel):
    value: list[_KeyedAccount]


class ParsedTokenAccounts(ResponseShape):
    result: _AccountList


def describe_mint(mint: str) -> tuple[str, str]:
    """Symbol and name for a mint without an indexer.

    Unknown mints get a placeholder derived from the mint address.
    """
    if mint in KNOWN_SPL_MINTS:
        return KNOWN_SPL_MINTS[mint]
    return mint[:6], f"Token {mint[:10]}..."


class SolanaTokenAccountsAdapter(BaseTokenAdapter):
    """Token list from ``getParsedTokenAccountsByOwner`` on Solana RPC nodes.

    Endpoints are tried in order; the first that answers wins.
    """

    def __init__(
        self, config: TreasurySettings, endpoints: dict[str, str] | None = None
    ):
        super().__init__(config)
        self.endpoints = (
            endpoints if endpoints is not None else solana_rpc_endpoints(config)
        )

    @property
    def adapter_name(self) -> str:
        return "sol_rpc_tokens"

    async def _query_endpoint(self, url: str, address: str) -> list[TokenHolding]:
        payload = await self._post_json(
            url,
            json_rpc_body(
                "getParsedTokenAccountsByOwner",
                [address, {"programId": SPL_TOKEN_PROGRAM_ID}, {"encoding": "jsonParsed"}],
            ),
        )
        match match_shape(payload, (RpcError, ParsedTokenAccounts)):
            case RpcError(error=error):
                raise AdapterUnavailable(f"RPC error: {error.get('message', error)}")
            case ParsedTokenAccounts(result=result):
                accounts = result.value
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized token accounts response: {unknown.describe()}"
                )

        holdings = []
        for keyed in accounts:
            info = keyed.account.data.parsed.info
            try:
                raw_amount = int(info.tokenAmount.amount)
            except ValueError:
                logger.debug("Skipping token account with amount %r", info.tokenAmount.amount)
                continue
            if raw_amount <= 0:
                continue
            symbol, name = describe_mint(info.mint)
            holdings.append(
                TokenHolding(
                    mint=info.mint,
                    symbol=symbol,
                    name=name,
                    raw_amount=raw_amount,
                    decimals=info.tokenAmount.decimals,
                )
            )
        return holdings

    async def _native_balance(self, url: str, address: str) -> Decimal | None:
        try:
            payload = await self._post_json(url, json_rpc_body("getBalance", [address]))
            return parse_rpc_balance(payload)
        except Exception as e:
            logger.debug("Native SOL balance via '%s' failed: %s", url, e)
            return None

    async def _query_tokens(self, address: str) -> TokenListing:
        for name, url in self.endpoints.items():
            try:
                holdings = await self._query_endpoint(url, address)
            except Exception as e:
                logger.warning("Token scan via RPC '%s' failed: %s", name, e)
                continue
            logger.debug("Token scan via RPC '%s' found %d accounts", name, len(holdings))
            return TokenListing(
                tokens=holdings, sol_balance=await self._native_balance(url, address)
            )
        raise AdapterUnavailable("all RPC endpoints failed the token account scan")

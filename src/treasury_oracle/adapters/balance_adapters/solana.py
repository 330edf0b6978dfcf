from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, StrictFloat, StrictInt, StrictStr

from ...constants import (
    HELIUS_RPC_URL,
    LAMPORTS_DECIMALS,
    SHYFT_API_URL,
    SOLFLARE_API_URL,
    SOLSCAN_API_URL,
)
from ...domain import AssetSymbol
from ...logger import get_logger
from ...settings import TreasurySettings
from ...units import from_base_units, to_decimal
from ..http import json_rpc_body
from ..schemas import ResponseShape, UnrecognizedShape, match_shape
from .base import AdapterUnavailable, BaseBalanceAdapter

logger = get_logger(__name__)


def _lamports_to_sol(raw: int | str) -> Decimal:
    try:
        lamports = int(raw)
    except ValueError as e:
        raise AdapterUnavailable(f"invalid lamport amount {raw!r}") from e
    return from_base_units(lamports, LAMPORTS_DECIMALS)


def _sol_amount(raw: Any) -> Decimal:
    try:
        return to_decimal(raw)
    except ValueError as e:
        raise AdapterUnavailable(str(e)) from e


class RpcError(ResponseShape):
    error: dict[str, Any]


class _LamportsValue(BaseModel):
    value: StrictInt


class _LamportsString(BaseModel):
    value: StrictStr


class RpcLamports(ResponseShape):
    """Standard ``getBalance`` answer: ``result.value`` in lamports."""

    result: _LamportsValue


class RpcBareLamports(ResponseShape):
    """Some nodes return the lamport count directly as ``result``."""

    result: StrictInt


class RpcStringLamports(ResponseShape):
    result: _LamportsString


def parse_rpc_balance(payload: Any) -> Decimal:
    """SOL amount from a ``getBalance`` answer in any of its known shapes.

    Raises:
        AdapterUnavailable: On an RPC error or an unrecognized answer.
    """
    match match_shape(payload, (RpcError, RpcLamports, RpcBareLamports, RpcStringLamports)):
        case RpcError(error=error):
            raise AdapterUnavailable(f"RPC error: {error.get('message', error)}")
        case RpcLamports(result=result):
            return _lamports_to_sol(result.value)
        case RpcBareLamports(result=lamports):
            return _lamports_to_sol(lamports)
        case RpcStringLamports(result=result):
            return _lamports_to_sol(result.value)
        case UnrecognizedShape() as unknown:
            raise AdapterUnavailable(f"unrecognized RPC response: {unknown.describe()}")


class SolanaRpcAdapter(BaseBalanceAdapter):
    """Adapter for a Solana JSON-RPC node (``getBalance``)."""

    def __init__(self, config: TreasurySettings, name: str, rpc_url: str):
        super().__init__(config)
        self._name = name
        self.rpc_url = rpc_url

    @property
    def adapter_name(self) -> str:
        return f"sol_rpc:{self._name}"

    @property
    def asset(self) -> AssetSymbol:
        return AssetSymbol.SOL

    async def _query_balance(self, address: str) -> Decimal:
        payload = await self._post_json(
            self.rpc_url, json_rpc_body("getBalance", [address])
        )
        return parse_rpc_balance(payload)


class _ShyftString(BaseModel):
    balance: StrictStr


class _ShyftNumber(BaseModel):
    balance: StrictFloat | StrictInt


class ShyftStringBalance(ResponseShape):
    result: _ShyftString


class ShyftNumberBalance(ResponseShape):
    result: _ShyftNumber


class ShyftBalanceAdapter(BaseBalanceAdapter):
    """Adapter for the Shyft wallet balance API; reports SOL, not lamports."""

    def __init__(self, config: TreasurySettings, api_url: str = SHYFT_API_URL):
        super().__init__(config)
        api_key = config.secret("shyft_api_key")
        if api_key is None:
            raise ValueError("shyft_api_key is required for the Shyft adapter")
        self._api_key = api_key
        self.api_url = api_url.rstrip("/")

    @property
    def adapter_name(self) -> str:
        return "shyft"

    @property
    def asset(self) -> AssetSymbol:
        return AssetSymbol.SOL

    async def _query_balance(self, address: str) -> Decimal:
        payload = await self._get_json(
            f"{self.api_url}/wallet/balance",
            params={"network": "mainnet-beta", "wallet": address},
            headers={"x-api-key": self._api_key, "Accept": "application/json"},
        )
        match match_shape(payload, (ShyftStringBalance, ShyftNumberBalance)):
            case ShyftStringBalance(result=result):
                return _sol_amount(result.balance)
            case ShyftNumberBalance(result=result):
                return _sol_amount(result.balance)
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized Shyft response: {unknown.describe()}"
                )


class LamportsInt(ResponseShape):
    lamports: StrictInt


class LamportsStr(ResponseShape):
    lamports: StrictStr


class _NestedLamports(BaseModel):
    lamports: StrictInt


class NestedLamports(ResponseShape):
    data: _NestedLamports


class SolscanAdapter(BaseBalanceAdapter):
    """Adapter for the Solscan public account API."""

    def __init__(self, config: TreasurySettings, api_url: str = SOLSCAN_API_URL):
        super().__init__(config)
        self.api_url = api_url.rstrip("/")

    @property
    def adapter_name(self) -> str:
        return "solscan"

    @property
    def asset(self) -> AssetSymbol:
        return AssetSymbol.SOL

    async def _query_balance(self, address: str) -> Decimal:
        payload = await self._get_json(f"{self.api_url}/account/{address}")
        match match_shape(payload, (LamportsInt, LamportsStr, NestedLamports)):
            case LamportsInt(lamports=lamports) | LamportsStr(lamports=lamports):
                return _lamports_to_sol(lamports)
            case NestedLamports(data=data):
                return _lamports_to_sol(data.lamports)
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized Solscan response: {unknown.describe()}"
                )


class SolBalanceNumber(ResponseShape):
    balance: StrictFloat | StrictInt


class SolBalanceString(ResponseShape):
    balance: StrictStr


class SolflareAdapter(BaseBalanceAdapter):
    """Adapter for the Solflare account API.

    Older responses report lamports, newer ones a SOL ``balance``.
    """

    SHAPES = (LamportsInt, LamportsStr, SolBalanceNumber, SolBalanceString)

    def __init__(self, config: TreasurySettings, api_url: str = SOLFLARE_API_URL):
        super().__init__(config)
        self.api_url = api_url.rstrip("/")

    @property
    def adapter_name(self) -> str:
        return "solflare"

    @property
    def asset(self) -> AssetSymbol:
        return AssetSymbol.SOL

    async def _query_balance(self, address: str) -> Decimal:
        payload = await self._get_json(f"{self.api_url}/v0/account/{address}")
        match match_shape(payload, self.SHAPES):
            case LamportsInt(lamports=lamports) | LamportsStr(lamports=lamports):
                return _lamports_to_sol(lamports)
            case SolBalanceNumber(balance=balance) | SolBalanceString(balance=balance):
                return _sol_amount(balance)
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized Solflare response: {unknown.describe()}"
                )


def solana_rpc_endpoints(config: TreasurySettings) -> dict[str, str]:
    """Configured Solana RPC endpoints plus Helius when a key is set."""
    endpoints = dict(config.solana_rpc_urls)
    helius_key = config.secret("helius_api_key")
    if helius_key:
        endpoints["helius"] = f"{HELIUS_RPC_URL}/?api-key={helius_key}"
    return endpoints


def build_solana_adapters(config: TreasurySettings) -> list[BaseBalanceAdapter]:
    adapters: list[BaseBalanceAdapter] = [
        SolanaRpcAdapter(config, name, url)
        for name, url in solana_rpc_endpoints(config).items()
    ]
    if config.secret("shyft_api_key"):
        adapters.append(ShyftBalanceAdapter(config))
    else:
        logger.debug("Shyft balance adapter disabled: no API key configured")
    adapters.append(SolscanAdapter(config))
    adapters.append(SolflareAdapter(config))
    return adapters

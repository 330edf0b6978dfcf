from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, StrictFloat, StrictInt, StrictStr
from web3 import Web3

from ...constants import (
    ALCHEMY_ETH_URL,
    BLOCKCHAIR_ETH_API_URL,
    ETHERSCAN_API_URL,
    ETHPLORER_API_URL,
    ETHPLORER_FREE_KEY,
    WEI_DECIMALS,
)
from ...domain import AssetSymbol
from ...logger import get_logger
from ...settings import TreasurySettings
from ...units import from_base_units, to_decimal
from ..schemas import ResponseShape, UnrecognizedShape, match_shape
from .base import AdapterUnavailable, BaseBalanceAdapter

logger = get_logger(__name__)


def _wei_to_eth(raw: int | str) -> Decimal:
    try:
        wei = int(raw)
    except ValueError as e:
        raise AdapterUnavailable(f"invalid wei amount {raw!r}") from e
    return from_base_units(wei, WEI_DECIMALS)


class EthereumRpcAdapter(BaseBalanceAdapter):
    """Adapter for an Ethereum JSON-RPC node (``eth_getBalance`` at latest)."""

    def __init__(self, config: TreasurySettings, name: str, rpc_url: str):
        super().__init__(config)
        self._name = name
        self.w3 = Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": self.request_timeout})
        )

    @property
    def adapter_name(self) -> str:
        return f"eth_rpc:{self._name}"

    @property
    def asset(self) -> AssetSymbol:
        return AssetSymbol.ETH

    async def _query_balance(self, address: str) -> Decimal:
        checksum = Web3.to_checksum_address(address)
        wei = await asyncio.to_thread(self.w3.eth.get_balance, checksum, "latest")
        return from_base_units(int(wei), WEI_DECIMALS)


class EtherscanBalance(ResponseShape):
    status: Literal["1"]
    result: StrictStr


class EtherscanError(ResponseShape):
    status: Literal["0"]
    message: StrictStr = ""
    result: StrictStr = ""


class EtherscanAdapter(BaseBalanceAdapter):
    """Adapter for the Etherscan account balance API (API key required)."""

    def __init__(self, config: TreasurySettings, api_url: str = ETHERSCAN_API_URL):
        super().__init__(config)
        api_key = config.secret("etherscan_api_key")
        if api_key is None:
            raise ValueError("etherscan_api_key is required for the Etherscan adapter")
        self._api_key = api_key
        self.api_url = api_url

    @property
    def adapter_name(self) -> str:
        return "etherscan"

    @property
    def asset(self) -> AssetSymbol:
        return AssetSymbol.ETH

    async def _query_balance(self, address: str) -> Decimal:
        payload = await self._get_json(
            self.api_url,
            params={
                "module": "account",
                "action": "balance",
                "address": address,
                "tag": "latest",
                "apikey": self._api_key,
            },
        )
        match match_shape(payload, (EtherscanBalance, EtherscanError)):
            case EtherscanBalance(result=wei):
                return _wei_to_eth(wei)
            case EtherscanError(message=message, result=detail):
                raise AdapterUnavailable(f"Etherscan error: {message or detail}")
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized Etherscan response: {unknown.describe()}"
                )


class _BlockchairAddress(BaseModel):
    balance: StrictStr | StrictInt


class _BlockchairEntry(BaseModel):
    address: _BlockchairAddress


class BlockchairDashboard(ResponseShape):
    data: dict[str, _BlockchairEntry]


class BlockchairAdapter(BaseBalanceAdapter):
    """Adapter for the Blockchair Ethereum address dashboard."""

    def __init__(self, config: TreasurySettings, api_url: str = BLOCKCHAIR_ETH_API_URL):
        super().__init__(config)
        self.api_url = api_url.rstrip("/")

    @property
    def adapter_name(self) -> str:
        return "blockchair"

    @property
    def asset(self) -> AssetSymbol:
        return AssetSymbol.ETH

    async def _query_balance(self, address: str) -> Decimal:
        payload = await self._get_json(f"{self.api_url}/dashboards/address/{address}")
        match match_shape(payload, (BlockchairDashboard,)):
            case BlockchairDashboard(data=entries):
                by_address = {key.lower(): value for key, value in entries.items()}
                entry = by_address.get(address.lower())
                if entry is None:
                    raise AdapterUnavailable(f"Blockchair has no entry for {address}")
                return _wei_to_eth(entry.address.balance)
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized Blockchair response: {unknown.describe()}"
                )


class _EthplorerRaw(BaseModel):
    rawBalance: StrictStr


class _EthplorerFloat(BaseModel):
    balance: StrictFloat | StrictInt


class EthplorerRawBalance(ResponseShape):
    """Newer responses carry the exact wei amount as a string."""

    ETH: _EthplorerRaw


class EthplorerBalance(ResponseShape):
    ETH: _EthplorerFloat


class EthplorerAdapter(BaseBalanceAdapter):
    """Adapter for the Ethplorer address info API."""

    def __init__(
        self,
        config: TreasurySettings,
        api_url: str = ETHPLORER_API_URL,
        api_key: str = ETHPLORER_FREE_KEY,
    ):
        super().__init__(config)
        self.api_url = api_url.rstrip("/")
        self._api_key = api_key

    @property
    def adapter_name(self) -> str:
        return "ethplorer"

    @property
    def asset(self) -> AssetSymbol:
        return AssetSymbol.ETH

    async def _query_balance(self, address: str) -> Decimal:
        payload = await self._get_json(
            f"{self.api_url}/getAddressInfo/{address}",
            params={"apiKey": self._api_key},
        )
        match match_shape(payload, (EthplorerRawBalance, EthplorerBalance)):
            case EthplorerRawBalance(ETH=eth):
                return _wei_to_eth(eth.rawBalance)
            case EthplorerBalance(ETH=eth):
                return to_decimal(eth.balance)
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized Ethplorer response: {unknown.describe()}"
                )


def build_ethereum_adapters(config: TreasurySettings) -> list[BaseBalanceAdapter]:
    adapters: list[BaseBalanceAdapter] = [
        EthereumRpcAdapter(config, name, url)
        for name, url in config.eth_rpc_urls.items()
    ]
    alchemy_key = config.secret("alchemy_api_key")
    if alchemy_key:
        adapters.append(
            EthereumRpcAdapter(config, "alchemy", f"{ALCHEMY_ETH_URL}/{alchemy_key}")
        )
    if config.secret("etherscan_api_key"):
        adapters.append(EtherscanAdapter(config))
    else:
        logger.debug("Etherscan adapter disabled: no API key configured")
    adapters.append(BlockchairAdapter(config))
    adapters.append(EthplorerAdapter(config))
    return adapters

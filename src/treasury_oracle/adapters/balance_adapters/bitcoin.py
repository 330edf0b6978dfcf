from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, RootModel, StrictInt

from ...constants import (
    BLOCKCHAIN_INFO_API_URL,
    BLOCKSTREAM_API_URL,
    MEMPOOL_SPACE_API_URL,
    SATS_DECIMALS,
)
from ...domain import AssetSymbol
from ...settings import TreasurySettings
from ...units import from_base_units
from ..schemas import ResponseShape, UnrecognizedShape, match_shape
from .base import AdapterUnavailable, BaseBalanceAdapter


class _ChainStats(BaseModel):
    funded_txo_sum: StrictInt
    spent_txo_sum: StrictInt


class EsploraAddress(ResponseShape):
    chain_stats: _ChainStats


class _BlockchainInfoEntry(BaseModel):
    final_balance: StrictInt


class BlockchainInfoBalances(RootModel[dict[str, _BlockchainInfoEntry]]):
    """``/balance?active=`` answer, keyed by address."""


class BlockchainInfoRawAddress(ResponseShape):
    """``/rawaddr/`` answer."""

    final_balance: StrictInt


class EsploraAdapter(BaseBalanceAdapter):
    """Adapter for Esplora-compatible explorers (Blockstream, mempool.space).

    Balance is confirmed funded minus spent outputs, in satoshis.
    """

    def __init__(self, config: TreasurySettings, name: str, api_url: str):
        super().__init__(config)
        self._name = name
        self.api_url = api_url.rstrip("/")

    @property
    def adapter_name(self) -> str:
        return self._name

    @property
    def asset(self) -> AssetSymbol:
        return AssetSymbol.BTC

    async def _query_balance(self, address: str) -> Decimal:
        payload = await self._get_json(f"{self.api_url}/address/{address}")
        match match_shape(payload, (EsploraAddress,)):
            case EsploraAddress(chain_stats=stats):
                sats = stats.funded_txo_sum - stats.spent_txo_sum
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized Esplora response: {unknown.describe()}"
                )
        return from_base_units(sats, SATS_DECIMALS)


class BlockchainInfoAdapter(BaseBalanceAdapter):
    """Adapter for the blockchain.info balance endpoint."""

    def __init__(self, config: TreasurySettings, api_url: str = BLOCKCHAIN_INFO_API_URL):
        super().__init__(config)
        self.api_url = api_url.rstrip("/")

    @property
    def adapter_name(self) -> str:
        return "blockchain_info"

    @property
    def asset(self) -> AssetSymbol:
        return AssetSymbol.BTC

    async def _query_balance(self, address: str) -> Decimal:
        payload = await self._get_json(
            f"{self.api_url}/balance", params={"active": address, "cors": "true"}
        )
        match match_shape(payload, (BlockchainInfoRawAddress, BlockchainInfoBalances)):
            case BlockchainInfoRawAddress(final_balance=sats):
                pass
            case BlockchainInfoBalances(root=entries):
                entry = entries.get(address)
                if entry is None:
                    raise AdapterUnavailable(f"no data returned for {address}")
                sats = entry.final_balance
            case UnrecognizedShape() as unknown:
                raise AdapterUnavailable(
                    f"unrecognized blockchain.info response: {unknown.describe()}"
                )
        return from_base_units(sats, SATS_DECIMALS)


def build_bitcoin_adapters(config: TreasurySettings) -> list[BaseBalanceAdapter]:
    return [
        EsploraAdapter(config, "blockstream", BLOCKSTREAM_API_URL),
        EsploraAdapter(config, "mempool_space", MEMPOOL_SPACE_API_URL),
        BlockchainInfoAdapter(config),
    ]

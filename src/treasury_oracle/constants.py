"""Treasury addresses, provider endpoints and token lookup tables."""

from typing import TypedDict


class BitcoinAddresses(TypedDict):
    legacy: str
    taproot: str
    segwit: str


TREASURY_BTC_ADDRESSES: BitcoinAddresses = {
    "legacy": "1Kr3GkJnBZeeQZZoiYjHoxhZjDsSby9d4p",
    "taproot": "bc1pl6sq6srs5vuczd7ard896cc57gg4h3mdnvjsg4zp5zs2rawqmtgsp4hh08",
    "segwit": "bc1qu7suxfua5x46e59e7a56vd8wuj3a8qj06qr42j",
}
TREASURY_ETH_ADDRESS = "0x8262ab131e3f52315d700308152e166909ecfa47"
TREASURY_SOL_ADDRESS = "2n8etcRuK49GUMXWi2QRtQ8YwS6nTDEUjfX7LcvKFyiV"

# Base-unit scaling
SATS_DECIMALS = 8
WEI_DECIMALS = 18
LAMPORTS_DECIMALS = 9

# Bitcoin
BLOCKSTREAM_API_URL = "https://blockstream.info/api"
MEMPOOL_SPACE_API_URL = "https://mempool.space/api"
BLOCKCHAIN_INFO_API_URL = "https://blockchain.info"

# Ethereum
DEFAULT_ETH_RPC_URLS: dict[str, str] = {
    "cloudflare": "https://cloudflare-eth.com",
    "ankr": "https://rpc.ankr.com/eth",
}
ALCHEMY_ETH_URL = "https://eth-mainnet.g.alchemy.com/v2"
ETHERSCAN_API_URL = "https://api.etherscan.io/api"
BLOCKCHAIR_ETH_API_URL = "https://api.blockchair.com/ethereum"
ETHPLORER_API_URL = "https://api.ethplorer.io"
ETHPLORER_FREE_KEY = "freekey"

# Solana
DEFAULT_SOLANA_RPC_URLS: dict[str, str] = {
    "solana_mainnet": "https://api.mainnet-beta.solana.com",
    "ankr": "https://rpc.ankr.com/solana",
    "extrnode": "https://solana-mainnet.rpc.extrnode.com",
}
HELIUS_RPC_URL = "https://mainnet.helius-rpc.com"
SHYFT_API_URL = "https://api.shyft.to/sol/v1"
SOLSCAN_API_URL = "https://public-api.solscan.io"
SOLFLARE_API_URL = "https://api.solflare.com"
SOLANA_FM_API_URL = "https://api.solana.fm/v1"

WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"
SPL_TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

# Mints the RPC account scan can name without an indexer
KNOWN_SPL_MINTS: dict[str, tuple[str, str]] = {
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": ("USDC", "USD Coin"),
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB": ("USDT", "Tether USD"),
}

NET_WORTH_SYMBOL = "NET_WORTH"
NET_WORTH_MINT = "NET_WORTH_TOKEN"

# Prices
COINGECKO_API_URL = "https://api.coingecko.com/api/v3"
MAJOR_PRICE_IDS: dict[str, str] = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "sol": "solana",
}

# Common SPL token symbols -> CoinGecko ids
TOKEN_PRICE_IDS: dict[str, str] = {
    "USDC": "usd-coin",
    "USDT": "tether",
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "BONK": "bonk",
    "RAY": "raydium",
    "SRM": "serum",
    "MNGO": "mango-markets",
    "ORCA": "orca",
    "SAMO": "samoyedcoin",
    "ATLAS": "star-atlas",
    "POLIS": "star-atlas-dao",
    "COPE": "cope",
    "FIDA": "bonfida",
    "MAPS": "maps",
    "STEP": "step-finance",
    "SLND": "solend",
    "STSOL": "lido-staked-sol",
    "MSOL": "marinade-staked-sol",
    "WSOL": "wrapped-solana",
    "JTO": "jito-governance",
    "PYTH": "pyth-network",
    "RENDER": "render-token",
    "RNDR": "render-token",
    "BSOL": "blazestake-staked-sol",
    "JSOL": "jpool-solana",
    "USDR": "real-usd",
    "UXD": "uxd-protocol",
    "DUST": "dust-protocol",
    "MEAN": "meanfi",
    "WBTC": "wrapped-bitcoin",
    "WETH": "weth",
    "HADES": "hades-money",
    "JITOSOL": "jito-staked-sol",
    "RATIO": "ratio-finance",
    "SHDW": "genesysgo-shadow",
    "WUSDC": "wrapped-usdc",
    "WUSDT": "wrapped-usdt",
}

CACHE_KEY_PREFIX = "treasury_balance_"

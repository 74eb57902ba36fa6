"""
Application constants.

Centralized constants for the application.
"""

from chainsweep.models.enums import Network

# ========================================================================
# KEY DERIVATION
# ========================================================================

# BIP-44 derivation path templates ({index} = custodial account index)
DERIVATION_PATHS: dict[Network, str] = {
    Network.SOLANA: "m/44'/501'/{index}'/0'",
    Network.ETHEREUM: "m/44'/60'/0'/0/{index}",
    Network.TRON: "m/44'/195'/0'/0/{index}",
}

TRON_ADDRESS_PREFIX = 0x41  # Tron mainnet address byte

# ========================================================================
# NETWORK UNITS
# ========================================================================

# Minor units per main unit (lamport, wei, sun)
NETWORK_DECIMALS: dict[Network, int] = {
    Network.SOLANA: 9,
    Network.ETHEREUM: 18,
    Network.TRON: 6,
}

NETWORK_SYMBOLS: dict[Network, str] = {
    Network.SOLANA: "SOL",
    Network.ETHEREUM: "ETH",
    Network.TRON: "TRX",
}

# ========================================================================
# SWEEP FEES
# ========================================================================

SOLANA_FALLBACK_FEE_LAMPORTS = 5_000  # Used when getFeeForMessage returns null
ETHEREUM_TRANSFER_GAS_LIMIT = 21_000  # Plain value transfer
ETHEREUM_FALLBACK_GAS_PRICE_WEI = 20 * 10**9  # 20 gwei
TRON_FEE_RESERVE_SUN = 1_000_000  # 1 TRX kept back for bandwidth/energy

# ========================================================================
# TIMEOUTS & RETRY
# ========================================================================

BLOCKCHAIN_TIMEOUT = 30.0  # Provider-level timeout for balance reads and broadcasts
BLOCKCHAIN_RECEIPT_TIMEOUT = 120.0  # Waiting for network acknowledgment
BLOCKCHAIN_MAX_RETRIES = 3  # Retry attempts for idempotent reads
BLOCKCHAIN_RETRY_DELAY_BASE = 1.0  # Base delay in seconds for exponential backoff

WS_HEARTBEAT_SECONDS = 30.0  # aiohttp WebSocket ping interval

# ========================================================================
# PRICES
# ========================================================================

COINGECKO_PRICE_URL = (
    "https://api.coingecko.com/api/v3/simple/price"
    "?ids=ethereum,tron,solana&vs_currencies=usd"
)
CRYPTOCOMPARE_PRICE_URL = (
    "https://min-api.cryptocompare.com/data/pricemulti?fsyms=ETH,TRX,SOL&tsyms=USD"
)
PRICE_HTTP_TIMEOUT = 10.0

# CoinGecko ids match Network values; CryptoCompare uses ticker symbols
FALLBACK_USD_PRICES: dict[Network, str] = {
    Network.ETHEREUM: "3000",
    Network.TRON: "0.10",
    Network.SOLANA: "200",
}

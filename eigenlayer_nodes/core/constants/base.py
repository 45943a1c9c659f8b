ONE_GWEI = 1_000_000_000
MANTISSA = 10**18
MAX_UINT256 = 2**256 - 1

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_BYTES32 = "0x" + "00" * 32

# Gas estimates are inflated by this percentage (integer math, rounded down).
GAS_BUFFER_PERCENT = 20
SUGGESTED_PRIORITY_FEE_MULTIPLIER = 1.5
MAX_BASE_FEE_GROWTH_MULTIPLIER = 2

# Timeout constants (seconds)
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_TRANSACTION_TIMEOUT = 300
DEFAULT_RECEIPT_POLL_INTERVAL = 1.0

DEFAULT_RPC_MAX_RETRIES = 3
DEFAULT_RPC_RETRY_DELAY_S = 1.0
DEFAULT_RPC_BACKOFF_MULTIPLIER = 2.0

MULTICALL_CHUNK_SIZE = 50
MULTICALL_MAX_CONCURRENT_CHUNKS = 5

# First poll of an event cursor looks back at most this many blocks.
EVENT_BACKFILL_BLOCKS = 1000

PROVIDER_CACHE_SIZE = 8

# Native ETH staked per beacon-chain validator.
VALIDATOR_DEPOSIT_WEI = 32 * MANTISSA

DEFAULT_API_BASE_URL = "https://holesky-api.eigenlayer.xyz/v1"

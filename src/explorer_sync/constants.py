"""Configuration constants for explorer-sync."""

DEFAULT_API_ROOT = "https://app-pql6sv7epq-uc.a.run.app"

# Environment variable overrides
API_ROOT_ENV = "EXPLORER_SYNC_API_ROOT"
API_TOKEN_ENV = "EXPLORER_SYNC_API_TOKEN"
CONFIG_DIR_ENV = "EXPLORER_SYNC_CONFIG_DIR"
LOG_LEVEL_ENV = "EXPLORER_SYNC_LOG_LEVEL"

# Build tool config files, checked in this order
TRUFFLE_CONFIG_FILE = "truffle-config.js"
BROWNIE_CONFIG_FILE = "brownie-config.yaml"
FOUNDRY_CONFIG_FILE = "foundry.toml"
HARDHAT_CONFIG_FILES = ("hardhat.config.js", "hardhat.config.ts")

HARDHAT_PLUGIN_URL = "https://github.com/tryethernal/hardhat-ethernal"

# Artifact locations relative to the project root
TRUFFLE_BUILD_DIR = "build/contracts"
BROWNIE_DEPLOYMENTS_DIR = "build/deployments"
BROWNIE_CONTRACTS_DIR = "build/contracts"
FOUNDRY_BROADCAST_DIR = "broadcast"
FOUNDRY_CACHE_FILE = "cache/solidity-files-cache.json"
FOUNDRY_DEFAULT_OUT_DIR = "out"

# Files that live next to artifacts but never describe a contract
TRUFFLE_MIGRATIONS_ARTIFACT = "Migrations.json"
BROWNIE_MAP_FILE = "map.json"
FOUNDRY_BROADCAST_FILE = "run-latest.json"
FOUNDRY_DRY_RUN_DIR = "dry-run"

FOUNDRY_CREATE_TYPES = ("CREATE", "CREATE2")

# Chain feed timing (seconds)
POLL_INTERVAL_SECONDS = 1.0
RECONNECT_DELAY_SECONDS = 5.0
WATCH_INTERVAL_SECONDS = 0.5
RPC_TIMEOUT_SECONDS = 30
API_TIMEOUT_SECONDS = 60

# Node URL schemes
HTTP_SCHEMES = ("http", "https")
WEBSOCKET_SCHEMES = ("ws", "wss")

MAX_UPLOAD_WORKERS = 8

# JSON-RPC "method not found"
RPC_METHOD_NOT_FOUND = -32601

# Workspace tracing mode under which this agent collects traces itself
CLIENT_TRACING_MODE = "other"

# Numeric fields sent to the backend as decimal strings
DECIMAL_STRING_FIELDS = frozenset(
    {
        "value",
        "gas",
        "gasLimit",
        "gasPrice",
        "gasUsed",
        "cumulativeGasUsed",
        "effectiveGasPrice",
        "maxFeePerGas",
        "maxPriorityFeePerGas",
        "baseFeePerGas",
        "difficulty",
        "totalDifficulty",
        "blobGasUsed",
        "excessBlobGas",
    }
)

# Numeric fields small enough to send as plain integers
INTEGER_FIELDS = frozenset(
    {
        "number",
        "blockNumber",
        "timestamp",
        "transactionIndex",
        "logIndex",
        "status",
        "type",
        "chainId",
        "size",
        "v",
    }
)

# A block nonce is an 8-byte value and stays hex; a transaction nonce is a counter
TRANSACTION_INTEGER_FIELDS = INTEGER_FIELDS | {"nonce"}

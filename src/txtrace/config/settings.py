import os
from dotenv import load_dotenv
load_dotenv()
# ---- Trace RPC ----
TRACE_RPC_URL = os.environ.get("TRACE_RPC_URL", "http://localhost:8545")
TRACE_RPC_METHOD = "trace_transaction"
TRACE_RPC_TIMEOUT_SEC = int(os.environ.get("TRACE_RPC_TIMEOUT_SEC", "30"))
TRACE_RPC_MAX_RETRIES = int(os.environ.get("TRACE_RPC_MAX_RETRIES", "3"))
TRACE_RPC_REQUESTS_PER_SEC = float(os.environ.get("TRACE_RPC_REQUESTS_PER_SEC", "5.0"))

# ---- Analysis cache ----
ANALYSIS_CACHE_TTL_SEC = float(os.environ.get("ANALYSIS_CACHE_TTL_SEC", "300"))

# ----- Tracked token -----

# Contracts with a known signature table. Lowercase.
TRACKED_CONTRACTS = {
    "0x6c3ea9036406852006290770bedfcaba0e23a0e8": "PYUSD Token",
    "0x8ecae0b0402e29694b3af35d5943d4631ee568dc": "PYUSD Implementation",
    "0x31d9bdea6f104606c954f8fe6ba614f1bd347ec3": "Supply Control",
    "0x123456789abcdef123456789abcdef123456789a": "Supply Control Impl",
}

TRACKED_TOKEN_SYMBOL = "PYUSD"
TRACKED_TOKEN_DECIMALS = 6

UNTRACKED_CONTRACT_NAME = "Other Contract"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

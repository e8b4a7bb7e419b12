"""
Static rule tables consumed by the analysis stages.

Every table here is plain data: adding a selector, a risk level or a
benchmark never requires touching analyzer control flow.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict

from txtrace.config import settings
from txtrace.core.dto import FunctionSignature, GasBenchmark
from txtrace.core.enums import Severity


# ---- Canonical function names ----

FN_TRANSFER = "transfer(address,uint256)"
FN_TRANSFER_FROM = "transferFrom(address,address,uint256)"
FN_APPROVE = "approve(address,uint256)"
FN_MINT = "mint(address,uint256)"
FN_BURN = "burn(uint256)"
FN_TRANSFER_OWNERSHIP = "transferOwnership(address)"
FN_PAUSE = "pause()"
FN_UNPAUSE = "unpause()"

NO_FUNCTION = "N/A"
CONSTRUCTOR = "Constructor"

CALL_KINDS = ("CALL", "DELEGATECALL", "STATICCALL")
CREATE_KINDS = ("CREATE", "CREATE2")


# ---- Tracked-contract selector table ----

SELECTOR_SIGNATURES: Dict[str, FunctionSignature] = {
    "0xa9059cbb": FunctionSignature(FN_TRANSFER, "token_movement", ("address", "uint256"), ("to", "amount")),
    "0x23b872dd": FunctionSignature(
        FN_TRANSFER_FROM, "token_movement", ("address", "address", "uint256"), ("from", "to", "amount")
    ),
    "0x095ea7b3": FunctionSignature(FN_APPROVE, "allowance", ("address", "uint256"), ("spender", "amount")),
    "0xdd62ed3e": FunctionSignature(
        "allowance(address,address)", "view", ("address", "address"), ("owner", "spender")
    ),
    "0x40c10f19": FunctionSignature(FN_MINT, "supply_change", ("address", "uint256"), ("to", "amount")),
    "0x42966c68": FunctionSignature(FN_BURN, "supply_change", ("uint256",), ("amount",)),
    "0x70a08231": FunctionSignature("balanceOf(address)", "view", ("address",), ("account",)),
    "0x18160ddd": FunctionSignature("totalSupply()", "view", (), ()),
    "0xf2fde38b": FunctionSignature(FN_TRANSFER_OWNERSHIP, "admin", ("address",), ("new_owner",)),
    "0x8da5cb5b": FunctionSignature("owner()", "view", (), ()),
    "0x8456cb59": FunctionSignature(FN_PAUSE, "control", (), ()),
    "0x3f4ba83a": FunctionSignature(FN_UNPAUSE, "control", (), ()),
}

# address -> selector -> signature
DECODE_TABLE: Dict[str, Dict[str, FunctionSignature]] = {
    address: SELECTOR_SIGNATURES for address in settings.TRACKED_CONTRACTS
}

# Transfer-shaped selectors on tracked contracts
SELECTOR_TRANSFER = "0xa9059cbb"
SELECTOR_TRANSFER_FROM = "0x23b872dd"
SELECTOR_MINT = "0x40c10f19"
SELECTOR_BURN = "0x42966c68"


# ---- Well-known selectors on untracked contracts ----
# Only used to name the call; the category of an untracked call stays "other".

EXTERNAL_SELECTOR_HINTS: Dict[str, str] = {
    "0x38ed1739": "swapExactTokensForTokens",
    "0x8803dbee": "swapTokensForExactTokens",
    "0x7ff36ab5": "swapExactETHForTokens",
    "0x18cbafe5": "swapExactTokensForETH",
    "0x022c0d9f": "swap",                # uniswap v2 pair
    "0x128acb08": "swap",                # uniswap v3 pool
    "0x3df02124": "exchange",            # curve pool
    "0x5cffe9de": "flashLoan",           # erc-3156
    "0xab9c4b5d": "flashLoan",           # aave v2
    "0x42b0b77c": "flashLoanSimple",     # aave v3
    "0x00a718a9": "liquidationCall",
    "0xf5e3c462": "liquidateBorrow",
    "0xc5ebeaec": "borrow",
    "0x0e752702": "repayBorrow",
}


# ---- Security ----

SECURITY_RISK_LEVELS: Dict[str, Severity] = {
    FN_TRANSFER_OWNERSHIP: Severity.HIGH,
    FN_PAUSE: Severity.MEDIUM,
    FN_UNPAUSE: Severity.MEDIUM,
    "blacklist": Severity.MEDIUM,
    "upgrade": Severity.HIGH,
    "initialize": Severity.HIGH,
    "selfdestruct": Severity.CRITICAL,
    FN_MINT: Severity.HIGH,
    FN_BURN: Severity.MEDIUM,
    "renounceOwnership()": Severity.HIGH,
}

# Base score per table level when re-scoring a single call
RISK_LEVEL_SCORES: Dict[Severity, int] = {
    Severity.CRITICAL: 100,
    Severity.HIGH: 80,
    Severity.MEDIUM: 50,
    Severity.LOW: 20,
}

INFINITE_APPROVAL_THRESHOLD = 2 ** 256 - 2 ** 128
LARGE_AMOUNT_UNITS = 1_000_000         # decimal-adjusted token units
MODERATE_APPROVAL_UNITS = 10_000


def token_units_to_raw(units: int) -> int:
    return units * 10 ** settings.TRACKED_TOKEN_DECIMALS


# ---- Gas ----

GAS_BENCHMARKS: Dict[str, GasBenchmark] = {
    FN_TRANSFER: GasBenchmark(median=65000, p25=52000, p75=78000),
    FN_APPROVE: GasBenchmark(median=46000, p25=42000, p75=58000),
    FN_TRANSFER_FROM: GasBenchmark(median=75000, p25=65000, p75=90000),
    FN_MINT: GasBenchmark(median=110000, p25=95000, p75=130000),
    FN_BURN: GasBenchmark(median=90000, p25=80000, p75=105000),
}

# Total-gas category boundaries. The pattern classifier, the MEV detector and
# the security anti-pattern scan read the same constants.
GAS_ELEVATED = 100_000
GAS_HEAVY = 500_000
GAS_EXTREME = 1_000_000

HIGH_GAS_OPERATION = 200_000
NEAR_ZERO_GAS = 21_000


# ---- MEV ----

DEX_MARKERS = ("swap", "exchange", "trade", "uniswap", "sushiswap", "curve", "balancer")
FLASH_LOAN_MARKERS = ("flashloan", "borrow", "repay")
LIQUIDATION_MARKERS = ("liquidat", "seize", "repay")
HIGH_VALUE_SWAP_NATIVE = Decimal("10")

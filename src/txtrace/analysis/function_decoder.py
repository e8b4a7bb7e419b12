from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from txtrace.config import settings
from txtrace.core.dto import DecodedFunction, FunctionSignature
from txtrace.core.rules import DECODE_TABLE, EXTERNAL_SELECTOR_HINTS

logger = logging.getLogger(__name__)

WORD_HEX_LEN = 64
SELECTOR_HEX_LEN = 10   # "0x" + 4 bytes

TOKEN_UNIT = Decimal(10) ** settings.TRACKED_TOKEN_DECIMALS


def selector_of(input_data: str) -> Optional[str]:
    if not isinstance(input_data, str):
        return None
    if not input_data.startswith("0x") or len(input_data) < SELECTOR_HEX_LEN:
        return None
    return input_data[:SELECTOR_HEX_LEN].lower()


def shorten_address(address: str) -> str:
    if not address or len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def to_token_units(amount_raw: int) -> Decimal:
    return Decimal(amount_raw) / TOKEN_UNIT


def format_token_amount(amount_raw: int) -> str:
    units = to_token_units(amount_raw)
    symbol = settings.TRACKED_TOKEN_SYMBOL
    if units >= 1_000_000:
        return f"{units / 1_000_000:.2f}M {symbol}"
    if units >= 1_000:
        return f"{units / 1_000:.2f}K {symbol}"
    return f"{units:.6f} {symbol}"


def extract_params(input_data: str, param_types: Sequence[str]) -> List[Any]:
    """
    Decode the static head words of ABI-encoded call data.

    Stops at the first missing or malformed word, so the result may be
    shorter than ``param_types``.
    """
    if not input_data or len(input_data) < SELECTOR_HEX_LEN:
        return []

    body = input_data[SELECTOR_HEX_LEN:]
    out: List[Any] = []
    pos = 0
    for ptype in param_types:
        word = body[pos:pos + WORD_HEX_LEN]
        if len(word) < WORD_HEX_LEN:
            break
        try:
            if ptype == "address":
                int(word, 16)
                out.append("0x" + word[24:].lower())
            elif ptype.startswith("uint"):
                out.append(int(word, 16))
            elif ptype == "bool":
                out.append(int(word, 16) != 0)
            elif ptype == "bytes32":
                int(word, 16)
                out.append("0x" + word.lower())
            else:
                break
        except ValueError:
            logger.debug("Malformed ABI word for %s at offset %d", ptype, pos)
            break
        pos += WORD_HEX_LEN
    return out


def _named_params(signature: FunctionSignature, decoded: List[Any]) -> Dict[str, Any]:
    # a partially decoded call keeps no parameters at all
    if len(decoded) != len(signature.param_types):
        return {}
    params: Dict[str, Any] = dict(zip(signature.param_names, decoded))
    if "amount" in params:
        params["amount_formatted"] = format_token_amount(params["amount"])
    return params


def decode_tracked_function(to_address: str, input_data: str) -> DecodedFunction:
    table = DECODE_TABLE.get((to_address or "").lower(), {})
    selector = selector_of(input_data)
    signature = table.get(selector) if selector else None
    if signature is None:
        return DecodedFunction(name="Unknown", category="other")

    decoded = extract_params(input_data, signature.param_types)
    return DecodedFunction(
        name=signature.name,
        category=signature.category,
        params=_named_params(signature, decoded),
    )


def describe_untracked_call(input_data: str) -> str:
    if not input_data or input_data == "0x":
        return "Contract Interaction / ETH Transfer"

    selector = selector_of(input_data)
    if selector is None:
        return "Unknown Interaction"

    hint = EXTERNAL_SELECTOR_HINTS.get(selector)
    if hint:
        return f"{hint} ({selector})"
    return f"Function ({selector})"

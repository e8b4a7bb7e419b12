from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, List, Mapping, Sequence, Tuple

from txtrace.analysis.function_decoder import (
    decode_tracked_function,
    describe_untracked_call,
    selector_of,
)
from txtrace.config import settings
from txtrace.core.models import NormalizedTrace, ProcessedCallNode
from txtrace.core.rules import CALL_KINDS, CONSTRUCTOR, CREATE_KINDS, NO_FUNCTION

logger = logging.getLogger(__name__)

WEI_PER_NATIVE = Decimal("1000000000000000000")
PREVIEW_LEN = 10


def hex_to_int(value: Any) -> int:
    """
    Lenient quantity decoding: missing, "0x", non-string and malformed
    values all decode to 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if not isinstance(value, str):
        return 0
    text = value.strip()
    if text in ("", "0x", "0X"):
        return 0
    try:
        parsed = int(text, 16)
    except ValueError:
        return 0
    return max(parsed, 0)


def _preview(data: str) -> str:
    return data[:PREVIEW_LEN] + ("..." if len(data) > PREVIEW_LEN else "")


def _trace_address(raw: Any) -> Tuple[int, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    if not all(isinstance(i, int) and not isinstance(i, bool) for i in raw):
        return ()
    return tuple(raw)


def _call_kind(record: Mapping[str, Any], action: Mapping[str, Any]) -> str:
    kind = record.get("type")
    if not isinstance(kind, str) or not kind:
        return "UNKNOWN"
    kind = kind.upper()
    # parity-style traces report every call as "call" and refine via callType
    call_type = action.get("callType")
    if kind == "CALL" and isinstance(call_type, str) and call_type:
        kind = call_type.upper()
    return kind


def _str_field(mapping: Mapping[str, Any], key: str) -> str:
    value = mapping.get(key)
    return value if isinstance(value, str) else ""


def process_record(index: int, record: Mapping[str, Any]) -> ProcessedCallNode:
    action = record.get("action")
    action = action if isinstance(action, Mapping) else {}
    result = record.get("result")
    result = result if isinstance(result, Mapping) else {}

    kind = _call_kind(record, action)
    path = _trace_address(record.get("traceAddress"))

    from_addr = _str_field(action, "from")
    to_addr = _str_field(action, "to") or _str_field(result, "address")

    value_wei = hex_to_int(action.get("value"))
    gas_used = hex_to_int(result.get("gasUsed", record.get("gasUsed")))

    input_data = _str_field(action, "input") or _str_field(action, "init") or "0x"
    output_data = _str_field(result, "output") or "0x"

    contract_name = settings.TRACKED_CONTRACTS.get(to_addr.lower())
    is_tracked = contract_name is not None

    name, category, params = NO_FUNCTION, "other", {}
    if kind in CREATE_KINDS:
        name, category = CONSTRUCTOR, "constructor"
    elif kind in CALL_KINDS and input_data != "0x":
        if is_tracked:
            decoded = decode_tracked_function(to_addr, input_data)
            name, category, params = decoded.name, decoded.category, decoded.params
        else:
            name = describe_untracked_call(input_data)

    error = record.get("error")

    return ProcessedCallNode(
        index=index,
        trace_address=path,
        depth=len(path),
        call_type=kind,
        from_address=from_addr,
        to_address=to_addr,
        value_wei=value_wei,
        value_native=Decimal(value_wei) / WEI_PER_NATIVE,
        gas_used=gas_used,
        is_tracked=is_tracked,
        contract_name=contract_name or settings.UNTRACKED_CONTRACT_NAME,
        function_name=name,
        category=category,
        parameters=params,
        error=str(error) if error else None,
        input_data=input_data,
        input_preview=_preview(input_data),
        output_preview=_preview(output_data),
        selector=selector_of(input_data),
    )


def normalize_trace(records: Sequence[Any]) -> NormalizedTrace:
    """
    Turn raw trace records into processed call nodes, in input order.

    Records that are not JSON objects are skipped and reported in
    ``NormalizedTrace.skipped``; the input sequence is never modified.
    """
    nodes: List[ProcessedCallNode] = []
    skipped: List[int] = []

    for i, record in enumerate(records):
        if not isinstance(record, Mapping):
            logger.warning("Skipping invalid trace record at index %d: %r", i, record)
            skipped.append(i)
            continue
        nodes.append(process_record(i, record))

    if skipped:
        logger.warning("Skipped %d of %d trace records", len(skipped), len(records))

    return NormalizedTrace(nodes=tuple(nodes), skipped=tuple(skipped))

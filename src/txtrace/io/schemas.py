from __future__ import annotations

from dataclasses import fields, is_dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict

from txtrace.core.models import ComparisonResult, TraceAnalysisResult


def _dec_to_str(x: Decimal) -> str:
    # keep as string for JSON precision safety
    return format(x, "f")


def to_jsonable(value: Any) -> Any:
    """
    Convert analysis models to JSON-safe structures.

    Enums become their values, Decimals become plain strings and integers
    wider than 53 bits become strings so JavaScript consumers keep them exact.
    """
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return _dec_to_str(value)
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return value if abs(value) < 2 ** 53 else str(value)
    if isinstance(value, float):
        return value
    if isinstance(value, dict):
        return {str(to_jsonable(k)): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return value


def analysis_to_dict(result: TraceAnalysisResult) -> Dict[str, Any]:
    out = to_jsonable(result)
    out["is_empty"] = result.is_empty
    out["pattern_label"] = result.pattern_label.value
    return out


def comparison_to_dict(result: ComparisonResult) -> Dict[str, Any]:
    return to_jsonable(result)

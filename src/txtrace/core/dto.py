from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class FunctionSignature:
    name: str                       # canonical signature, e.g. "transfer(address,uint256)"
    category: str
    param_types: Tuple[str, ...]
    param_names: Tuple[str, ...]    # role of each decoded word, same length as param_types


@dataclass(frozen=True)
class DecodedFunction:
    name: str
    category: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GasBenchmark:
    median: int
    p25: int
    p75: int

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List


class TraceSourcePort(ABC):
    """
    Abstract Class for fetching the raw call trace of one transaction.
    """

    @abstractmethod
    def fetch_trace(self, tx_hash: str) -> List[Any]:
        """
        Return the ordered list of raw call records for ``tx_hash``.

        Raises ``TraceNotFoundError`` when the node has no trace and
        ``DataSourceError`` on transport failure or a non-array result.
        """
        raise NotImplementedError

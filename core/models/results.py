"""
Metric result wrapper returned by the scorecards.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class MetricResult(Generic[T]):
    """
    ``{data, error}`` pair handed to the dashboard.

    ``data`` is always populated; on fetch failure it holds the zeroed or
    empty default metric and ``error`` carries the exception.
    """
    data: T
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        data = self.data
        if hasattr(data, "to_dict"):
            data = data.to_dict()
        elif isinstance(data, list):
            data = [item.to_dict() if hasattr(item, "to_dict") else item for item in data]
        return {
            "data": data,
            "error": str(self.error) if self.error is not None else None,
        }


class RecordFetchError(Exception):
    """Raised when the record store cannot serve a query."""

    def __init__(self, source: str, cause: Optional[BaseException] = None):
        self.source = source
        self.cause = cause
        message = f"Failed to fetch {source}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)

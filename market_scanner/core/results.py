"""
Tagged results returned by provider reads, so callers branch on the failure
kind instead of catching provider exceptions.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    TRANSIENT = "transient"   # timeout, rate limit, 5xx: retried and exhausted
    REJECTED = "rejected"     # permanent provider error (bad symbol, auth)


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    value: Optional[T] = None
    kind: Optional[FailureKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: FailureKind, message: str) -> "FetchResult[T]":
        return cls(kind=kind, message=message)


class InvalidTransitionError(Exception):
    """A position status change outside OPEN -> CLOSED / OPEN -> CANCELLED."""


class ReconciliationError(Exception):
    """Exchange and trade store disagree: an order executed but its record could not be
    written, or a close was refused and the exchange position is unknown. Needs manual resolution."""

    def __init__(self, symbol: str, order_id: Optional[str], detail: str):
        super().__init__(f"{symbol}: order {order_id} needs reconciliation ({detail})")
        self.symbol = symbol
        self.order_id = order_id

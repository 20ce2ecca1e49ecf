"""
Outcome events that drive the dashboard state store.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Union

from fee_claimer.core.exceptions import RpcFailureKind
from fee_claimer.models.claims import BatchResult, ClaimOutcome
from fee_claimer.models.fees import FeeSnapshot


@dataclass(frozen=True)
class FetchStarted:
    pass


@dataclass(frozen=True)
class FetchCompleted:
    """A full snapshot set answered by exactly one endpoint."""
    endpoint: str
    snapshots: List[FeeSnapshot]
    fetched_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class FetchFailed:
    kind: RpcFailureKind
    message: str


@dataclass(frozen=True)
class ClaimStarted:
    pool: str


@dataclass(frozen=True)
class ClaimFinished:
    outcome: ClaimOutcome


@dataclass(frozen=True)
class BatchStarted:
    pool_count: int


@dataclass(frozen=True)
class BatchFinished:
    result: BatchResult


OutcomeEvent = Union[
    FetchStarted, FetchCompleted, FetchFailed,
    ClaimStarted, ClaimFinished, BatchStarted, BatchFinished,
]

EventSink = Optional[Callable[[OutcomeEvent], None]]

"""
Dashboard state store.

Owned by the display layer and mutated only by applying outcome events.
"""

from datetime import datetime
from typing import List, Optional

import structlog

from fee_claimer.core.exceptions import EndpointUnavailable, classify_rpc_failure, describe_fetch_failure
from fee_claimer.models.claims import BatchResult, ClaimOutcome
from fee_claimer.models.events import (
    BatchFinished,
    BatchStarted,
    ClaimFinished,
    ClaimStarted,
    FetchCompleted,
    FetchFailed,
    FetchStarted,
    OutcomeEvent,
)
from fee_claimer.models.fees import FeeSnapshot


logger = structlog.get_logger(__name__)


class DashboardState:
    """What the display renders: fees, loading/error flags and claim progress."""

    def __init__(self):
        self.fees: List[FeeSnapshot] = []
        self.loading: bool = False
        self.error: Optional[str] = None
        self.endpoint: Optional[str] = None
        self.fetched_at: Optional[datetime] = None
        self.claiming_pool: Optional[str] = None
        self.claiming_all: bool = False
        self.last_outcome: Optional[ClaimOutcome] = None
        self.last_batch: Optional[BatchResult] = None

    @property
    def busy(self) -> bool:
        return self.claiming_all or self.claiming_pool is not None

    def apply(self, event: OutcomeEvent) -> None:
        if isinstance(event, FetchStarted):
            self.loading = True
            self.error = None
        elif isinstance(event, FetchCompleted):
            # Whole set replaced, never patched
            self.fees = list(event.snapshots)
            self.endpoint = event.endpoint
            self.fetched_at = event.fetched_at
            self.loading = False
            self.error = None
        elif isinstance(event, FetchFailed):
            self.loading = False
            self.error = event.message
        elif isinstance(event, ClaimStarted):
            self.claiming_pool = event.pool
        elif isinstance(event, ClaimFinished):
            if self.claiming_pool == event.outcome.pool:
                self.claiming_pool = None
            self.last_outcome = event.outcome
        elif isinstance(event, BatchStarted):
            self.claiming_all = True
        elif isinstance(event, BatchFinished):
            self.claiming_all = False
            self.claiming_pool = None
            self.last_batch = event.result
        else:
            logger.warning("Unknown dashboard event", event_type=type(event).__name__)

    def fetch_failed(self, error: Exception) -> FetchFailed:
        """Build and apply the failure event for a fetch error."""
        kind = error.kind if isinstance(error, EndpointUnavailable) else classify_rpc_failure(error)
        event = FetchFailed(kind=kind, message=describe_fetch_failure(error))
        self.apply(event)
        return event

    def find(self, pool: str) -> Optional[FeeSnapshot]:
        for fee in self.fees:
            if fee.pool == pool:
                return fee
        return None

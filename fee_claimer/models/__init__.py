"""
Data types shared by the fee claimer services.
"""

from .fees import FeeSnapshot, format_lamports, short_address
from .claims import BatchResult, ClaimAttempt, ClaimErrorKind, ClaimOutcome, ClaimStatus
from .notifications import Notification, Severity
from .events import (
    BatchFinished,
    BatchStarted,
    ClaimFinished,
    ClaimStarted,
    FetchCompleted,
    FetchFailed,
    FetchStarted,
)

__all__ = [
    "FeeSnapshot",
    "format_lamports",
    "short_address",
    "BatchResult",
    "ClaimAttempt",
    "ClaimErrorKind",
    "ClaimOutcome",
    "ClaimStatus",
    "Notification",
    "Severity",
    "BatchFinished",
    "BatchStarted",
    "ClaimFinished",
    "ClaimStarted",
    "FetchCompleted",
    "FetchFailed",
    "FetchStarted",
]

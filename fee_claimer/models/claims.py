"""
Claim attempt, outcome and batch result types.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ClaimStatus(str, Enum):
    """Terminal status of one claim invocation."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED_BELOW_THRESHOLD = "skipped-below-threshold"
    SKIPPED_NO_WALLET = "skipped-no-wallet"


class ClaimErrorKind(str, Enum):
    """Classified reason for a failed claim."""
    REJECTED_BY_USER = "rejected-by-user"
    TIMEOUT = "timeout"
    ON_CHAIN_FAILURE = "on-chain-failure"
    TRANSIENT_RPC_ERROR = "transient-rpc-error"
    UNKNOWN = "unknown"


@dataclass
class ClaimAttempt:
    """Working record of one claim invocation."""
    pool: str
    retry_count: int = 0
    last_error: Optional[BaseException] = None
    status: Optional[ClaimStatus] = None
    # Set once the wallet has sent the transaction
    signature: Optional[str] = None


@dataclass(frozen=True)
class ClaimOutcome:
    """Result of one claim invocation."""
    pool: str
    status: ClaimStatus
    message: str
    signature: Optional[str] = None
    error_kind: Optional[ClaimErrorKind] = None
    attempts: int = 0
    # True when confirmation timed out: the transaction may still land
    ambiguous: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == ClaimStatus.SUCCESS

    @property
    def skipped(self) -> bool:
        return self.status in (ClaimStatus.SKIPPED_BELOW_THRESHOLD, ClaimStatus.SKIPPED_NO_WALLET)


@dataclass
class BatchResult:
    """Counts over one batch run."""
    success: int = 0
    failed: int = 0
    skipped: int = 0
    outcomes: List[ClaimOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success + self.failed + self.skipped

    def record(self, outcome: ClaimOutcome) -> None:
        if outcome.succeeded:
            self.success += 1
        elif outcome.skipped:
            self.skipped += 1
        else:
            self.failed += 1
        self.outcomes.append(outcome)

"""
Pydantic schemas for API responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from fee_claimer.models.claims import BatchResult, ClaimOutcome
from fee_claimer.models.fees import FeeSnapshot, format_lamports
from fee_claimer.models.notifications import Notification
from fee_claimer.services.threshold import ThresholdGate


class APIResponse(BaseModel):
    """Base API response model."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class SuccessResponse(APIResponse):
    """Success response model."""
    data: Optional[Any] = None


class ErrorResponse(APIResponse):
    """Error response model."""
    success: bool = False
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class HealthCheckResponse(BaseModel):
    status: str = "healthy"
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    version: str = "0.1.0"


class PoolFeeSchema(BaseModel):
    """One pool's fees as shown on the dashboard."""
    pool_address: str
    partner_base_fee: int
    partner_quote_fee: int
    creator_base_fee: int
    creator_quote_fee: int
    total_trading_base_fee: int
    total_trading_quote_fee: int
    partner_base_fee_sol: str
    partner_quote_fee_sol: str
    partner_fee_usd: str
    can_claim: bool

    @classmethod
    def from_snapshot(cls, fee: FeeSnapshot, gate: ThresholdGate, lamports_per_sol: int) -> "PoolFeeSchema":
        return cls(
            pool_address=fee.pool,
            partner_base_fee=fee.partner_base_fee,
            partner_quote_fee=fee.partner_quote_fee,
            creator_base_fee=fee.creator_base_fee,
            creator_quote_fee=fee.creator_quote_fee,
            total_trading_base_fee=fee.total_trading_base_fee,
            total_trading_quote_fee=fee.total_trading_quote_fee,
            partner_base_fee_sol=format_lamports(fee.partner_base_fee, lamports_per_sol),
            partner_quote_fee_sol=format_lamports(fee.partner_quote_fee, lamports_per_sol),
            partner_fee_usd=f"{gate.value_of(fee):.2f}",
            can_claim=gate.is_claimable(fee),
        )


class NotificationSchema(BaseModel):
    id: int
    message: str
    severity: str

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationSchema":
        return cls(id=notification.id, message=notification.message, severity=notification.severity.value)


class ClaimOutcomeSchema(BaseModel):
    pool_address: str
    status: str
    message: str
    signature: Optional[str] = None
    error_kind: Optional[str] = None
    attempts: int = 0
    ambiguous: bool = False

    @classmethod
    def from_outcome(cls, outcome: ClaimOutcome) -> "ClaimOutcomeSchema":
        return cls(
            pool_address=outcome.pool,
            status=outcome.status.value,
            message=outcome.message,
            signature=outcome.signature,
            error_kind=outcome.error_kind.value if outcome.error_kind else None,
            attempts=outcome.attempts,
            ambiguous=outcome.ambiguous,
        )


class BatchResultSchema(BaseModel):
    success: int
    failed: int
    skipped: int
    outcomes: List[ClaimOutcomeSchema] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: BatchResult) -> "BatchResultSchema":
        return cls(
            success=result.success,
            failed=result.failed,
            skipped=result.skipped,
            outcomes=[ClaimOutcomeSchema.from_outcome(o) for o in result.outcomes],
        )


class StatusSchema(BaseModel):
    loading: bool
    error: Optional[str] = None
    endpoint: Optional[str] = None
    fetched_at: Optional[datetime] = None
    pool_count: int = 0
    claiming_pool: Optional[str] = None
    claiming_all: bool = False
    wallet: Optional[str] = None
    min_claim_usd: str


def create_success_response(data: Any = None, message: Optional[str] = None) -> SuccessResponse:
    return SuccessResponse(data=data, message=message)

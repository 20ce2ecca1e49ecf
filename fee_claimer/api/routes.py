"""
Fee and claim routes.
"""

from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from fee_claimer.api.schemas import (
    BatchResultSchema,
    ClaimOutcomeSchema,
    NotificationSchema,
    PoolFeeSchema,
    StatusSchema,
    SuccessResponse,
    create_success_response,
)
from fee_claimer.core.exceptions import ClaimInProgressError, NotFoundError
from fee_claimer.services.fee_claim_service import FeeClaimService, get_fee_claim_service
from fee_claimer.services.wallet import display_address


logger = structlog.get_logger(__name__)

router = APIRouter()


def _fee_list(service: FeeClaimService):
    return [
        PoolFeeSchema.from_snapshot(fee, service.gate, service.config.lamports_per_sol).model_dump()
        for fee in service.state.fees
    ]


@router.get(
    "/fees",
    response_model=SuccessResponse,
    summary="List Pool Fees",
    description="Fees of the last successful fetch"
)
async def list_fees(service: FeeClaimService = Depends(get_fee_claim_service)):
    fees = _fee_list(service)
    message = None if fees else "No pool fees found"
    return create_success_response(data=fees, message=message)


@router.post(
    "/fees/refresh",
    response_model=SuccessResponse,
    summary="Refresh Pool Fees",
    description="Fetch fees again, failing over across the configured RPC endpoints"
)
async def refresh_fees(service: FeeClaimService = Depends(get_fee_claim_service)):
    completed = await service.fetch()
    if completed is None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "FETCH_FAILED", "message": service.state.error}
        )
    return create_success_response(
        data=_fee_list(service),
        message=f"Fetched {len(completed.snapshots)} pool fees from {completed.endpoint}"
    )


@router.post(
    "/claims/{pool}",
    response_model=SuccessResponse,
    summary="Claim Pool Fees",
    description="Claim the partner fees of a single pool"
)
async def claim_pool(pool: str, service: FeeClaimService = Depends(get_fee_claim_service)):
    try:
        outcome = await service.claim_one(pool)
    except ClaimInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"error": e.code, "message": e.message})
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"error": e.code, "message": e.message})

    return SuccessResponse(
        success=outcome.succeeded,
        data=ClaimOutcomeSchema.from_outcome(outcome).model_dump(),
        message=outcome.message
    )


@router.post(
    "/claims",
    response_model=SuccessResponse,
    summary="Claim All Pool Fees",
    description="Claim every pool above the minimum, one at a time"
)
async def claim_all(service: FeeClaimService = Depends(get_fee_claim_service)):
    try:
        result = await service.claim_all()
    except ClaimInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"error": e.code, "message": e.message})

    return SuccessResponse(
        success=result.success > 0,
        data=BatchResultSchema.from_result(result).model_dump(),
    )


@router.get("/notifications", response_model=SuccessResponse, summary="Live Notifications")
async def list_notifications(service: FeeClaimService = Depends(get_fee_claim_service)):
    return create_success_response(
        data=[NotificationSchema.from_notification(n).model_dump() for n in service.live_notifications()]
    )


@router.get("/status", response_model=SuccessResponse, summary="Dashboard Status")
async def get_status(service: FeeClaimService = Depends(get_fee_claim_service)):
    state = service.state
    return create_success_response(
        data=StatusSchema(
            loading=state.loading,
            error=state.error,
            endpoint=state.endpoint,
            fetched_at=state.fetched_at,
            pool_count=len(state.fees),
            claiming_pool=state.claiming_pool,
            claiming_all=state.claiming_all,
            wallet=display_address(service.wallet),
            min_claim_usd=service.gate.minimum_label,
        ).model_dump(mode="json")
    )

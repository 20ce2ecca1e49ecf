"""
Sequential batch claiming across many pools.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional, Sequence

import structlog

from fee_claimer.core.config import settings
from fee_claimer.core.exceptions import WalletNotConnected
from fee_claimer.models.claims import BatchResult, ClaimOutcome, ClaimStatus
from fee_claimer.models.events import BatchFinished, BatchStarted, EventSink
from fee_claimer.models.fees import FeeSnapshot, short_address
from fee_claimer.models.notifications import Severity
from fee_claimer.services.claim_executor import ClaimExecutor, wallet_ready
from fee_claimer.services.interfaces import ChainConnection, WalletCapability
from fee_claimer.services.notification_bus import NotificationBus
from fee_claimer.services.threshold import ThresholdGate, format_usd


logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class ClaimStep:
    """One planned entry of a batch run."""
    fee: FeeSnapshot
    eligible: bool
    # A delay follows this step before the next pool is touched
    delay_after: bool


class BatchOrchestrator:
    """
    Claims pools one at a time in input order.

    Claims never overlap: concurrent transactions from one wallet would race
    for the same blockhash and multiply RPC rate limiting.
    """

    def __init__(
        self,
        executor: ClaimExecutor,
        gate: ThresholdGate,
        notifications: NotificationBus,
        inter_claim_delay: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
        events: EventSink = None
    ):
        self._executor = executor
        self._gate = gate
        self._notifications = notifications
        self.inter_claim_delay = settings.inter_claim_delay if inter_claim_delay is None else inter_claim_delay
        self._sleep = sleep
        self._events = events
        self.logger = logger.bind(service="batch_orchestrator")

    def _emit(self, event) -> None:
        if self._events is not None:
            self._events(event)

    def plan(self, fees: Sequence[FeeSnapshot]) -> Iterator[ClaimStep]:
        """Yield the claim steps of a batch, in input order."""
        eligible_flags = [self._gate.is_claimable(fee) for fee in fees]
        for index, fee in enumerate(fees):
            eligible = eligible_flags[index]
            delay_after = eligible and index < len(fees) - 1
            yield ClaimStep(fee=fee, eligible=eligible, delay_after=delay_after)

    async def run_batch(
        self,
        fees: Sequence[FeeSnapshot],
        wallet: Optional[WalletCapability],
        connection: ChainConnection
    ) -> BatchResult:
        """Claim every eligible pool and report aggregate counts."""
        result = BatchResult()
        self._emit(BatchStarted(pool_count=len(fees)))

        if not wallet_ready(wallet):
            message = WalletNotConnected().message
            self._notifications.error(message)
            for fee in fees:
                result.record(ClaimOutcome(pool=fee.pool, status=ClaimStatus.SKIPPED_NO_WALLET, message=message))
            self._emit(BatchFinished(result=result))
            return result

        for step in self.plan(fees):
            if not step.eligible:
                message = (
                    f"Skipped pool {short_address(step.fee.pool)} - fees "
                    f"{format_usd(self._gate.value_of(step.fee))} below {self._gate.minimum_label}"
                )
                self.logger.info("Skipped pool below threshold", pool=step.fee.pool)
                self._notifications.error(message)
                result.record(ClaimOutcome(
                    pool=step.fee.pool,
                    status=ClaimStatus.SKIPPED_BELOW_THRESHOLD,
                    message=message
                ))
                continue

            outcome = await self._executor.claim(step.fee, wallet, connection)
            result.record(outcome)

            if step.delay_after:
                await self._sleep(self.inter_claim_delay)

        summary = (
            f"Batch claim complete: {result.success} successful, {result.failed} failed, "
            f"{result.skipped} skipped (below {self._gate.minimum_label})"
        )
        self.logger.info(
            "Batch claim complete",
            success=result.success,
            failed=result.failed,
            skipped=result.skipped
        )
        self._notifications.push(summary, Severity.SUCCESS if result.success > 0 else Severity.ERROR)
        self._emit(BatchFinished(result=result))
        return result

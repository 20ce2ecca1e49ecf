"""
Fee claim service: the command surface the display layer talks to.

Wires the fetcher, gate, executor and orchestrator together and feeds
their outcome events into the dashboard state.
"""

from typing import List, Optional

import structlog

from fee_claimer.core.config import Settings, settings
from fee_claimer.core.exceptions import ClaimInProgressError, NotFoundError
from fee_claimer.models.claims import BatchResult, ClaimOutcome
from fee_claimer.models.events import FetchCompleted, FetchStarted
from fee_claimer.models.notifications import Notification
from fee_claimer.services.batch_orchestrator import BatchOrchestrator
from fee_claimer.services.claim_executor import ClaimExecutor
from fee_claimer.services.dashboard_state import DashboardState
from fee_claimer.services.dbc_program import DbcClaimTransactionBuilder, DbcPoolFeeReader
from fee_claimer.services.endpoint_fetcher import EndpointFailoverFetcher
from fee_claimer.services.interfaces import (
    ClaimTransactionBuilder,
    ConnectionFactory,
    PoolFeeReader,
    WalletCapability,
)
from fee_claimer.services.notification_bus import NotificationBus
from fee_claimer.services.retry_policy import RetryPolicy
from fee_claimer.services.solana_client import open_connection
from fee_claimer.services.threshold import ThresholdGate
from fee_claimer.services.wallet import load_wallet


logger = structlog.get_logger(__name__)


class FeeClaimService:
    """Commands: fetch, claim_one, claim_all."""

    def __init__(
        self,
        wallet: Optional[WalletCapability] = None,
        config: Optional[Settings] = None,
        reader: Optional[PoolFeeReader] = None,
        builder: Optional[ClaimTransactionBuilder] = None,
        connection_factory: ConnectionFactory = open_connection,
        notifications: Optional[NotificationBus] = None,
        state: Optional[DashboardState] = None
    ):
        self.config = config or settings
        self.wallet = wallet if wallet is not None else load_wallet(self.config)
        self.state = state or DashboardState()
        self.notifications = notifications or NotificationBus(ttl=self.config.notification_ttl)
        self.gate = ThresholdGate.from_settings(self.config)
        self._connection_factory = connection_factory
        self._reader = reader or DbcPoolFeeReader.from_settings(self.config)

        self.fetcher = EndpointFailoverFetcher(
            self.config.rpc_endpoints,
            connection_factory=connection_factory,
            gate=self.gate
        )
        self.executor = ClaimExecutor(
            builder=builder or DbcClaimTransactionBuilder(self.config.dbc_program_id),
            gate=self.gate,
            notifications=self.notifications,
            retry_policy=RetryPolicy(
                max_retries=self.config.claim_max_retries,
                base_delay=self.config.claim_retry_base_delay
            ),
            confirmation_timeout=self.config.confirmation_timeout,
            max_claim_amount=self.config.max_claim_amount,
            commitment=self.config.commitment,
            blockhash_commitment=self.config.blockhash_commitment,
            events=self.state.apply,
            connection_factory=connection_factory
        )
        self.orchestrator = BatchOrchestrator(
            executor=self.executor,
            gate=self.gate,
            notifications=self.notifications,
            inter_claim_delay=self.config.inter_claim_delay,
            events=self.state.apply
        )
        self.logger = logger.bind(service="fee_claim_service")

    async def fetch(self) -> Optional[FetchCompleted]:
        """Refresh the fee list. Failures land in ``state.error``, never raise."""
        self.state.apply(FetchStarted())
        try:
            completed = await self.fetcher.fetch(self._reader)
        except Exception as e:
            event = self.state.fetch_failed(e)
            self.logger.error("Fee fetch failed", kind=event.kind.value, error=str(e))
            return None
        self.state.apply(completed)
        return completed

    def _claim_endpoint(self) -> str:
        # Claims go to the endpoint that answered the last fetch
        return self.state.endpoint or self.config.rpc_endpoints[0]

    def _ensure_idle(self) -> None:
        if self.state.busy:
            raise ClaimInProgressError(details={
                "claiming_pool": self.state.claiming_pool,
                "claiming_all": self.state.claiming_all
            })

    async def claim_one(self, pool: str) -> ClaimOutcome:
        self._ensure_idle()
        fee = self.state.find(pool)
        if fee is None:
            raise NotFoundError(f"Pool not found: {pool}", {"pool": pool})

        async with self._connection_factory(self._claim_endpoint()) as connection:
            return await self.executor.claim(fee, self.wallet, connection)

    async def claim_all(self) -> BatchResult:
        self._ensure_idle()
        fees = list(self.state.fees)
        async with self._connection_factory(self._claim_endpoint()) as connection:
            return await self.orchestrator.run_batch(fees, self.wallet, connection)

    def live_notifications(self) -> List[Notification]:
        return self.notifications.live()


# Global instance
_fee_claim_service: Optional[FeeClaimService] = None


def get_fee_claim_service() -> FeeClaimService:
    """Get or create global FeeClaimService instance."""
    global _fee_claim_service
    if _fee_claim_service is None:
        _fee_claim_service = FeeClaimService()
    return _fee_claim_service


def reset_fee_claim_service(service: Optional[FeeClaimService] = None) -> None:
    """Replace the global instance (None drops it)."""
    global _fee_claim_service
    _fee_claim_service = service

"""
Single-pool partner fee claim pipeline.

Build → attach blockhash → wallet submit → confirmation raced against a
timeout → explicit status check. The retry policy resubmits only until the
wallet has sent; after that only the confirmation and status reads for that
signature are retried. Every invocation ends with exactly one terminal
notification, however many attempts were made.
"""

import asyncio
from typing import Optional, Set, Tuple

from solders.message import MessageV0
from solders.signature import Signature
import structlog

from fee_claimer.core.config import settings
from fee_claimer.core.exceptions import (
    BelowThreshold,
    ConfirmationTimeout,
    FeeClaimerException,
    OnChainFailure,
    RpcFailureKind,
    UnknownClaimError,
    WalletNotConnected,
    classify_rpc_failure,
    is_user_rejection,
)
from fee_claimer.models.claims import ClaimAttempt, ClaimErrorKind, ClaimOutcome, ClaimStatus
from fee_claimer.models.events import ClaimFinished, ClaimStarted, EventSink
from fee_claimer.models.fees import FeeSnapshot, short_address
from fee_claimer.services.interfaces import (
    BlockhashInfo,
    ChainConnection,
    ClaimTransactionBuilder,
    ConnectionFactory,
    WalletCapability,
)
from fee_claimer.services.notification_bus import NotificationBus
from fee_claimer.services.retry_policy import RetryPolicy
from fee_claimer.services.threshold import ThresholdGate, format_usd


logger = structlog.get_logger(__name__)


def classify_claim_error(error: BaseException) -> ClaimErrorKind:
    """Map a failed attempt onto the claim error kinds."""
    if isinstance(error, ConfirmationTimeout):
        return ClaimErrorKind.TIMEOUT
    if isinstance(error, OnChainFailure):
        return ClaimErrorKind.ON_CHAIN_FAILURE
    # Wallets report rejection in free text; string matching is best effort
    if is_user_rejection(error):
        return ClaimErrorKind.REJECTED_BY_USER
    if classify_rpc_failure(error) != RpcFailureKind.GENERIC:
        return ClaimErrorKind.TRANSIENT_RPC_ERROR
    return ClaimErrorKind.UNKNOWN


def wallet_ready(wallet: Optional[WalletCapability]) -> bool:
    return wallet is not None and wallet.connected and wallet.public_key is not None


class ClaimExecutor:
    """Drives one pool's partner fee claim."""

    def __init__(
        self,
        builder: ClaimTransactionBuilder,
        gate: ThresholdGate,
        notifications: NotificationBus,
        retry_policy: Optional[RetryPolicy] = None,
        confirmation_timeout: Optional[float] = None,
        max_claim_amount: Optional[int] = None,
        commitment: Optional[str] = None,
        blockhash_commitment: Optional[str] = None,
        events: EventSink = None,
        connection_factory: Optional[ConnectionFactory] = None
    ):
        self._builder = builder
        self._gate = gate
        self._notifications = notifications
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.claim_max_retries,
            base_delay=settings.claim_retry_base_delay
        )
        self.confirmation_timeout = (
            settings.confirmation_timeout if confirmation_timeout is None else confirmation_timeout
        )
        self.max_claim_amount = settings.max_claim_amount if max_claim_amount is None else max_claim_amount
        self.commitment = commitment or settings.commitment
        self.blockhash_commitment = blockhash_commitment or settings.blockhash_commitment
        self._events = events
        # Confirmation polls open their own connection when a factory is given
        self._connection_factory = connection_factory
        self._pending_confirmations: Set[asyncio.Task] = set()
        # Polls whose claim already reported a timeout; they keep running
        self._abandoned_confirmations: Set[asyncio.Task] = set()
        self.logger = logger.bind(service="claim_executor")

    @property
    def pending_confirmations(self) -> Set[asyncio.Task]:
        return set(self._pending_confirmations)

    def _emit(self, event) -> None:
        if self._events is not None:
            self._events(event)

    async def claim(
        self,
        fee: FeeSnapshot,
        wallet: Optional[WalletCapability],
        connection: ChainConnection
    ) -> ClaimOutcome:
        """
        Claim the partner fees of one pool.

        Wallet and threshold checks run first and never touch the network.
        """
        attempt = ClaimAttempt(pool=fee.pool)

        if not wallet_ready(wallet):
            message = WalletNotConnected().message
            self._notifications.error(message)
            attempt.status = ClaimStatus.SKIPPED_NO_WALLET
            return ClaimOutcome(pool=fee.pool, status=attempt.status, message=message)

        if not self._gate.is_claimable(fee):
            value = self._gate.value_of(fee)
            skipped = BelowThreshold(fee.pool, value, self._gate.minimum_value)
            self.logger.info(skipped.message, **skipped.details)
            message = (
                f"Cannot claim fees below {self._gate.minimum_label}. "
                f"Current fees: {format_usd(value)}"
            )
            self._notifications.error(message)
            attempt.status = ClaimStatus.SKIPPED_BELOW_THRESHOLD
            return ClaimOutcome(pool=fee.pool, status=attempt.status, message=message)

        self._emit(ClaimStarted(pool=fee.pool))

        def on_retry(attempt_index: int, error: BaseException) -> None:
            attempt.retry_count = attempt_index + 1
            attempt.last_error = error

        try:
            signature, checkpoint = await self.retry_policy.execute(
                lambda: self._submit(fee, wallet, connection),
                on_retry=on_retry
            )
            # Sent: from here on only reads about this signature are retried
            attempt.signature = str(signature)
            await self._verify(signature, checkpoint, connection)
        except Exception as e:
            attempt.last_error = e
            attempt.status = ClaimStatus.FAILED
            outcome = self._failure_outcome(fee, attempt, e)
            self._notifications.error(outcome.message)
            self._emit(ClaimFinished(outcome=outcome))
            return outcome

        attempt.status = ClaimStatus.SUCCESS
        signature_text = str(signature)
        message = f"Fees claimed for pool {short_address(fee.pool)}! Tx: {short_address(signature_text)}"
        self.logger.info(
            "Partner fees claimed",
            pool=fee.pool,
            signature=signature_text,
            attempts=attempt.retry_count + 1
        )
        outcome = ClaimOutcome(
            pool=fee.pool,
            status=ClaimStatus.SUCCESS,
            message=message,
            signature=signature_text,
            attempts=attempt.retry_count + 1
        )
        self._notifications.success(message)
        self._emit(ClaimFinished(outcome=outcome))
        return outcome

    async def _submit(
        self,
        fee: FeeSnapshot,
        wallet: WalletCapability,
        connection: ChainConnection
    ) -> Tuple[Signature, BlockhashInfo]:
        owner = wallet.public_key

        instructions = await self._builder.build(
            pool=fee.pool_address,
            fee_claimer=owner,
            payer=owner,
            receiver=owner,
            max_base_amount=self.max_claim_amount,
            max_quote_amount=self.max_claim_amount,
            connection=connection
        )

        checkpoint = await connection.get_latest_blockhash(self.blockhash_commitment)
        message = MessageV0.try_compile(
            payer=owner,
            instructions=instructions,
            address_lookup_table_accounts=[],
            recent_blockhash=checkpoint.blockhash,
        )

        signature = await wallet.sign_and_send(message, connection)
        self.logger.info("Transaction sent", pool=fee.pool, signature=str(signature))
        return signature, checkpoint

    async def _verify(
        self,
        signature: Signature,
        checkpoint: BlockhashInfo,
        connection: ChainConnection
    ) -> None:
        """Confirm and check the status of a sent transaction; never resends it."""
        await self._await_confirmation(signature, checkpoint, connection)

        status = await self.retry_policy.execute(lambda: connection.get_signature_status(signature))
        if status is not None and status.err:
            raise OnChainFailure(str(signature), status.err)

    async def _poll_confirmation(
        self,
        signature: Signature,
        checkpoint: BlockhashInfo,
        connection: ChainConnection
    ) -> None:
        async def confirm(target: ChainConnection) -> None:
            await self.retry_policy.execute(
                lambda: target.confirm_transaction(
                    signature,
                    last_valid_block_height=checkpoint.last_valid_block_height,
                    commitment=self.commitment
                )
            )

        if self._connection_factory is None:
            await confirm(connection)
            return

        # The poll owns its connection so it outlives the claim command
        async with self._connection_factory(connection.endpoint) as poll_connection:
            await confirm(poll_connection)

    async def _await_confirmation(
        self,
        signature: Signature,
        checkpoint: BlockhashInfo,
        connection: ChainConnection
    ) -> None:
        task = asyncio.ensure_future(self._poll_confirmation(signature, checkpoint, connection))
        self._pending_confirmations.add(task)
        task.add_done_callback(lambda done: self._confirmation_settled(done, str(signature)))

        # asyncio.wait never cancels the task on timeout
        done, _ = await asyncio.wait({task}, timeout=self.confirmation_timeout)
        if not done:
            self.logger.warning(
                "Confirmation timeout, transaction may still land",
                signature=str(signature),
                timeout=self.confirmation_timeout
            )
            self._abandoned_confirmations.add(task)
            raise ConfirmationTimeout(str(signature), self.confirmation_timeout)

        task.result()

    def _confirmation_settled(self, task: asyncio.Task, signature: str) -> None:
        self._pending_confirmations.discard(task)
        abandoned = task in self._abandoned_confirmations
        self._abandoned_confirmations.discard(task)

        if task.cancelled():
            if abandoned:
                self.logger.warning("Late confirmation cancelled", signature=signature)
            return

        error = task.exception()
        if not abandoned:
            return
        if error is None:
            self.logger.info("Late confirmation settled", signature=signature)
        else:
            self.logger.warning("Late confirmation failed", signature=signature, error=str(error))

    def _failure_outcome(self, fee: FeeSnapshot, attempt: ClaimAttempt, error: Exception) -> ClaimOutcome:
        kind = classify_claim_error(error)
        if kind == ClaimErrorKind.UNKNOWN and not isinstance(error, FeeClaimerException):
            error = UnknownClaimError(str(error) or type(error).__name__, {"error_type": type(error).__name__})
        details = getattr(error, "details", {}) or {}

        if kind == ClaimErrorKind.TIMEOUT:
            message = f"Transaction may still be processing. Check explorer: {short_address(fee.pool)}"
        else:
            message = f"Failed to claim fees for pool {short_address(fee.pool)}: {error}"

        self.logger.error(
            "Claim fees error",
            pool=fee.pool,
            kind=kind.value,
            attempts=attempt.retry_count + 1,
            error=str(error)
        )

        return ClaimOutcome(
            pool=fee.pool,
            status=ClaimStatus.FAILED,
            message=message,
            signature=details.get("signature") or attempt.signature,
            error_kind=kind,
            attempts=attempt.retry_count + 1,
            # Sent but never verified: the transaction may still land
            ambiguous=attempt.signature is not None and kind != ClaimErrorKind.ON_CHAIN_FAILURE
        )

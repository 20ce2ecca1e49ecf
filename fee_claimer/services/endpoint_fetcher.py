"""
Ordered RPC endpoint failover for read queries.

Endpoints are tried strictly in list order with a fresh connection each;
the first answer wins and results are never merged across endpoints.
"""

from typing import List, Optional, Sequence

import structlog

from fee_claimer.core.exceptions import EndpointUnavailable, RpcFailureKind, classify_rpc_failure
from fee_claimer.models.events import FetchCompleted
from fee_claimer.services.interfaces import ConnectionFactory, PoolFeeReader
from fee_claimer.services.solana_client import open_connection
from fee_claimer.services.threshold import ThresholdGate


logger = structlog.get_logger(__name__)


class EndpointFailoverFetcher:
    """Try each endpoint in priority order until one answers."""

    def __init__(
        self,
        endpoints: Sequence[str],
        connection_factory: ConnectionFactory = open_connection,
        gate: Optional[ThresholdGate] = None
    ):
        self.endpoints: List[str] = list(endpoints)
        self._connection_factory = connection_factory
        self._gate = gate
        self.logger = logger.bind(service="endpoint_fetcher")

    async def fetch(self, query: PoolFeeReader) -> FetchCompleted:
        """
        Run ``query`` against the first endpoint that answers.

        Raises:
            EndpointUnavailable: every endpoint failed; ``kind`` classifies the
                last failure observed
        """
        if not self.endpoints:
            raise EndpointUnavailable("No RPC endpoints configured", RpcFailureKind.GENERIC)

        last_error: Optional[Exception] = None

        for endpoint in self.endpoints:
            self.logger.info("Trying RPC endpoint", endpoint=endpoint)
            try:
                async with self._connection_factory(endpoint) as connection:
                    snapshots = list(await query(connection))
            except Exception as e:
                self.logger.warning("RPC endpoint failed", endpoint=endpoint, error=str(e))
                last_error = e
                continue

            self.logger.info(
                "Fetched pool fees",
                endpoint=endpoint,
                pool_count=len(snapshots)
            )
            self._log_snapshots(snapshots)
            return FetchCompleted(endpoint=endpoint, snapshots=snapshots)

        kind = classify_rpc_failure(last_error)
        self.logger.error(
            "Failed to fetch pool fees from all endpoints",
            endpoint_count=len(self.endpoints),
            kind=kind.value,
            last_error=str(last_error)
        )
        raise EndpointUnavailable(
            f"All RPC endpoints failed: {last_error}",
            kind=kind,
            last_error=last_error,
            details={"endpoints": list(self.endpoints)}
        ) from last_error

    def _log_snapshots(self, snapshots) -> None:
        if self._gate is None:
            return
        for index, fee in enumerate(snapshots, start=1):
            self.logger.debug(
                "Pool partner fees",
                index=index,
                pool=fee.pool,
                partner_base_fee=fee.partner_base_fee,
                partner_quote_fee=fee.partner_quote_fee,
                partner_fee_usd=str(self._gate.value_of(fee)),
                can_claim=self._gate.is_claimable(fee)
            )

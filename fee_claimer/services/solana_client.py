"""
Solana RPC connection for one endpoint.
Wraps the async solana-py client and translates provider failures into the
fee claimer's error taxonomy.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, List, Optional, Sequence, TypeVar

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.types import TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
import structlog

from fee_claimer.core.config import settings
from fee_claimer.core.exceptions import (
    AccessDenied,
    FeeClaimerException,
    NetworkTimeout,
    RateLimited,
    RpcFailureKind,
    classify_rpc_failure,
)
from fee_claimer.services.interfaces import AccountData, BlockhashInfo, SignatureStatus


logger = structlog.get_logger(__name__)

T = TypeVar("T")


def translate_rpc_error(endpoint: str, method: str, error: Exception) -> Optional[FeeClaimerException]:
    """Map a raw client failure onto AccessDenied / RateLimited / NetworkTimeout."""
    kind = classify_rpc_failure(error)
    details = {"endpoint": endpoint, "method": method}
    if kind == RpcFailureKind.ACCESS_DENIED:
        return AccessDenied(f"403 Access forbidden on {endpoint}: {error}", details)
    if kind == RpcFailureKind.RATE_LIMITED:
        return RateLimited(f"429 rate limit exceeded on {endpoint}: {error}", details)
    if kind == RpcFailureKind.NETWORK:
        return NetworkTimeout(f"Network error on {endpoint}: {error}", details)
    return None


class SolanaConnection:
    """
    Async Solana RPC connection bound to a single endpoint.

    Provides the reads and writes the claim pipeline needs:
    - latest blockhash, submission, confirmation and status checks
    - account and program account reads
    """

    def __init__(
        self,
        endpoint: str,
        commitment: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncClient] = None
    ):
        self.endpoint = endpoint
        self.commitment = commitment or settings.commitment
        self.client = client or AsyncClient(
            endpoint,
            commitment=Commitment(self.commitment),
            timeout=timeout or settings.rpc_timeout
        )
        self.logger = logger.bind(service="solana_connection", endpoint=endpoint)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the RPC client connection."""
        try:
            await self.client.close()
        except Exception as e:
            self.logger.warning("Error closing RPC client", error=str(e))

    async def _call(self, method: str, request: Awaitable[T]) -> T:
        try:
            return await request
        except FeeClaimerException:
            raise
        except Exception as e:
            translated = translate_rpc_error(self.endpoint, method, e)
            if translated is None:
                raise
            raise translated from e

    async def get_latest_blockhash(self, commitment: Optional[str] = None) -> BlockhashInfo:
        response = await self._call(
            "getLatestBlockhash",
            self.client.get_latest_blockhash(Commitment(commitment or self.commitment))
        )
        return BlockhashInfo(
            blockhash=response.value.blockhash,
            last_valid_block_height=response.value.last_valid_block_height
        )

    async def send_transaction(self, transaction: VersionedTransaction) -> Signature:
        opts = TxOpts(
            skip_preflight=False,
            preflight_commitment=Commitment("confirmed"),
            max_retries=3
        )
        response = await self._call("sendTransaction", self.client.send_transaction(transaction, opts=opts))
        return response.value

    async def confirm_transaction(
        self,
        signature: Signature,
        last_valid_block_height: Optional[int] = None,
        commitment: Optional[str] = None
    ) -> None:
        await self._call(
            "confirmTransaction",
            self.client.confirm_transaction(
                signature,
                Commitment(commitment or self.commitment),
                last_valid_block_height=last_valid_block_height
            )
        )

    async def get_signature_status(self, signature: Signature) -> Optional[SignatureStatus]:
        response = await self._call("getSignatureStatuses", self.client.get_signature_statuses([signature]))
        if not response.value or response.value[0] is None:
            return None
        status = response.value[0]
        return SignatureStatus(
            err=status.err,
            confirmation_status=str(status.confirmation_status) if status.confirmation_status else None
        )

    async def get_account_info(self, pubkey: Pubkey) -> Optional[AccountData]:
        response = await self._call("getAccountInfo", self.client.get_account_info(pubkey, encoding="base64"))
        if not response.value:
            return None
        account = response.value
        return AccountData(pubkey=pubkey, owner=account.owner, lamports=account.lamports, data=bytes(account.data))

    async def get_program_accounts(self, program_id: Pubkey, filters: Sequence[Any] = ()) -> List[AccountData]:
        response = await self._call(
            "getProgramAccounts",
            self.client.get_program_accounts(program_id, encoding="base64", filters=list(filters))
        )
        return [
            AccountData(
                pubkey=keyed.pubkey,
                owner=keyed.account.owner,
                lamports=keyed.account.lamports,
                data=bytes(keyed.account.data)
            )
            for keyed in response.value
        ]


@asynccontextmanager
async def open_connection(endpoint: str) -> AsyncIterator[SolanaConnection]:
    """Fresh connection context for one endpoint, closed on exit."""
    connection = SolanaConnection(endpoint)
    try:
        yield connection
    finally:
        await connection.close()

"""
Protocols for the external collaborators of the claim pipeline.

The pipeline only talks to the chain, the wallet and the claim program
through these seams, so each can be swapped for a fake in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncContextManager, Callable, List, Optional, Protocol, Sequence

from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from fee_claimer.models.fees import FeeSnapshot


@dataclass(frozen=True)
class BlockhashInfo:
    """Recent network checkpoint a transaction is validated against."""
    blockhash: Hash
    last_valid_block_height: int


@dataclass(frozen=True)
class AccountData:
    """Raw account returned by the node."""
    pubkey: Pubkey
    owner: Pubkey
    lamports: int
    data: bytes


@dataclass(frozen=True)
class SignatureStatus:
    """On-chain status of a submitted transaction."""
    err: Optional[Any] = None
    confirmation_status: Optional[str] = None


class ChainConnection(Protocol):
    """Connection context bound to one RPC endpoint."""

    endpoint: str

    async def get_latest_blockhash(self, commitment: Optional[str] = None) -> BlockhashInfo:
        ...

    async def send_transaction(self, transaction: VersionedTransaction) -> Signature:
        ...

    async def confirm_transaction(
        self,
        signature: Signature,
        last_valid_block_height: Optional[int] = None,
        commitment: Optional[str] = None
    ) -> None:
        """Poll until the signature reaches ``commitment``; raise if it cannot."""
        ...

    async def get_signature_status(self, signature: Signature) -> Optional[SignatureStatus]:
        ...

    async def get_account_info(self, pubkey: Pubkey) -> Optional[AccountData]:
        ...

    async def get_program_accounts(self, program_id: Pubkey, filters: Sequence[Any] = ()) -> List[AccountData]:
        ...


ConnectionFactory = Callable[[str], AsyncContextManager[ChainConnection]]


class PoolFeeReader(Protocol):
    """Idempotent read of the fee snapshots of one pool group."""

    async def __call__(self, connection: ChainConnection) -> List[FeeSnapshot]:
        ...


class WalletCapability(Protocol):
    """Identity that can sign and submit transactions."""

    @property
    def public_key(self) -> Optional[Pubkey]:
        ...

    @property
    def connected(self) -> bool:
        ...

    async def sign_and_send(self, message: MessageV0, connection: ChainConnection) -> Signature:
        """
        Sign and submit. May suspend until the owner acts, and raises
        ``UserRejected`` when the owner declines.
        """
        ...


class ClaimTransactionBuilder(Protocol):
    """Builds the opaque partner fee claim instructions for a pool."""

    async def build(
        self,
        pool: Pubkey,
        fee_claimer: Pubkey,
        payer: Pubkey,
        receiver: Pubkey,
        max_base_amount: int,
        max_quote_amount: int,
        connection: ChainConnection,
    ) -> List[Instruction]:
        ...

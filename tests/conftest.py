"""
Shared fakes for the fee claimer tests.
"""

import asyncio
import itertools
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from fee_claimer.models.fees import FeeSnapshot
from fee_claimer.services.claim_executor import ClaimExecutor
from fee_claimer.services.interfaces import AccountData, BlockhashInfo, SignatureStatus
from fee_claimer.services.notification_bus import NotificationBus
from fee_claimer.services.retry_policy import RetryPolicy
from fee_claimer.services.threshold import ThresholdGate


# $100 per SOL: 10_000_000 lamports is exactly $1
UNIT_VALUE = Decimal(100) / Decimal(1_000_000_000)
ONE_DOLLAR = 10_000_000

_signature_seed = itertools.count(1)


def make_signature() -> Signature:
    return Signature.from_bytes(bytes([next(_signature_seed) % 256]) * 64)


def make_fee(partner_base: int = 0, partner_quote: int = 0, **kwargs) -> FeeSnapshot:
    return FeeSnapshot(
        pool_address=kwargs.pop("pool_address", Pubkey.new_unique()),
        partner_base_fee=partner_base,
        partner_quote_fee=partner_quote,
        **kwargs
    )


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeConnection:
    """In-memory chain connection."""

    def __init__(
        self,
        endpoint: str = "https://rpc.fake",
        status_err=None,
        confirm_gate: Optional[asyncio.Event] = None,
        accounts: Optional[Dict[Pubkey, AccountData]] = None,
        program_accounts: Optional[List[AccountData]] = None,
        status_errors: Optional[list] = None,
        confirm_errors: Optional[list] = None
    ):
        self.endpoint = endpoint
        self.status_err = status_err
        self.confirm_gate = confirm_gate
        self.accounts = accounts or {}
        self.program_accounts = program_accounts or []
        self.calls: List[str] = []
        self.sent = []
        self.blockhash_commitments: List[Optional[str]] = []
        self.confirmations_finished = 0
        # Queued failures raised by the next reads
        self.status_errors = list(status_errors or [])
        self.confirm_errors = list(confirm_errors or [])
        self.closed = False

    def _ensure_open(self) -> None:
        if self.closed:
            raise RuntimeError("Cannot send a request, as the client has been closed.")

    async def get_latest_blockhash(self, commitment=None) -> BlockhashInfo:
        self.calls.append("get_latest_blockhash")
        self.blockhash_commitments.append(commitment)
        return BlockhashInfo(blockhash=Hash.default(), last_valid_block_height=150)

    async def send_transaction(self, transaction) -> Signature:
        self.calls.append("send_transaction")
        self.sent.append(transaction)
        return make_signature()

    async def confirm_transaction(self, signature, last_valid_block_height=None, commitment=None) -> None:
        self.calls.append("confirm_transaction")
        if self.confirm_errors:
            raise self.confirm_errors.pop(0)
        if self.confirm_gate is not None:
            await self.confirm_gate.wait()
        self._ensure_open()
        self.confirmations_finished += 1

    async def get_signature_status(self, signature) -> Optional[SignatureStatus]:
        self.calls.append("get_signature_status")
        if self.status_errors:
            raise self.status_errors.pop(0)
        return SignatureStatus(err=self.status_err, confirmation_status="confirmed")

    async def get_account_info(self, pubkey):
        self.calls.append("get_account_info")
        return self.accounts.get(pubkey)

    async def get_program_accounts(self, program_id, filters=()):
        self.calls.append("get_program_accounts")
        self.last_filters = list(filters)
        return list(self.program_accounts)


class FakeConnectionFactory:
    """Opens a fresh FakeConnection per endpoint and records open/close order."""

    def __init__(self, **connection_kwargs):
        self.connection_kwargs = connection_kwargs
        self.opened: List[str] = []
        self.closed: List[str] = []
        self.connections: List[FakeConnection] = []

    @asynccontextmanager
    async def __call__(self, endpoint: str):
        self.opened.append(endpoint)
        connection = FakeConnection(endpoint=endpoint, **self.connection_kwargs)
        self.connections.append(connection)
        try:
            yield connection
        finally:
            connection.closed = True
            self.closed.append(endpoint)


class FakeWallet:
    """
    Wallet whose submissions follow a script: each entry is an exception to
    raise or None for success. Once the script runs out every call succeeds.
    """

    def __init__(self, script: Optional[list] = None, connected: bool = True):
        self._keypair = Keypair()
        self.script = list(script or [])
        self._connected = connected
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def public_key(self):
        return self._keypair.pubkey() if self._connected else None

    @property
    def connected(self) -> bool:
        return self._connected

    async def sign_and_send(self, message, connection) -> Signature:
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            step = self.script.pop(0) if self.script else None
            if step is not None:
                raise step
            return make_signature()
        finally:
            self.in_flight -= 1


class FakeBuilder:
    def __init__(self):
        self.calls: List[dict] = []
        self.program_id = Pubkey.new_unique()

    async def build(self, pool, fee_claimer, payer, receiver, max_base_amount, max_quote_amount, connection):
        self.calls.append({
            "pool": pool,
            "fee_claimer": fee_claimer,
            "payer": payer,
            "receiver": receiver,
            "max_base_amount": max_base_amount,
            "max_quote_amount": max_quote_amount,
        })
        return [
            Instruction(
                program_id=self.program_id,
                accounts=[
                    AccountMeta(pubkey=pool, is_signer=False, is_writable=True),
                    AccountMeta(pubkey=fee_claimer, is_signer=True, is_writable=False),
                ],
                data=b"claim"
            )
        ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bus(clock):
    return NotificationBus(ttl=5.0, clock=clock)


@pytest.fixture
def gate():
    return ThresholdGate(minimum_value=1, unit_value_conversion=UNIT_VALUE)


@pytest.fixture
def retry_sleep():
    return RecordingSleep()


@pytest.fixture
def builder():
    return FakeBuilder()


@pytest.fixture
def events():
    return []


@pytest.fixture
def executor(builder, gate, bus, retry_sleep, events):
    return ClaimExecutor(
        builder=builder,
        gate=gate,
        notifications=bus,
        retry_policy=RetryPolicy(max_retries=3, base_delay=1.0, sleep=retry_sleep),
        confirmation_timeout=0.05,
        max_claim_amount=1_000_000_000_000,
        commitment="confirmed",
        blockhash_commitment="finalized",
        events=events.append
    )

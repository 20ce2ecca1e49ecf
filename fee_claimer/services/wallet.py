"""
Wallet capabilities: a local keypair signer and the disconnected wallet.
"""

import json
from pathlib import Path
from typing import Awaitable, Callable, Optional

from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
import structlog

from fee_claimer.core.config import Settings, settings
from fee_claimer.core.exceptions import ConfigurationError, UserRejected, WalletNotConnected
from fee_claimer.services.interfaces import ChainConnection


logger = structlog.get_logger(__name__)

# Asked before every signature; False means the owner declined
Approver = Callable[[MessageV0], Awaitable[bool]]


class KeypairWallet:
    """Signs with a local keypair, optionally asking the operator first."""

    def __init__(self, keypair: Keypair, approve: Optional[Approver] = None):
        self._keypair = keypair
        self._approve = approve
        self.logger = logger.bind(service="wallet", wallet=str(keypair.pubkey()))

    @classmethod
    def from_base58(cls, secret: str, approve: Optional[Approver] = None) -> "KeypairWallet":
        try:
            keypair = Keypair.from_base58_string(secret)
        except Exception as e:
            raise ConfigurationError(f"Invalid wallet private key: {e}")
        return cls(keypair, approve)

    @classmethod
    def from_file(cls, path: str, approve: Optional[Approver] = None) -> "KeypairWallet":
        """Load a solana CLI keypair file (JSON array of 64 bytes)."""
        try:
            raw = json.loads(Path(path).expanduser().read_text())
            keypair = Keypair.from_bytes(bytes(raw))
        except Exception as e:
            raise ConfigurationError(f"Invalid wallet keypair file {path}: {e}", {"path": path})
        return cls(keypair, approve)

    @property
    def public_key(self) -> Optional[Pubkey]:
        return self._keypair.pubkey()

    @property
    def connected(self) -> bool:
        return True

    async def sign_and_send(self, message: MessageV0, connection: ChainConnection) -> Signature:
        if self._approve is not None and not await self._approve(message):
            self.logger.info("Signature request declined")
            raise UserRejected("User rejected the request")

        transaction = VersionedTransaction(message, [self._keypair])
        return await connection.send_transaction(transaction)


class DisconnectedWallet:
    """Stands in when no signer is configured."""

    @property
    def public_key(self) -> Optional[Pubkey]:
        return None

    @property
    def connected(self) -> bool:
        return False

    async def sign_and_send(self, message: MessageV0, connection: ChainConnection) -> Signature:
        raise WalletNotConnected()


def load_wallet(config: Optional[Settings] = None, approve: Optional[Approver] = None):
    """Wallet from settings: base58 secret first, then keypair file."""
    config = config or settings
    if config.wallet_private_key:
        return KeypairWallet.from_base58(config.wallet_private_key, approve)
    if config.wallet_keypair_path:
        return KeypairWallet.from_file(config.wallet_keypair_path, approve)
    logger.warning("No wallet configured, claims are disabled")
    return DisconnectedWallet()


def display_address(wallet) -> Optional[str]:
    """Connected wallet as ``ABCD...WXYZ``."""
    if wallet is None or not wallet.connected or wallet.public_key is None:
        return None
    address = str(wallet.public_key)
    return f"{address[:4]}...{address[-4:]}"

"""
Meteora Dynamic Bonding Curve (DBC) program client.

Reads partner fee snapshots of every pool under one pool config and builds
the partner ``claim_trading_fee`` instruction. Account layouts follow the
program's Anchor structs; only the fields used here are decoded.
"""

import hashlib
import struct
from dataclasses import dataclass
from typing import List, Optional

import base58
from solana.rpc.types import MemcmpOpts
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
import structlog

from fee_claimer.core.config import Settings, settings
from fee_claimer.core.exceptions import ValidationError
from fee_claimer.models.fees import FeeSnapshot
from fee_claimer.services.interfaces import ChainConnection


logger = structlog.get_logger(__name__)

ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
NATIVE_MINT = Pubkey.from_string("So11111111111111111111111111111111111111112")

# VirtualPool layout (offsets include the 8 byte discriminator):
# volatility_tracker 64 bytes, then config, creator, base_mint, base_vault,
# quote_vault (32 each), reserves and fee counters (u64), sqrt_price (u128),
# activation_point (u64), 8 status bytes, metrics (4 x u64),
# finish_curve_timestamp, creator_base_fee, creator_quote_fee (u64)
POOL_CONFIG_OFFSET = 72
POOL_BASE_MINT_OFFSET = 136
POOL_BASE_VAULT_OFFSET = 168
POOL_QUOTE_VAULT_OFFSET = 200
POOL_PARTNER_BASE_FEE_OFFSET = 264
POOL_PARTNER_QUOTE_FEE_OFFSET = 272
POOL_TOTAL_TRADING_BASE_FEE_OFFSET = 328
POOL_TOTAL_TRADING_QUOTE_FEE_OFFSET = 336
POOL_CREATOR_BASE_FEE_OFFSET = 352
POOL_CREATOR_QUOTE_FEE_OFFSET = 360
POOL_MIN_SIZE = 368

# PoolConfig starts with quote_mint
CONFIG_QUOTE_MINT_OFFSET = 8


def anchor_discriminator(namespace: str, name: str) -> bytes:
    """First 8 bytes of sha256("<namespace>:<name>"), as Anchor derives them."""
    return hashlib.sha256(f"{namespace}:{name}".encode()).digest()[:8]


VIRTUAL_POOL_DISCRIMINATOR = anchor_discriminator("account", "VirtualPool")
CLAIM_TRADING_FEE_DISCRIMINATOR = anchor_discriminator("global", "claim_trading_fee")


def _u64(data: bytes, offset: int) -> int:
    return struct.unpack_from("<Q", data, offset)[0]


def _pubkey(data: bytes, offset: int) -> Pubkey:
    return Pubkey.from_bytes(data[offset:offset + 32])


@dataclass(frozen=True)
class PoolAccounts:
    """Accounts of a pool needed to build a claim."""
    pool: Pubkey
    config: Pubkey
    base_mint: Pubkey
    base_vault: Pubkey
    quote_vault: Pubkey


def _check_pool_data(pool: Pubkey, data: bytes) -> None:
    if len(data) < POOL_MIN_SIZE:
        raise ValidationError(
            f"Pool account data too small: {len(data)} bytes",
            {"pool": str(pool), "size": len(data)}
        )
    if data[:8] != VIRTUAL_POOL_DISCRIMINATOR:
        raise ValidationError("Account is not a DBC virtual pool", {"pool": str(pool)})


def decode_pool_fees(pool: Pubkey, data: bytes) -> FeeSnapshot:
    """Decode the fee counters of a VirtualPool account."""
    _check_pool_data(pool, data)
    return FeeSnapshot(
        pool_address=pool,
        partner_base_fee=_u64(data, POOL_PARTNER_BASE_FEE_OFFSET),
        partner_quote_fee=_u64(data, POOL_PARTNER_QUOTE_FEE_OFFSET),
        creator_base_fee=_u64(data, POOL_CREATOR_BASE_FEE_OFFSET),
        creator_quote_fee=_u64(data, POOL_CREATOR_QUOTE_FEE_OFFSET),
        total_trading_base_fee=_u64(data, POOL_TOTAL_TRADING_BASE_FEE_OFFSET),
        total_trading_quote_fee=_u64(data, POOL_TOTAL_TRADING_QUOTE_FEE_OFFSET),
    )


def decode_pool_accounts(pool: Pubkey, data: bytes) -> PoolAccounts:
    _check_pool_data(pool, data)
    return PoolAccounts(
        pool=pool,
        config=_pubkey(data, POOL_CONFIG_OFFSET),
        base_mint=_pubkey(data, POOL_BASE_MINT_OFFSET),
        base_vault=_pubkey(data, POOL_BASE_VAULT_OFFSET),
        quote_vault=_pubkey(data, POOL_QUOTE_VAULT_OFFSET),
    )


def get_associated_token_address(owner: Pubkey, mint: Pubkey, token_program: Pubkey = TOKEN_PROGRAM_ID) -> Pubkey:
    address, _ = Pubkey.find_program_address(
        [bytes(owner), bytes(token_program), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID
    )
    return address


def create_ata_idempotent(payer: Pubkey, owner: Pubkey, mint: Pubkey, token_program: Pubkey) -> Instruction:
    return Instruction(
        program_id=ASSOCIATED_TOKEN_PROGRAM_ID,
        accounts=[
            AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=get_associated_token_address(owner, mint, token_program), is_signer=False, is_writable=True),
            AccountMeta(pubkey=owner, is_signer=False, is_writable=False),
            AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
            AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=token_program, is_signer=False, is_writable=False),
        ],
        data=bytes([1])
    )


def close_token_account(account: Pubkey, destination: Pubkey, owner: Pubkey) -> Instruction:
    """SPL token CloseAccount; unwraps wrapped SOL back to lamports."""
    return Instruction(
        program_id=TOKEN_PROGRAM_ID,
        accounts=[
            AccountMeta(pubkey=account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=destination, is_signer=False, is_writable=True),
            AccountMeta(pubkey=owner, is_signer=True, is_writable=False),
        ],
        data=bytes([9])
    )


class DbcPoolFeeReader:
    """Fee snapshots of every pool created from one pool config."""

    def __init__(self, config_address: Optional[str] = None, program_id: Optional[str] = None):
        self.config_address = Pubkey.from_string(config_address or settings.pool_config_address)
        self.program_id = Pubkey.from_string(program_id or settings.dbc_program_id)
        self.logger = logger.bind(service="dbc_pool_fee_reader", config=str(self.config_address))

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "DbcPoolFeeReader":
        config = config or settings
        return cls(config.pool_config_address, config.dbc_program_id)

    def filters(self) -> List[MemcmpOpts]:
        return [
            MemcmpOpts(offset=0, bytes=base58.b58encode(VIRTUAL_POOL_DISCRIMINATOR).decode()),
            MemcmpOpts(offset=POOL_CONFIG_OFFSET, bytes=str(self.config_address)),
        ]

    async def __call__(self, connection: ChainConnection) -> List[FeeSnapshot]:
        accounts = await connection.get_program_accounts(self.program_id, self.filters())
        snapshots = []
        for account in accounts:
            try:
                snapshots.append(decode_pool_fees(account.pubkey, account.data))
            except ValidationError as e:
                self.logger.warning("Skipping undecodable pool account", pool=str(account.pubkey), error=e.message)
        return snapshots


class DbcClaimTransactionBuilder:
    """Builds the partner claim_trading_fee instructions for a pool."""

    def __init__(self, program_id: Optional[str] = None):
        self.program_id = Pubkey.from_string(program_id or settings.dbc_program_id)
        self.pool_authority, _ = Pubkey.find_program_address([b"pool_authority"], self.program_id)
        self.event_authority, _ = Pubkey.find_program_address([b"__event_authority"], self.program_id)
        self.logger = logger.bind(service="dbc_claim_builder")

    async def _require_account(self, connection: ChainConnection, pubkey: Pubkey, label: str):
        account = await connection.get_account_info(pubkey)
        if account is None:
            raise ValidationError(f"{label} account not found: {pubkey}", {"account": str(pubkey)})
        return account

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
        pool_account = await self._require_account(connection, pool, "Pool")
        accounts = decode_pool_accounts(pool, pool_account.data)

        config_account = await self._require_account(connection, accounts.config, "Pool config")
        quote_mint = _pubkey(config_account.data, CONFIG_QUOTE_MINT_OFFSET)

        # Mint owner is the token program (SPL Token or Token-2022)
        base_token_program = (await self._require_account(connection, accounts.base_mint, "Base mint")).owner
        quote_token_program = (await self._require_account(connection, quote_mint, "Quote mint")).owner

        base_receiver = get_associated_token_address(receiver, accounts.base_mint, base_token_program)
        quote_receiver = get_associated_token_address(receiver, quote_mint, quote_token_program)

        claim = Instruction(
            program_id=self.program_id,
            accounts=[
                AccountMeta(pubkey=self.pool_authority, is_signer=False, is_writable=False),
                AccountMeta(pubkey=accounts.config, is_signer=False, is_writable=False),
                AccountMeta(pubkey=pool, is_signer=False, is_writable=True),
                AccountMeta(pubkey=base_receiver, is_signer=False, is_writable=True),
                AccountMeta(pubkey=quote_receiver, is_signer=False, is_writable=True),
                AccountMeta(pubkey=accounts.base_vault, is_signer=False, is_writable=True),
                AccountMeta(pubkey=accounts.quote_vault, is_signer=False, is_writable=True),
                AccountMeta(pubkey=accounts.base_mint, is_signer=False, is_writable=False),
                AccountMeta(pubkey=quote_mint, is_signer=False, is_writable=False),
                AccountMeta(pubkey=fee_claimer, is_signer=True, is_writable=False),
                AccountMeta(pubkey=base_token_program, is_signer=False, is_writable=False),
                AccountMeta(pubkey=quote_token_program, is_signer=False, is_writable=False),
                AccountMeta(pubkey=self.event_authority, is_signer=False, is_writable=False),
                AccountMeta(pubkey=self.program_id, is_signer=False, is_writable=False),
            ],
            data=CLAIM_TRADING_FEE_DISCRIMINATOR + struct.pack("<QQ", max_base_amount, max_quote_amount)
        )

        instructions = [
            create_ata_idempotent(payer, receiver, accounts.base_mint, base_token_program),
            create_ata_idempotent(payer, receiver, quote_mint, quote_token_program),
            claim,
        ]
        if quote_mint == NATIVE_MINT:
            instructions.append(close_token_account(quote_receiver, receiver, receiver))

        self.logger.debug(
            "Built claim instructions",
            pool=str(pool),
            base_mint=str(accounts.base_mint),
            quote_mint=str(quote_mint),
            instruction_count=len(instructions)
        )
        return instructions

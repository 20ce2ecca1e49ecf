"""
Test DBC account decoding and claim instruction building.
"""

import struct

import base58
import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from fee_claimer.core.exceptions import ValidationError
from fee_claimer.services.dbc_program import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    CLAIM_TRADING_FEE_DISCRIMINATOR,
    CONFIG_QUOTE_MINT_OFFSET,
    NATIVE_MINT,
    POOL_BASE_MINT_OFFSET,
    POOL_BASE_VAULT_OFFSET,
    POOL_CONFIG_OFFSET,
    POOL_CREATOR_BASE_FEE_OFFSET,
    POOL_CREATOR_QUOTE_FEE_OFFSET,
    POOL_MIN_SIZE,
    POOL_PARTNER_BASE_FEE_OFFSET,
    POOL_PARTNER_QUOTE_FEE_OFFSET,
    POOL_QUOTE_VAULT_OFFSET,
    POOL_TOTAL_TRADING_BASE_FEE_OFFSET,
    POOL_TOTAL_TRADING_QUOTE_FEE_OFFSET,
    TOKEN_PROGRAM_ID,
    VIRTUAL_POOL_DISCRIMINATOR,
    DbcClaimTransactionBuilder,
    DbcPoolFeeReader,
    anchor_discriminator,
    decode_pool_accounts,
    decode_pool_fees,
    get_associated_token_address,
)
from fee_claimer.services.interfaces import AccountData

from conftest import FakeConnection


PROGRAM_ID = "dbcij3LWUppWqq96dh6gJWwBifmcGfLSB5D4DuSMaqN"
CONFIG = Pubkey.new_unique()


def pool_data(config=CONFIG, base_mint=None, base_vault=None, quote_vault=None, **fees) -> bytes:
    data = bytearray(POOL_MIN_SIZE)
    data[:8] = VIRTUAL_POOL_DISCRIMINATOR
    for offset, key in (
        (POOL_CONFIG_OFFSET, config),
        (POOL_BASE_MINT_OFFSET, base_mint or Pubkey.new_unique()),
        (POOL_BASE_VAULT_OFFSET, base_vault or Pubkey.new_unique()),
        (POOL_QUOTE_VAULT_OFFSET, quote_vault or Pubkey.new_unique()),
    ):
        data[offset:offset + 32] = bytes(key)
    for offset, name in (
        (POOL_PARTNER_BASE_FEE_OFFSET, "partner_base"),
        (POOL_PARTNER_QUOTE_FEE_OFFSET, "partner_quote"),
        (POOL_TOTAL_TRADING_BASE_FEE_OFFSET, "total_base"),
        (POOL_TOTAL_TRADING_QUOTE_FEE_OFFSET, "total_quote"),
        (POOL_CREATOR_BASE_FEE_OFFSET, "creator_base"),
        (POOL_CREATOR_QUOTE_FEE_OFFSET, "creator_quote"),
    ):
        struct.pack_into("<Q", data, offset, fees.get(name, 0))
    return bytes(data)


def account(pubkey, data, owner=None) -> AccountData:
    return AccountData(pubkey=pubkey, owner=owner or Pubkey.from_string(PROGRAM_ID), lamports=1, data=data)


def test_anchor_discriminator_is_eight_bytes():
    assert len(anchor_discriminator("global", "claim_trading_fee")) == 8
    assert anchor_discriminator("global", "claim_trading_fee") == CLAIM_TRADING_FEE_DISCRIMINATOR
    assert VIRTUAL_POOL_DISCRIMINATOR != CLAIM_TRADING_FEE_DISCRIMINATOR


def test_decode_pool_fees():
    pool = Pubkey.new_unique()
    data = pool_data(
        partner_base=11, partner_quote=22, total_base=33, total_quote=44, creator_base=55, creator_quote=66
    )

    fee = decode_pool_fees(pool, data)

    assert fee.pool_address == pool
    assert (fee.partner_base_fee, fee.partner_quote_fee) == (11, 22)
    assert (fee.total_trading_base_fee, fee.total_trading_quote_fee) == (33, 44)
    assert (fee.creator_base_fee, fee.creator_quote_fee) == (55, 66)


def test_decode_rejects_short_or_foreign_accounts():
    pool = Pubkey.new_unique()
    with pytest.raises(ValidationError):
        decode_pool_fees(pool, pool_data()[:100])
    with pytest.raises(ValidationError):
        decode_pool_fees(pool, b"\x00" * 8 + pool_data()[8:])


def test_decode_pool_accounts():
    base_mint = Pubkey.new_unique()
    accounts = decode_pool_accounts(Pubkey.new_unique(), pool_data(base_mint=base_mint))
    assert accounts.config == CONFIG
    assert accounts.base_mint == base_mint


@pytest.mark.asyncio
async def test_reader_filters_by_config_and_skips_bad_accounts():
    good = Pubkey.new_unique()
    connection = FakeConnection(program_accounts=[
        account(good, pool_data(partner_base=7)),
        account(Pubkey.new_unique(), b"garbage"),
    ])
    reader = DbcPoolFeeReader(str(CONFIG), PROGRAM_ID)

    snapshots = await reader(connection)

    assert [s.pool_address for s in snapshots] == [good]
    assert snapshots[0].partner_base_fee == 7

    discriminator_filter, config_filter = connection.last_filters
    assert discriminator_filter.offset == 0
    assert discriminator_filter.bytes == base58.b58encode(VIRTUAL_POOL_DISCRIMINATOR).decode()
    assert config_filter.offset == POOL_CONFIG_OFFSET
    assert config_filter.bytes == str(CONFIG)


def _chain_for_claim(quote_mint):
    pool = Pubkey.new_unique()
    base_mint = Pubkey.new_unique()
    config_data = bytearray(CONFIG_QUOTE_MINT_OFFSET + 32)
    config_data[CONFIG_QUOTE_MINT_OFFSET:] = bytes(quote_mint)

    connection = FakeConnection(accounts={
        pool: account(pool, pool_data(base_mint=base_mint)),
        CONFIG: account(CONFIG, bytes(config_data)),
        base_mint: account(base_mint, b"", owner=TOKEN_PROGRAM_ID),
        quote_mint: account(quote_mint, b"", owner=TOKEN_PROGRAM_ID),
    })
    return pool, base_mint, connection


@pytest.mark.asyncio
async def test_builder_claims_into_owner_token_accounts():
    owner = Keypair().pubkey()
    quote_mint = Pubkey.new_unique()
    pool, base_mint, connection = _chain_for_claim(quote_mint)
    builder = DbcClaimTransactionBuilder(PROGRAM_ID)

    instructions = await builder.build(
        pool=pool,
        fee_claimer=owner,
        payer=owner,
        receiver=owner,
        max_base_amount=1_000_000_000_000,
        max_quote_amount=1_000_000_000_000,
        connection=connection,
    )

    assert len(instructions) == 3
    assert instructions[0].program_id == ASSOCIATED_TOKEN_PROGRAM_ID
    assert instructions[1].program_id == ASSOCIATED_TOKEN_PROGRAM_ID

    claim = instructions[2]
    assert claim.program_id == Pubkey.from_string(PROGRAM_ID)
    assert claim.data == CLAIM_TRADING_FEE_DISCRIMINATOR + struct.pack("<QQ", 10 ** 12, 10 ** 12)
    assert len(claim.accounts) == 14
    assert claim.accounts[2].pubkey == pool
    assert claim.accounts[3].pubkey == get_associated_token_address(owner, base_mint)
    assert claim.accounts[4].pubkey == get_associated_token_address(owner, quote_mint)
    assert claim.accounts[9].pubkey == owner
    assert claim.accounts[9].is_signer


@pytest.mark.asyncio
async def test_builder_unwraps_native_quote():
    owner = Keypair().pubkey()
    pool, _, connection = _chain_for_claim(NATIVE_MINT)
    builder = DbcClaimTransactionBuilder(PROGRAM_ID)

    instructions = await builder.build(pool, owner, owner, owner, 1, 1, connection)

    assert len(instructions) == 4
    close = instructions[-1]
    assert close.program_id == TOKEN_PROGRAM_ID
    assert close.accounts[0].pubkey == get_associated_token_address(owner, NATIVE_MINT)


@pytest.mark.asyncio
async def test_builder_requires_pool_account():
    owner = Keypair().pubkey()
    builder = DbcClaimTransactionBuilder(PROGRAM_ID)

    with pytest.raises(ValidationError):
        await builder.build(Pubkey.new_unique(), owner, owner, owner, 1, 1, FakeConnection())

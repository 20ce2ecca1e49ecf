"""
Test fee snapshot validation and formatting.
"""

import pytest
from solders.pubkey import Pubkey

from fee_claimer.core.exceptions import ValidationError
from fee_claimer.models.fees import FeeSnapshot, format_lamports, short_address

from conftest import make_fee


@pytest.mark.parametrize("value", [True, -1, 1.5, "10"])
def test_rejects_non_integer_amounts(value):
    with pytest.raises(ValidationError) as exc_info:
        make_fee(partner_base=value)
    assert exc_info.value.details["field"] == "partner_base_fee"


def test_partner_total():
    fee = make_fee(partner_base=3, partner_quote=4, creator_base_fee=100)
    assert fee.partner_total == 7
    assert fee.pool == str(fee.pool_address)


def test_zero_amounts_are_valid():
    assert FeeSnapshot(pool_address=Pubkey.new_unique()).partner_total == 0


def test_format_lamports():
    assert format_lamports(1_500_000_000) == "1.500000000"
    assert format_lamports(1) == "0.000000001"


def test_short_address():
    assert short_address("9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin") == "9xQeWvG8..."

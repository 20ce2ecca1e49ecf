"""
Test settings validation and derived values.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from fee_claimer.core.config import DEFAULT_RPC_ENDPOINTS, ClaimConfig, Settings


def test_defaults():
    config = Settings(_env_file=None)
    assert config.rpc_endpoints == DEFAULT_RPC_ENDPOINTS
    assert config.min_claim_usd == Decimal("1")
    assert config.blockhash_commitment == "finalized"
    assert config.confirmation_timeout == 60.0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("FEE_CLAIMER_MIN_CLAIM_USD", "2.5")
    monkeypatch.setenv("FEE_CLAIMER_RPC_ENDPOINTS", '["https://a.rpc", "https://b.rpc"]')

    config = Settings(_env_file=None)

    assert config.min_claim_usd == Decimal("2.5")
    assert config.rpc_endpoints == ["https://a.rpc", "https://b.rpc"]


def test_log_level_is_normalized():
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"


@pytest.mark.parametrize("overrides", [
    {"environment": "moon"},
    {"log_level": "LOUD"},
    {"rpc_endpoints": []},
    {"rpc_endpoints": ["  "]},
    {"claim_max_retries": 0},
])
def test_invalid_settings(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_unit_value_conversion():
    config = Settings(_env_file=None, sol_price_usd=Decimal("150"), lamports_per_sol=1_000_000_000)
    assert ClaimConfig.unit_value_conversion(config) * 1_000_000_000 == Decimal("150")


"""
Claim eligibility gate.
"""

from decimal import Decimal
from typing import Optional, Union

from fee_claimer.core.config import ClaimConfig, Settings, settings
from fee_claimer.models.fees import FeeSnapshot


Number = Union[int, str, Decimal]


def partner_fee_value(fee: FeeSnapshot, unit_value_conversion: Number) -> Decimal:
    """Display-currency value of a pool's partner fees."""
    return Decimal(fee.partner_total) * Decimal(unit_value_conversion)


def is_claimable(fee: FeeSnapshot, minimum_value: Number, unit_value_conversion: Number) -> bool:
    """True when the partner fees are worth at least ``minimum_value``."""
    return partner_fee_value(fee, unit_value_conversion) >= Decimal(minimum_value)


class ThresholdGate:
    """Binds the configured minimum and conversion factor."""

    def __init__(self, minimum_value: Number, unit_value_conversion: Number):
        self.minimum_value = Decimal(minimum_value)
        self.unit_value_conversion = Decimal(unit_value_conversion)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ThresholdGate":
        config = config or settings
        return cls(config.min_claim_usd, ClaimConfig.unit_value_conversion(config))

    def value_of(self, fee: FeeSnapshot) -> Decimal:
        return partner_fee_value(fee, self.unit_value_conversion)

    def is_claimable(self, fee: FeeSnapshot) -> bool:
        return is_claimable(fee, self.minimum_value, self.unit_value_conversion)

    @property
    def minimum_label(self) -> str:
        return format_usd(self.minimum_value, places=None)


def format_usd(value: Decimal, places: Optional[int] = 2) -> str:
    if places is None:
        return f"${value.normalize():f}"
    return f"${value:.{places}f}"

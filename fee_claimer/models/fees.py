"""
Fee snapshot types.
"""

from dataclasses import dataclass, fields
from decimal import Decimal

from solders.pubkey import Pubkey

from fee_claimer.core.exceptions import ValidationError


@dataclass(frozen=True)
class FeeSnapshot:
    """Accrued fees of one pool, in the smallest unit of each asset."""
    pool_address: Pubkey
    partner_base_fee: int = 0
    partner_quote_fee: int = 0
    creator_base_fee: int = 0
    creator_quote_fee: int = 0
    total_trading_base_fee: int = 0
    total_trading_quote_fee: int = 0

    def __post_init__(self):
        for item in fields(self):
            if item.name == "pool_address":
                continue
            value = getattr(self, item.name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError(
                    f"{item.name} must be a non-negative integer",
                    {"pool": str(self.pool_address), "field": item.name, "value": value}
                )

    @property
    def pool(self) -> str:
        return str(self.pool_address)

    @property
    def partner_total(self) -> int:
        return self.partner_base_fee + self.partner_quote_fee


def format_lamports(amount: int, lamports_per_sol: int = 1_000_000_000) -> str:
    """Render a lamport amount as SOL with nine decimal places."""
    return f"{Decimal(amount) / Decimal(lamports_per_sol):.9f}"


def short_address(address, head: int = 8) -> str:
    return f"{str(address)[:head]}..."

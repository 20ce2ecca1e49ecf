"""
Notification types.
"""

from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    """Transient status message shown to the operator."""
    id: int
    message: str
    severity: Severity
    created_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_live(self, now: float) -> bool:
        return now < self.expires_at

"""
Fee claim services.
"""

from .notification_bus import NotificationBus
from .retry_policy import RetryPolicy
from .threshold import ThresholdGate, is_claimable
from .endpoint_fetcher import EndpointFailoverFetcher
from .claim_executor import ClaimExecutor
from .batch_orchestrator import BatchOrchestrator
from .dashboard_state import DashboardState

__all__ = [
    "NotificationBus",
    "RetryPolicy",
    "ThresholdGate",
    "is_claimable",
    "EndpointFailoverFetcher",
    "ClaimExecutor",
    "BatchOrchestrator",
    "DashboardState",
]

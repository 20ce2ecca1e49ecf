"""
Partner Fee Claimer

Discovers accrued partner fees across the pools of a Dynamic Bonding Curve
pool config and claims them:
- Ordered RPC endpoint failover for fee reads
- Minimum-value gate before any claim
- Retried, timeout-bounded claim pipeline
- Sequential batch claiming with auto-expiring notifications
"""

__version__ = "0.1.0"

"""
Custom exception classes for the fee claimer.
Provides structured error handling and failure classification across all modules.
"""

import asyncio
from enum import Enum
from typing import Any, Optional, Dict, Iterator

import httpx


class FeeClaimerException(Exception):
    """Base exception class for the fee claimer."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(FeeClaimerException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class ValidationError(FeeClaimerException):
    """Raised when data validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class NotFoundError(FeeClaimerException):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "NOT_FOUND", details)


class ClaimInProgressError(FeeClaimerException):
    """Raised when a claim is requested while another one is running."""

    def __init__(self, message: str = "A claim is already in progress", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CLAIM_IN_PROGRESS", details)


class RpcFailureKind(str, Enum):
    """Classification of a failed RPC interaction."""
    ACCESS_DENIED = "access_denied"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    GENERIC = "generic"


# RPC level
class EndpointUnavailable(FeeClaimerException):
    """Raised when every configured RPC endpoint failed."""

    def __init__(
        self,
        message: str,
        kind: RpcFailureKind = RpcFailureKind.GENERIC,
        last_error: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.kind = kind
        self.last_error = last_error
        super().__init__(message, "ENDPOINT_UNAVAILABLE", details)


class AccessDenied(FeeClaimerException):
    """Raised when the RPC provider answers 403."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "ACCESS_DENIED", details)


class RateLimited(FeeClaimerException):
    """Raised when the RPC provider answers 429."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "RATE_LIMITED", details)


class NetworkTimeout(FeeClaimerException):
    """Raised on transport failures and request timeouts."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "NETWORK_TIMEOUT", details)


# Claim level
class WalletNotConnected(FeeClaimerException):
    """Raised when no wallet is available to sign."""

    def __init__(self, message: str = "Please connect your wallet first"):
        super().__init__(message, "WALLET_NOT_CONNECTED")


class UserRejected(FeeClaimerException):
    """Raised when the wallet owner declines to sign."""

    def __init__(self, message: str = "User rejected the request", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "USER_REJECTED", details)


class BelowThreshold(FeeClaimerException):
    """Raised when a pool's partner fees are worth less than the minimum."""

    def __init__(self, pool: str, value: Any, minimum: Any):
        super().__init__(
            f"Partner fees for pool {pool} are below the claim minimum",
            "BELOW_THRESHOLD",
            {"pool": pool, "value": str(value), "minimum": str(minimum)}
        )


class ConfirmationTimeout(FeeClaimerException):
    """Raised when confirmation did not settle in time. The transaction may still land."""

    def __init__(self, signature: str, timeout: float):
        super().__init__(
            f"Confirmation timeout after {timeout:g}s for {signature}",
            "CONFIRMATION_TIMEOUT",
            {"signature": signature, "timeout": timeout}
        )


class OnChainFailure(FeeClaimerException):
    """Raised when the on-chain status of a submitted transaction carries an error."""

    def __init__(self, signature: str, error: Any):
        super().__init__(
            f"Transaction failed: {error}",
            "ON_CHAIN_FAILURE",
            {"signature": signature, "error": str(error)}
        )


class UnknownClaimError(FeeClaimerException):
    """Raised for claim failures that fit no other category."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "UNKNOWN_ERROR", details)


_REJECTION_MARKERS = ("user rejected", "rejected the request", "user denied", "declined")


def _error_chain(error: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _kind_from_type(error: BaseException) -> Optional[RpcFailureKind]:
    if isinstance(error, AccessDenied):
        return RpcFailureKind.ACCESS_DENIED
    if isinstance(error, RateLimited):
        return RpcFailureKind.RATE_LIMITED
    if isinstance(error, (NetworkTimeout, ConfirmationTimeout)):
        return RpcFailureKind.NETWORK
    # Claim level failures carry signatures whose text must not be matched
    if isinstance(error, (OnChainFailure, UserRejected, WalletNotConnected, BelowThreshold)):
        return RpcFailureKind.GENERIC
    if isinstance(error, httpx.HTTPStatusError):
        if error.response.status_code == 403:
            return RpcFailureKind.ACCESS_DENIED
        if error.response.status_code == 429:
            return RpcFailureKind.RATE_LIMITED
        return None
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError, asyncio.TimeoutError, ConnectionError)):
        return RpcFailureKind.NETWORK
    return None


def classify_rpc_failure(error: BaseException) -> RpcFailureKind:
    """
    Classify a failure into access-denied, rate-limited, network or generic.

    Exception types along the cause chain win; otherwise the message is
    matched against the usual provider wording.
    """
    chain = list(_error_chain(error))
    for item in chain:
        kind = _kind_from_type(item)
        if kind is not None:
            return kind

    text = " ".join(str(item) for item in chain).lower()
    if "403" in text or "access forbidden" in text:
        return RpcFailureKind.ACCESS_DENIED
    if "429" in text or "rate limit" in text or "too many requests" in text:
        return RpcFailureKind.RATE_LIMITED
    if "network" in text or "timeout" in text or "timed out" in text:
        return RpcFailureKind.NETWORK
    return RpcFailureKind.GENERIC


def is_user_rejection(error: BaseException) -> bool:
    """Best-effort detection of a wallet owner declining to sign."""
    for item in _error_chain(error):
        if isinstance(item, UserRejected):
            return True
        text = str(item).lower()
        if any(marker in text for marker in _REJECTION_MARKERS):
            return True
    return False


def describe_fetch_failure(error: BaseException) -> str:
    """Operator-facing message for a failed fee fetch."""
    kind = error.kind if isinstance(error, EndpointUnavailable) else classify_rpc_failure(error)
    if kind == RpcFailureKind.ACCESS_DENIED:
        return "RPC access denied. Please try again later or use a different RPC endpoint."
    if kind == RpcFailureKind.RATE_LIMITED:
        return "Rate limit exceeded. Please wait a moment and try again."
    if kind == RpcFailureKind.NETWORK:
        return "Network error. Please check your connection and try again."
    cause = error.last_error if isinstance(error, EndpointUnavailable) and error.last_error else error
    return f"Error: {cause}"

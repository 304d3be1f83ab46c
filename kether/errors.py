"""Error taxonomy for transport and session failures.

Errors are classified along two independent axes: the domain they
originate from and how a caller should treat a retry. The core itself
never retries; callers pick a policy from the classification.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum, IntEnum

import httpx


class ErrorDomain(Enum):
    """High-level component where an error originated."""
    AUTHENTICATION = "authentication"
    TRANSPORT = "transport"
    APPLICATION = "application"
    UNKNOWN = "unknown"


class RetryDisposition(Enum):
    """How callers should react to a failure."""
    IMMEDIATE_RETRY = "immediate_retry"
    BACKOFF_RETRY = "backoff_retry"
    REAUTHENTICATE = "reauthenticate"
    FATAL = "fatal"


@dataclass(frozen=True)
class ErrorInventoryEntry:
    """Summary describing how an upstream error should be treated."""
    domain: ErrorDomain
    disposition: RetryDisposition
    description: str


class EResult(IntEnum):
    """Server result codes the classifier knows about."""
    OK = 1
    FAIL = 2
    NO_CONNECTION = 3
    INVALID_PASSWORD = 5
    LOGGED_IN_ELSEWHERE = 6
    ACCESS_DENIED = 15
    TIMEOUT = 16
    ACCOUNT_NOT_FOUND = 18
    SERVICE_UNAVAILABLE = 20
    LIMIT_EXCEEDED = 25
    ACCOUNT_DISABLED = 43
    ACCOUNT_LOCKED_DOWN = 73
    RATE_LIMIT_EXCEEDED = 84
    ACCOUNT_LOGIN_DENIED_NEED_TWO_FACTOR = 85
    ACCOUNT_ACTIVITY_LIMIT_EXCEEDED = 96


# ════════════════════════════════════════════════════════
# Exception hierarchy. Transports raise these; callers
# classify them with classify_error().
# ════════════════════════════════════════════════════════

class KetherError(Exception):
    """Base class for all kether errors."""
    pass

class TransportError(KetherError):
    """Failure reported by the transport layer."""
    pass

class TransportTimeout(TransportError):
    """Request timed out waiting for the server."""
    pass

class ConnectionDropped(TransportError):
    """Connection closed, EOF or socket error."""
    pass

class ProtocolMismatch(TransportError):
    """Unexpected message kind, service method or header."""
    pass

class CryptoError(TransportError):
    """Encryption handshake or channel crypto failed."""
    pass

class MalformedResponse(TransportError):
    """Response body could not be decoded."""
    pass

class OperationAborted(TransportError):
    """Operation aborted by the client."""
    pass

class AccessTokenError(TransportError):
    """Stale or invalid access token."""
    pass

class ConfirmationRequired(TransportError):
    """Server asked for an unsupported confirmation step (e.g. 2FA)."""
    pass

class ApiError(TransportError):
    """Server answered with a non-OK result code."""

    def __init__(self, eresult: int, message: str = ""):
        self.eresult = eresult
        super().__init__(message or f"server returned result {eresult}")

class LoginError(KetherError):
    """Failure while establishing a session."""
    pass

class InvalidCredentials(LoginError):
    pass

class SteamGuardRequired(LoginError):
    pass

class LoginRateLimited(LoginError):
    pass

class AccountUnavailable(LoginError):
    pass


def _entry(domain: ErrorDomain, disposition: RetryDisposition, description: str) -> ErrorInventoryEntry:
    return ErrorInventoryEntry(domain, disposition, description)


def classify_api_result(eresult: int) -> ErrorInventoryEntry:
    """Classify a server result code."""
    if eresult == EResult.TIMEOUT:
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.IMMEDIATE_RETRY, "server backend timeout")
    if eresult == EResult.OK:
        return _entry(ErrorDomain.UNKNOWN, RetryDisposition.FATAL, "unexpected OK error code")
    if eresult in (
        EResult.RATE_LIMIT_EXCEEDED,
        EResult.ACCOUNT_ACTIVITY_LIMIT_EXCEEDED,
        EResult.LIMIT_EXCEEDED,
    ):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.BACKOFF_RETRY, "rate limited by server")
    if eresult in (
        EResult.INVALID_PASSWORD,
        EResult.ACCOUNT_DISABLED,
        EResult.ACCOUNT_LOCKED_DOWN,
        EResult.ACCOUNT_NOT_FOUND,
    ):
        return _entry(ErrorDomain.AUTHENTICATION, RetryDisposition.FATAL, "invalid credentials")
    if eresult == EResult.ACCOUNT_LOGIN_DENIED_NEED_TWO_FACTOR:
        return _entry(ErrorDomain.AUTHENTICATION, RetryDisposition.REAUTHENTICATE, "two-factor authentication required")
    return _entry(ErrorDomain.UNKNOWN, RetryDisposition.BACKOFF_RETRY, "unmapped server error code")


def classify_error(e: BaseException) -> ErrorInventoryEntry:
    """Classify any exception into a domain and retry disposition.

    The order matters: specific subclasses are checked before their
    parents, and unknown exceptions fall through to a backoff retry.
    """
    # 1-4: Session establishment
    if isinstance(e, InvalidCredentials):
        return _entry(ErrorDomain.AUTHENTICATION, RetryDisposition.FATAL, "invalid credentials")
    if isinstance(e, SteamGuardRequired):
        return _entry(ErrorDomain.AUTHENTICATION, RetryDisposition.REAUTHENTICATE, "additional confirmation required")
    if isinstance(e, LoginRateLimited):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.BACKOFF_RETRY, "rate limited by server")
    if isinstance(e, AccountUnavailable):
        return _entry(ErrorDomain.AUTHENTICATION, RetryDisposition.FATAL, "account unavailable")

    # 5-6: Credentials rejected mid-session
    if isinstance(e, AccessTokenError):
        return _entry(ErrorDomain.AUTHENTICATION, RetryDisposition.REAUTHENTICATE, "stale or invalid access token")
    if isinstance(e, ConfirmationRequired):
        return _entry(ErrorDomain.AUTHENTICATION, RetryDisposition.REAUTHENTICATE, "two-factor confirmation required")

    # 7-12: Transport failures
    if isinstance(e, ApiError):
        return classify_api_result(e.eresult)
    if isinstance(e, TransportTimeout):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.IMMEDIATE_RETRY, "request timed out")
    if isinstance(e, ConnectionDropped):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.BACKOFF_RETRY, "transport dropped connection")
    if isinstance(e, ProtocolMismatch):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.FATAL, "protocol mismatch")
    if isinstance(e, CryptoError):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.BACKOFF_RETRY, "crypto handshake failure")
    if isinstance(e, MalformedResponse):
        return _entry(ErrorDomain.APPLICATION, RetryDisposition.FATAL, "malformed response payload")
    if isinstance(e, OperationAborted):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.FATAL, "operation aborted by client")

    # 13: httpx HTTP status errors (web API transports)
    if isinstance(e, httpx.HTTPStatusError):
        code = e.response.status_code
        if code == 429:
            return _entry(ErrorDomain.TRANSPORT, RetryDisposition.BACKOFF_RETRY, "rate limited by server")
        if code in (401, 403):
            return _entry(ErrorDomain.AUTHENTICATION, RetryDisposition.REAUTHENTICATE, "stale or invalid access token")
        if 500 <= code < 600:
            return _entry(ErrorDomain.TRANSPORT, RetryDisposition.BACKOFF_RETRY, f"server error (HTTP {code})")
        return _entry(ErrorDomain.APPLICATION, RetryDisposition.FATAL, f"request rejected (HTTP {code})")

    # 14-15: Network / timeout errors
    if isinstance(e, httpx.TimeoutException):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.IMMEDIATE_RETRY, "request timed out")
    if isinstance(e, (httpx.ConnectError, httpx.RemoteProtocolError, httpx.ReadError)):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.BACKOFF_RETRY, "transport dropped connection")

    # 16: asyncio timeout
    if isinstance(e, asyncio.TimeoutError):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.IMMEDIATE_RETRY, "request timed out")

    # 17: Generic transport / login failures
    if isinstance(e, TransportError):
        return _entry(ErrorDomain.TRANSPORT, RetryDisposition.BACKOFF_RETRY, "unclassified network error")
    if isinstance(e, LoginError):
        return _entry(ErrorDomain.UNKNOWN, RetryDisposition.BACKOFF_RETRY, "unclassified login error")

    # 18: Fallback
    return _entry(ErrorDomain.UNKNOWN, RetryDisposition.BACKOFF_RETRY, f"unclassified error ({type(e).__name__})")


def describe_error(e: BaseException) -> str:
    """Short user-facing message for an exception."""
    entry = classify_error(e)
    if entry.disposition is RetryDisposition.REAUTHENTICATE:
        return f"Authentication required: {entry.description}. Please log in again."
    if entry.disposition is RetryDisposition.FATAL:
        return f"Request failed: {entry.description}."
    if entry.disposition is RetryDisposition.IMMEDIATE_RETRY:
        return f"Temporary problem: {entry.description}. Please try again."
    return f"Temporary problem: {entry.description}. Please try again later."

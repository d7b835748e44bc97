"""Error hierarchy for blocsync.

Every public error class inherits from :class:`BlocSyncError`.  Each
carries a machine-readable ``code`` (from :class:`ErrorCode`), a
human-readable ``message``, an optional structured ``context`` dict, and an
optional ``cause`` (chained exception).

Error codes are a :class:`str` enum so that they serialise naturally to
JSON and can be matched with simple ``==`` comparisons.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error blocsync can raise."""

    INDEX_ORDER = "INDEX_ORDER"
    SNAPSHOT_ERROR = "SNAPSHOT_ERROR"
    BRIDGE_MISS = "BRIDGE_MISS"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    NOT_FOUND = "NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class BlocSyncError(Exception):
    """Base exception for all blocsync errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Core errors
# ---------------------------------------------------------------------------

class BlocSyncIndexError(BlocSyncError):
    """A position key could not be generated.

    Raised when the neighbouring keys are inverted or equal, or when a key
    is not a valid order key.  This is a programming error: silently
    producing a key would corrupt sibling order.

    Context keys: ``lower``, ``upper``, ``key``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INDEX_ORDER,
            message=message,
            context=context,
            cause=cause,
        )


class BlocSyncSnapshotError(BlocSyncError):
    """A serialized tree could not be turned into a snapshot.

    Context keys: ``node_type``, ``key``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.SNAPSHOT_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class BlocSyncBridgeError(BlocSyncError):
    """A node has no durable identity where one was required.

    Context keys: ``key``, ``operation``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.BRIDGE_MISS,
            message=message,
            context=context,
            cause=cause,
        )


class BlocSyncPersistenceError(BlocSyncError):
    """The persistence adapter reported a failed write.

    Context keys: ``operation``, ``bloc_id``, ``status``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.PERSISTENCE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------

class BlocSyncValidationError(BlocSyncError):
    """The store rejected the request payload (400 and other plain 4xx).

    Context keys: ``status_code``, ``body``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class BlocSyncAuthError(BlocSyncError):
    """The store returned 401 or 403.

    Context keys: ``status_code``, ``operation``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.AUTH_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class BlocSyncNotFoundError(BlocSyncError):
    """The store returned 404.

    Context keys: ``status_code``, ``path``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message,
            context=context,
            cause=cause,
        )


class BlocSyncNetworkError(BlocSyncError):
    """A transport-level failure (timeout, connection reset, DNS).

    Context keys: ``url``, ``attempt``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.NETWORK_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class BlocSyncRetryExhaustedError(BlocSyncError):
    """All retry attempts for a transient failure were used up.

    Context keys: ``attempts``, ``last_status_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RETRY_EXHAUSTED,
            message=message,
            context=context,
            cause=cause,
        )

"""
Custom exceptions for conversation insights.

All store implementations and insight components raise these exceptions
so callers can tell validation problems, missing sessions and transient
store failures apart.
"""


class InsightsError(Exception):
    """Base exception for all conversation insights errors."""

    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SessionNotFoundError(InsightsError):
    """Raised when a session does not exist."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}", {"session_id": session_id})
        self.session_id = session_id


class InvalidFilterError(InsightsError):
    """Raised when a search filter fails validation.

    Always raised before any store access.
    """

    def __init__(self, field: str, reason: str, value: object | None = None):
        details: dict = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = str(value)
        super().__init__(f"Invalid filter {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class StoreUnavailableError(InsightsError):
    """Raised when a store read fails for infrastructure reasons.

    Callers may retry the same request.
    """

    retryable = True

    def __init__(
        self,
        operation: str,
        session_id: str | None = None,
        cause: Exception | None = None,
    ):
        details: dict = {"operation": operation}
        if session_id:
            details["session_id"] = session_id
        if cause:
            details["cause"] = str(cause)
        message = f"Store unavailable during {operation}"
        if session_id:
            message += f" (session {session_id})"
        super().__init__(message, details)
        self.operation = operation
        self.session_id = session_id
        self.cause = cause


class StoreConnectionError(InsightsError):
    """Raised when a store cannot be opened or initialized.

    Note: Named StoreConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, target: str, cause: Exception | None = None):
        details = {"target": target}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Connection failed to {target}", details)
        self.target = target
        self.cause = cause

"""Exception hierarchy for session handling.

Every error raised by a session store derives from ``SessionError`` so callers
can treat session handling failures as a single class of fatal errors for the
current request.
"""

from typing import Optional


class SessionError(Exception):
    """Base class for all session handling errors"""
    pass


class StoreConnectionError(SessionError):
    """Raised when a backend is unreachable or rejects the credentials at open()"""

    def __init__(self, message: str, backend: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.backend = backend


class StorageError(SessionError):
    """
    Raised when a backend operation fails during read/write/destroy/gc.

    Carries the backend's native error message unchanged in ``message``.
    """

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation} failed: {self.message}"
        return self.message


class SessionStateError(SessionError):
    """Raised when an invalidated or closed session is used"""
    pass


class ConfigurationError(SessionError):
    """Raised for unknown store backends or connection profiles"""
    pass


class ParameterFilterError(ValueError):
    """Raised when a request parameter cannot be converted by the requested filter"""

    def __init__(self, name: str, value: object, reason: str):
        super().__init__(f"Error when filtering parameter '{name}' with value {value!r}: {reason}")
        self.name = name
        self.value = value

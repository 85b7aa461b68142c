"""Exception taxonomy shared by storage, memory, and auth layers.

Propagation model:
    - Transport errors are raised once per attempt by `storage.transport`.
    - Read-path operations in `storage.hub` convert exhausted retries into `None`
      results; `RetryExhausted` never leaves `HubClient`.
    - Upload failures reach callers only through a task's completion future.
    - `MalformedRecord` is raised while parsing hub records and is caught and
      logged by registry preload.
"""

from __future__ import annotations


class MembaseError(Exception):
    """Base class for all library errors."""


class TransportError(MembaseError):
    """A single HTTP attempt failed."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class HubTimeoutError(TransportError, TimeoutError):
    """The request did not complete within the configured timeout."""


class ClientError(TransportError):
    """The hub rejected the request with a 4xx status. Never retried."""

    def __init__(self, status_code: int, url: str | None = None) -> None:
        super().__init__(f"HTTP error! status: {status_code}", url)
        self.status_code = status_code


class ServerError(TransportError):
    """The hub answered with a non-success status outside the 4xx range."""

    def __init__(self, status_code: int, url: str | None = None) -> None:
        super().__init__(f"HTTP error! status: {status_code}", url)
        self.status_code = status_code


class RetryExhausted(MembaseError):
    """Every attempt of a read operation failed."""

    def __init__(self, operation: str, attempts: int, last_error: Exception | None = None) -> None:
        super().__init__(f"{operation} failed after {attempts} attempts")
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


class TypeMismatch(MembaseError, TypeError):
    """A value of the wrong type was added to a memory."""


class MalformedRecord(MembaseError, ValueError):
    """A hub record could not be turned into a `Message`."""


class MemoryLoadError(MembaseError, ValueError):
    """`load()` input was neither a readable file nor inline serialized content."""


class AuthError(MembaseError, PermissionError):
    """Authorization or signature verification failed."""

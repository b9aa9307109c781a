"""
Memory Box Uploader - Error Types

Remote failures are split by what the caller may safely conclude from them:

- ``NotFound``: the destination does not exist yet (the create path).
- ``Conflict``: the stored revision moved under us; never retried here.
- ``TransientRemoteError``: auth, rate limit or network trouble.  The
  destination state is unknown and must not be treated as "absent".

``ValidationError`` covers malformed form fields and rejected uploads.
"""

from __future__ import annotations


class MemoryBoxError(Exception):
    """Base class for all errors raised by the uploader."""


class ValidationError(MemoryBoxError):
    """A submitted field or file could not be accepted."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class RemoteStoreError(MemoryBoxError):
    """A read or write against the remote content store failed."""

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        phase: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.phase = phase
        self.status = status

    def describe(self) -> str:
        """Human-readable summary naming the failed destination and phase."""
        parts = [str(self)]
        if self.path:
            where = f"{self.phase} {self.path}" if self.phase else self.path
            parts.append(f"({where})")
        return " ".join(parts)


class NotFound(RemoteStoreError):
    """The destination does not exist on the configured branch."""


class Conflict(RemoteStoreError):
    """The destination changed since its revision was resolved."""


class TransientRemoteError(RemoteStoreError):
    """The remote state could not be determined or changed."""


class AuthError(TransientRemoteError):
    """The token was rejected or lacks permission for the repository."""


class RateLimited(TransientRemoteError):
    """The API rate limit is exhausted."""

    def __init__(self, message: str, *, retry_after: int | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class NetworkError(TransientRemoteError):
    """Connection failure, timeout or a 5xx answer from the API."""


class UploadTooLarge(ValidationError):
    """An uploaded file exceeds the configured size limit."""

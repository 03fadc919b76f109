from __future__ import annotations

from typing import Optional


class StorageError(RuntimeError):
    """Base class for every failure raised by a storage provider."""


class StorageBackendError(StorageError):
    """
    The object store rejected or failed a call.

    operation: provider method name (e.g. "head_object")
    key:       object key involved, if any
    code:      backend error code when known (AccessDenied, NoSuchKey, ...)
    """

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        code: Optional[str] = None,
        message: str = "",
    ):
        self.operation = operation
        self.key = key
        self.code = code
        detail = message or code or "storage backend error"
        super().__init__(f"{operation} failed (key={key!r}, code={code}): {detail}")


class ObjectNotFoundError(StorageBackendError):
    """The backend answered 404 / NoSuchKey for the requested key."""

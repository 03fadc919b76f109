from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, List, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class ObjectVersion:
    """One entry of a version listing: a stored version or a delete marker."""
    key: str
    version_id: str
    last_modified: Optional[datetime]
    size: int
    is_latest: bool
    is_delete_marker: bool = False


@dataclass(frozen=True)
class VersionListing:
    versions: List[ObjectVersion] = field(default_factory=list)
    delete_markers: List[ObjectVersion] = field(default_factory=list)

    def merged(self) -> List[ObjectVersion]:
        """Versions first, then delete markers, each in backend order."""
        return [*self.versions, *self.delete_markers]


@dataclass(frozen=True)
class ObjectHead:
    """
    Result of a metadata probe.

    storage_class: None when the backend omits it (S3 does for STANDARD)
    restore:       raw restore header, e.g.
                   'ongoing-request="false", expiry-date="Fri, 21 Dec 2012 00:00:00 GMT"'
    """
    key: str
    storage_class: Optional[str] = None
    restore: Optional[str] = None


@runtime_checkable
class VersionedStorageProvider(Protocol):
    """
    Object storage abstraction over a versioned bucket.

    Every failure surfaces as providers.errors.StorageError (or a subclass).
    """

    name: str
    bucket: str

    def put_object(self, key: str, body: BinaryIO) -> None: ...

    def list_versions(self, prefix: Optional[str] = None) -> VersionListing: ...

    def head_object(self, key: str) -> ObjectHead: ...

    def restore_object(self, key: str, days: int, tier: str) -> None: ...

    def delete_object(self, key: str, version_id: Optional[str] = None) -> None: ...

    def presign_get_url(self, key: str, expires_in: int) -> str: ...

    def ping(self) -> None: ...

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import BinaryIO, Dict, List, Optional
from urllib.parse import quote

from providers.errors import ObjectNotFoundError, StorageBackendError
from providers.storage import ObjectHead, ObjectVersion, VersionListing

_ARCHIVE_CLASSES = ("GLACIER", "DEEP_ARCHIVE")


@dataclass
class _Entry:
    version_id: str
    last_modified: datetime
    data: bytes
    delete_marker: bool = False
    storage_class: str = "STANDARD"
    restore: Optional[str] = None


class InMemoryStorageProvider:
    """
    Versioned bucket held in process memory.

    Local dev / test stand-in for S3 with versioning enabled:
    - every put adds a version, a delete without version id adds a marker
    - the newest entry of a key is the latest one
    - restore follows the S3 header lifecycle (see transition/complete_restore)

    Nothing survives a restart.
    """

    name = "memory"

    def __init__(self, bucket: str = "local"):
        self.bucket = bucket
        self._objects: Dict[str, List[_Entry]] = {}
        self._lock = threading.Lock()

    def _latest(self, key: str, operation: str) -> _Entry:
        entries = self._objects.get(key) or []
        if not entries or entries[-1].delete_marker:
            raise ObjectNotFoundError(operation, key=key, code="404", message="Not Found")
        return entries[-1]

    def put_object(self, key: str, body: BinaryIO) -> None:
        data = body.read() or b""
        entry = _Entry(
            version_id=uuid.uuid4().hex,
            last_modified=datetime.now(timezone.utc),
            data=bytes(data),
        )
        with self._lock:
            self._objects.setdefault(key, []).append(entry)

    def list_versions(self, prefix: Optional[str] = None) -> VersionListing:
        versions: List[ObjectVersion] = []
        markers: List[ObjectVersion] = []
        with self._lock:
            for key in sorted(self._objects):
                if prefix and not key.startswith(prefix):
                    continue
                entries = self._objects[key]
                # newest first, like S3
                for idx in range(len(entries) - 1, -1, -1):
                    e = entries[idx]
                    item = ObjectVersion(
                        key=key,
                        version_id=e.version_id,
                        last_modified=e.last_modified,
                        size=0 if e.delete_marker else len(e.data),
                        is_latest=idx == len(entries) - 1,
                        is_delete_marker=e.delete_marker,
                    )
                    (markers if e.delete_marker else versions).append(item)
        return VersionListing(versions=versions, delete_markers=markers)

    def head_object(self, key: str) -> ObjectHead:
        with self._lock:
            e = self._latest(key, "head_object")
            return ObjectHead(
                key=key,
                storage_class=None if e.storage_class == "STANDARD" else e.storage_class,
                restore=e.restore,
            )

    def restore_object(self, key: str, days: int, tier: str) -> None:
        with self._lock:
            e = self._latest(key, "restore_object")
            if e.storage_class not in _ARCHIVE_CLASSES:
                raise StorageBackendError(
                    "restore_object",
                    key=key,
                    code="InvalidObjectState",
                    message="The operation is not valid for the object's storage class",
                )
            if e.restore and 'ongoing-request="true"' in e.restore:
                raise StorageBackendError(
                    "restore_object",
                    key=key,
                    code="RestoreAlreadyInProgress",
                    message="Object restore is already in progress",
                )
            e.restore = 'ongoing-request="true"'

    def delete_object(self, key: str, version_id: Optional[str] = None) -> None:
        with self._lock:
            if not version_id:
                marker = _Entry(
                    version_id=uuid.uuid4().hex,
                    last_modified=datetime.now(timezone.utc),
                    data=b"",
                    delete_marker=True,
                )
                self._objects.setdefault(key, []).append(marker)
                return

            entries = self._objects.get(key) or []
            remaining = [e for e in entries if e.version_id != version_id]
            if remaining:
                self._objects[key] = remaining
            else:
                self._objects.pop(key, None)

    def presign_get_url(self, key: str, expires_in: int) -> str:
        return f"memory://{self.bucket}/{quote(key)}?X-Amz-Expires={int(expires_in)}"

    def ping(self) -> None:
        return None

    # -----------------------------
    # Lifecycle helpers (no S3 API equivalent; S3 does these on its own)
    # -----------------------------

    def read_object(self, key: str, version_id: Optional[str] = None) -> bytes:
        with self._lock:
            if version_id is None:
                return self._latest(key, "read_object").data
            for e in self._objects.get(key) or []:
                if e.version_id == version_id and not e.delete_marker:
                    return e.data
        raise ObjectNotFoundError("read_object", key=key, code="NoSuchVersion")

    def transition(self, key: str, storage_class: str) -> None:
        """Move the current version to another storage class (lifecycle rule)."""
        with self._lock:
            e = self._latest(key, "transition")
            e.storage_class = storage_class
            e.restore = None

    def complete_restore(self, key: str, expiry: datetime) -> None:
        """Mark a pending restore as finished, readable until `expiry`."""
        with self._lock:
            e = self._latest(key, "complete_restore")
            if expiry.tzinfo is None:
                expiry = expiry.replace(tzinfo=timezone.utc)
            expiry = expiry.astimezone(timezone.utc)
            e.restore = f'ongoing-request="false", expiry-date="{format_datetime(expiry, usegmt=True)}"'

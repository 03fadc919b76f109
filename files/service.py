from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, List, Optional, Tuple

from files.models import FileListResponse, PresignedUrlResponse, RestoreStatus, VersionRecord
from providers.errors import StorageBackendError, StorageError
from providers.storage import ObjectVersion, VersionedStorageProvider

log = logging.getLogger(__name__)

# Fixed per-request parameters (not configurable by callers)
PRESIGN_TTL_SECONDS = 300
RESTORE_DAYS = 1
RESTORE_TIER = "Standard"

_RESTORE_DONE = 'ongoing-request="false"'
_RESTORE_ONGOING = 'ongoing-request="true"'
_EXPIRY_RE = re.compile(r'expiry-date="([^"]*)"')


class OutcomeKind(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    BACKEND_ERROR = "backend_error"


@dataclass(frozen=True)
class Outcome:
    """
    Result of one gateway operation.

    message: plain-text body for confirmations and errors
    payload: JSON-able model for listing/status/url operations
    """
    kind: OutcomeKind
    message: str = ""
    payload: Optional[Any] = None
    deleted_version_ids: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.OK


def _ok(message: str = "", payload: Any = None, deleted: Optional[List[str]] = None) -> Outcome:
    return Outcome(OutcomeKind.OK, message=message, payload=payload, deleted_version_ids=deleted or [])


def _failed(message: str, deleted: Optional[List[str]] = None) -> Outcome:
    return Outcome(OutcomeKind.BACKEND_ERROR, message=message, deleted_version_ids=deleted or [])


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def restore_flags(restore: Optional[str]) -> Tuple[bool, bool]:
    """
    (completed, in_progress) read from a raw restore header.

    Each flag is a plain substring check; neither implies the other.
    """
    raw = restore or ""
    return _RESTORE_DONE in raw, _RESTORE_ONGOING in raw


def restore_expiry(restore: Optional[str]) -> Optional[str]:
    m = _EXPIRY_RE.search(restore or "")
    return m.group(1) if m else None


def to_record(v: ObjectVersion) -> VersionRecord:
    return VersionRecord(
        nom=v.key,
        versionId=v.version_id,
        last_modified=v.last_modified,
        taille=0 if v.is_delete_marker else v.size,
        isLatest=v.is_latest,
        deleteMarker=v.is_delete_marker,
    )


# ---------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------

def upload_file(storage: VersionedStorageProvider, key: str, body: BinaryIO) -> Outcome:
    try:
        storage.put_object(key, body)
    except StorageError:
        log.exception("upload failed key=%s", key)
        return _failed("erreur lors de l’upload")

    log.info("uploaded key=%s", key)
    return _ok("fichier uploadé avec succès")


def list_files(storage: VersionedStorageProvider) -> Outcome:
    try:
        listing = storage.list_versions()
    except StorageError:
        log.exception("version listing failed")
        return _failed("erreur lors de la récupération des fichiers")

    records = [to_record(v) for v in listing.merged()]
    return _ok(payload=FileListResponse(fichiers=records))


def restore_file(storage: VersionedStorageProvider, key: str) -> Outcome:
    error_message = "erreur lors de la restauration"
    try:
        head = storage.head_object(key)
    except StorageError:
        log.exception("restore probe failed key=%s", key)
        return _failed(error_message)

    completed, in_progress = restore_flags(head.restore)
    if completed:
        return _ok("le fichier est déjà restauré et accessible")
    if in_progress:
        return _ok("restauration déjà en cours")

    try:
        storage.restore_object(key, days=RESTORE_DAYS, tier=RESTORE_TIER)
    except StorageBackendError as exc:
        # Lost the race against another restore request issued after the probe
        if exc.code == "RestoreAlreadyInProgress":
            return _ok("restauration déjà en cours")
        log.exception("restore request failed key=%s", key)
        return _failed(error_message)
    except StorageError:
        log.exception("restore request failed key=%s", key)
        return _failed(error_message)

    log.info("restore requested key=%s days=%s tier=%s", key, RESTORE_DAYS, RESTORE_TIER)
    return _ok("restauration lancée (disponible sous quelques minutes)")


def restore_status(storage: VersionedStorageProvider, key: str) -> Outcome:
    try:
        head = storage.head_object(key)
    except StorageError:
        log.exception("status probe failed key=%s", key)
        return _failed("erreur lors de la récupération du statut")

    completed, in_progress = restore_flags(head.restore)
    status = RestoreStatus(
        fichier=key,
        classeStockage=head.storage_class or "STANDARD",
        restorationActive=completed,
        restaurationEnCours=in_progress,
        restoreHeader=head.restore,
        expirationRestauration=restore_expiry(head.restore),
    )
    return _ok(payload=status)


def soft_delete(storage: VersionedStorageProvider, key: str) -> Outcome:
    try:
        storage.delete_object(key)
    except StorageError:
        log.exception("soft delete failed key=%s", key)
        return _failed("erreur lors de la suppression")

    log.info("delete marker added key=%s", key)
    return _ok("fichier supprimé (delete marker ajouté)")


def presigned_url(storage: VersionedStorageProvider, key: str) -> Outcome:
    try:
        url = storage.presign_get_url(key, expires_in=PRESIGN_TTL_SECONDS)
    except StorageError:
        log.exception("presign failed key=%s", key)
        return _failed("erreur lors de la génération de l’URL")

    return _ok(payload=PresignedUrlResponse(url=url))


def delete_current_version(storage: VersionedStorageProvider, key: str) -> Outcome:
    error_message = "erreur lors de la suppression"
    try:
        listing = storage.list_versions(prefix=key)
    except StorageError:
        log.exception("version listing failed key=%s", key)
        return _failed(error_message)

    current = next((v for v in listing.versions if v.key == key and v.is_latest), None)
    if current is None:
        return Outcome(OutcomeKind.NOT_FOUND, message="aucune version actuelle trouvée")

    try:
        storage.delete_object(key, version_id=current.version_id)
    except StorageError:
        log.exception("permanent delete failed key=%s version=%s", key, current.version_id)
        return _failed(error_message)

    log.info("deleted current version key=%s version=%s", key, current.version_id)
    return _ok(
        f"la version actuelle {current.version_id} du fichier {key} a été supprimée définitivement",
        deleted=[current.version_id],
    )


def delete_all_versions(storage: VersionedStorageProvider, key: str) -> Outcome:
    """
    Permanently remove every version and delete marker of `key`.

    Deletions run one at a time in listing order and stop at the first
    failure; the failed outcome carries the version ids already removed.
    """
    error_message = "erreur lors de la suppression complète"
    try:
        listing = storage.list_versions(prefix=key)
    except StorageError:
        log.exception("version listing failed key=%s", key)
        return _failed(error_message)

    targets = [v for v in listing.merged() if v.key == key]
    if not targets:
        return Outcome(OutcomeKind.NOT_FOUND, message="aucune version trouvée")

    deleted: List[str] = []
    for v in targets:
        try:
            storage.delete_object(key, version_id=v.version_id)
        except StorageError:
            log.exception(
                "bulk delete aborted key=%s version=%s deleted=%s/%s",
                key, v.version_id, len(deleted), len(targets),
            )
            return _failed(
                f"{error_message} ({len(deleted)} version(s) supprimée(s) avant l’échec)",
                deleted=deleted,
            )
        deleted.append(v.version_id)

    log.info("deleted all versions key=%s count=%s", key, len(deleted))
    return _ok(
        f"toutes les versions du fichier {key} ont été supprimées définitivement",
        deleted=deleted,
    )

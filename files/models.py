from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class VersionRecord(BaseModel):
    """
    One row of GET /fichiers.

    Field names are the wire names the existing clients read; the only
    non-identifier name (dernièreModif) is carried as an alias.
    """
    model_config = ConfigDict(populate_by_name=True)

    nom: str
    versionId: str
    last_modified: Optional[datetime] = Field(default=None, alias="dernièreModif")
    taille: int = 0
    isLatest: bool = False
    deleteMarker: bool = False

    @field_serializer("last_modified")
    def serialize_last_modified(self, value: Optional[datetime]) -> Optional[str]:
        # 2024-01-01T00:00:00.000Z, the format the clients already parse
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class FileListResponse(BaseModel):
    fichiers: List[VersionRecord] = []


class RestoreStatus(BaseModel):
    """
    restorationActive / restaurationEnCours are derived independently; both
    false means no usable marker in restoreHeader (never restored, or an
    unrecognised header format).
    """
    fichier: str
    classeStockage: str = "STANDARD"
    restorationActive: bool = False
    restaurationEnCours: bool = False
    restoreHeader: Optional[str] = None
    expirationRestauration: Optional[str] = None


class PresignedUrlResponse(BaseModel):
    url: str

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from core.settings import Settings, get_settings
from providers.impl.storage_memory import InMemoryStorageProvider
from providers.impl.storage_s3 import S3StorageProvider
from providers.storage import VersionedStorageProvider

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Providers:
    """
    Central container for runtime dependencies.

    Built once at startup and attached to app.state.providers; read-only after.
    """
    settings: Settings
    storage: VersionedStorageProvider


def build_storage(settings: Settings) -> VersionedStorageProvider:
    s = settings.storage
    if s.provider == "memory":
        return InMemoryStorageProvider(bucket=s.bucket)
    return S3StorageProvider.from_settings(s)


def build_providers(settings: Optional[Settings] = None) -> Providers:
    settings = settings or get_settings()
    storage = build_storage(settings)
    log.info("Storage provider: %s (bucket=%s)", storage.name, storage.bucket)
    return Providers(settings=settings, storage=storage)

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else str(v)


def _env_int(name: str, default: int) -> int:
    raw = _env(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _split_csv(value: str) -> List[str]:
    return [x.strip() for x in (value or "").split(",") if x.strip()]


# ---------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class StorageSettings:
    """
    Storage provider configuration.

    provider:
      - "s3"     -> S3StorageProvider (AWS or any S3-compatible endpoint)
      - "memory" -> InMemoryStorageProvider (local dev / tests)
    """
    provider: str

    bucket: str = "node-app-789915097184"
    region: str = "eu-west-3"
    endpoint_url: str = ""

    # Server-side encryption applied on upload ("" disables)
    sse: str = "aws:kms"
    sse_kms_key_id: str = ""

    # None -> botocore defaults
    max_attempts: Optional[int] = None


@dataclass(frozen=True)
class AppSettings:
    host: str
    port: int
    log_level: str
    cors_origins: List[str]


@dataclass(frozen=True)
class Settings:
    app: AppSettings
    storage: StorageSettings


# ---------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------

def _normalize_storage_provider(raw: str) -> str:
    v = (raw or "").strip().lower()
    if v in ("memory", "inmemory", "in-memory", "local"):
        return "memory"
    return "s3"


def _load_storage_settings() -> StorageSettings:
    """
    Storage precedence (same rule as every other deployment):
      1) STORAGE_MODE
      2) STORAGE_PROVIDER (legacy override)
      3) default s3
    """
    raw_mode = (_env("STORAGE_MODE", "") or "").strip()
    raw_provider = (_env("STORAGE_PROVIDER", "") or "").strip()
    provider = _normalize_storage_provider(raw_mode or raw_provider or "s3")

    bucket = (_env("S3_BUCKET", "") or "node-app-789915097184").strip()
    region = (_env("AWS_REGION", "") or _env("AWS_DEFAULT_REGION", "") or "eu-west-3").strip()
    endpoint_url = (_env("S3_ENDPOINT_URL", "") or "").strip().rstrip("/")

    # An explicitly empty S3_SSE turns encryption headers off (MinIO without KMS)
    sse = _env("S3_SSE", "aws:kms").strip()
    sse_kms_key_id = (_env("S3_SSE_KMS_KEY_ID", "") or "").strip()

    max_attempts: Optional[int] = _env_int("S3_MAX_ATTEMPTS", 0)
    if not max_attempts or max_attempts < 1:
        max_attempts = None

    return StorageSettings(
        provider=provider,
        bucket=bucket,
        region=region,
        endpoint_url=endpoint_url,
        sse=sse,
        sse_kms_key_id=sse_kms_key_id,
        max_attempts=max_attempts,
    )


def _load_app_settings() -> AppSettings:
    host = (_env("APP_HOST", "") or "0.0.0.0").strip()
    port = _env_int("APP_PORT", 0) or _env_int("PORT", 80)
    if port <= 0:
        port = 80

    log_level = (_env("LOG_LEVEL", "") or "INFO").strip().upper()
    cors_origins = [x.rstrip("/") for x in _split_csv(_env("CORS_ORIGINS", ""))]

    return AppSettings(host=host, port=int(port), log_level=log_level, cors_origins=cors_origins)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        app=_load_app_settings(),
        storage=_load_storage_settings(),
    )

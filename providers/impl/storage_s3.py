from __future__ import annotations

import logging
from typing import Any, BinaryIO, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from core.settings import StorageSettings
from providers.errors import ObjectNotFoundError, StorageBackendError
from providers.storage import ObjectHead, ObjectVersion, VersionListing

log = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound", "NoSuchVersion")


def _wrap(exc: Exception, operation: str, key: Optional[str]) -> StorageBackendError:
    """Translate botocore exceptions into provider errors."""
    if isinstance(exc, ClientError):
        err = exc.response.get("Error") or {}
        code = str(err.get("Code") or "")
        message = str(err.get("Message") or "")
        if code in _NOT_FOUND_CODES:
            return ObjectNotFoundError(operation, key=key, code=code, message=message)
        return StorageBackendError(operation, key=key, code=code or None, message=message)
    return StorageBackendError(operation, key=key, code=None, message=str(exc))


def _version_from(raw: Dict[str, Any], delete_marker: bool) -> ObjectVersion:
    return ObjectVersion(
        key=raw.get("Key") or "",
        version_id=raw.get("VersionId") or "",
        last_modified=raw.get("LastModified"),
        size=0 if delete_marker else int(raw.get("Size") or 0),
        is_latest=bool(raw.get("IsLatest")),
        is_delete_marker=delete_marker,
    )


class S3StorageProvider:
    """
    AWS S3 provider for a versioned bucket.

    Uses boto3 credential resolution (env, profile, instance/IRSA role).
    Signs with SigV4: presigned GETs on SSE-KMS objects are rejected otherwise.
    """

    name = "s3"

    def __init__(
        self,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        sse: str = "aws:kms",
        sse_kms_key_id: str = "",
        max_attempts: Optional[int] = None,
    ):
        bucket = (bucket or "").strip()
        if not bucket:
            raise RuntimeError("S3_BUCKET is required for S3 storage provider")

        self.bucket = bucket
        self.sse = (sse or "").strip()
        self.sse_kms_key_id = (sse_kms_key_id or "").strip()

        cfg_kwargs: Dict[str, Any] = {
            "region_name": (region or "").strip() or None,
            "signature_version": "s3v4",
        }
        if max_attempts:
            cfg_kwargs["retries"] = {"max_attempts": int(max_attempts), "mode": "standard"}

        client_kwargs: Dict[str, Any] = {"config": Config(**cfg_kwargs)}
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url

        self.s3 = boto3.client("s3", **client_kwargs)

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "S3StorageProvider":
        return cls(
            bucket=settings.bucket,
            region=settings.region,
            endpoint_url=settings.endpoint_url or None,
            sse=settings.sse,
            sse_kms_key_id=settings.sse_kms_key_id,
            max_attempts=settings.max_attempts,
        )

    def _encryption_args(self) -> Dict[str, str]:
        if not self.sse:
            return {}
        args = {"ServerSideEncryption": self.sse}
        if self.sse == "aws:kms" and self.sse_kms_key_id:
            args["SSEKMSKeyId"] = self.sse_kms_key_id
        return args

    def put_object(self, key: str, body: BinaryIO) -> None:
        try:
            self.s3.put_object(Bucket=self.bucket, Key=key, Body=body, **self._encryption_args())
        except (ClientError, BotoCoreError) as exc:
            raise _wrap(exc, "put_object", key) from exc

    def list_versions(self, prefix: Optional[str] = None) -> VersionListing:
        kwargs: Dict[str, Any] = {"Bucket": self.bucket}
        if prefix:
            kwargs["Prefix"] = prefix

        versions: List[ObjectVersion] = []
        markers: List[ObjectVersion] = []
        try:
            paginator = self.s3.get_paginator("list_object_versions")
            for page in paginator.paginate(**kwargs):
                versions.extend(_version_from(v, False) for v in page.get("Versions") or [])
                markers.extend(_version_from(m, True) for m in page.get("DeleteMarkers") or [])
        except (ClientError, BotoCoreError) as exc:
            raise _wrap(exc, "list_versions", prefix) from exc

        return VersionListing(versions=versions, delete_markers=markers)

    def head_object(self, key: str) -> ObjectHead:
        try:
            resp = self.s3.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise _wrap(exc, "head_object", key) from exc

        return ObjectHead(
            key=key,
            storage_class=resp.get("StorageClass"),
            restore=resp.get("Restore"),
        )

    def restore_object(self, key: str, days: int, tier: str) -> None:
        try:
            self.s3.restore_object(
                Bucket=self.bucket,
                Key=key,
                RestoreRequest={
                    "Days": int(days),
                    "GlacierJobParameters": {"Tier": tier},
                },
            )
        except (ClientError, BotoCoreError) as exc:
            raise _wrap(exc, "restore_object", key) from exc

    def delete_object(self, key: str, version_id: Optional[str] = None) -> None:
        kwargs: Dict[str, Any] = {"Bucket": self.bucket, "Key": key}
        if version_id:
            kwargs["VersionId"] = version_id
        try:
            self.s3.delete_object(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise _wrap(exc, "delete_object", key) from exc

    def presign_get_url(self, key: str, expires_in: int) -> str:
        try:
            return self.s3.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=int(expires_in),
            )
        except (ClientError, BotoCoreError) as exc:
            raise _wrap(exc, "presign_get_url", key) from exc

    def ping(self) -> None:
        try:
            self.s3.head_bucket(Bucket=self.bucket)
        except (ClientError, BotoCoreError) as exc:
            raise _wrap(exc, "head_bucket", None) from exc

# health/router.py
from fastapi import APIRouter

from core.deps import ProvidersDep
from providers.errors import StorageError

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    # Keep this super simple: no backend call
    return {"ok": True}


@router.get("/health/storage")
def health_storage(providers: ProvidersDep):
    """
    Verifies the bucket is reachable with the configured credentials.
    """
    storage = providers.storage
    try:
        storage.ping()
    except StorageError as e:
        return {
            "ok": False,
            "provider": storage.name,
            "bucket": storage.bucket,
            "error": str(e),
        }

    return {"ok": True, "provider": storage.name, "bucket": storage.bucket}

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from core.providers import providers_from_request
from providers.factory import Providers
from providers.storage import VersionedStorageProvider


# -----------------------------
# Canonical provider access
# -----------------------------

def get_providers(request: Request) -> Providers:
    """
    Canonical runtime provider resolver.

    Source of truth: request.app.state.providers
    """
    return providers_from_request(request)


ProvidersDep = Annotated[Providers, Depends(get_providers)]


# -----------------------------
# Canonical service deps
# -----------------------------

def get_storage(request: Request) -> VersionedStorageProvider:
    """
    Canonical VersionedStorageProvider dependency.
    """
    return get_providers(request).storage


StorageDep = Annotated[VersionedStorageProvider, Depends(get_storage)]

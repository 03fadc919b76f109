from __future__ import annotations

from fastapi import FastAPI, Request

from providers.factory import Providers, build_providers


def providers_from_request(request: Request) -> Providers:
    """
    Canonical provider accessor for ALL routers.

    Routers never build clients themselves. Providers are attached once during
    app startup as request.app.state.providers.
    """
    providers = getattr(request.app.state, "providers", None)
    if providers is None:
        raise RuntimeError("Providers not initialized on app.state (startup/lifespan not executed).")
    return providers


def init_providers(app: FastAPI) -> Providers:
    """
    Canonical provider initialization.
    Called once during app lifespan. Keeps providers already attached (tests).
    """
    if getattr(app.state, "providers", None) is None:
        app.state.providers = build_providers()
    return app.state.providers

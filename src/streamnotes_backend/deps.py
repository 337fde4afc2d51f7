"""Request dependencies.

Outbound clients are built once per process and kept on `app.state`; the
lifespan builds them eagerly, and the getters build lazily for transports that
skip lifespan (e.g. `httpx.ASGITransport` in tests). Tests swap them with
`app.dependency_overrides`.
"""

from __future__ import annotations

import httpx
from fastapi import Depends, Request

from streamnotes_backend.config import settings
from streamnotes_backend.domain.locators import LocatorConfig
from streamnotes_backend.integrations.storage.object_storage import (
    ObjectStorage,
    build_object_storage,
)
from streamnotes_backend.services.resolver_service import AttachmentResolver

_UNSET = object()


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.proxy_timeout_seconds)


def get_http_client(request: Request) -> httpx.AsyncClient:
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        client = build_http_client()
        request.app.state.http_client = client
    return client


def get_object_storage(request: Request) -> ObjectStorage | None:
    storage = getattr(request.app.state, "object_storage", _UNSET)
    if storage is _UNSET:
        storage = build_object_storage(settings)
        request.app.state.object_storage = storage
    return storage  # type: ignore[return-value]


def get_locator_config() -> LocatorConfig:
    return LocatorConfig.from_settings(settings)


def get_resolver(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    storage: ObjectStorage | None = Depends(get_object_storage),
    locator: LocatorConfig = Depends(get_locator_config),
) -> AttachmentResolver:
    return AttachmentResolver(
        http_client=http_client,
        locator=locator,
        storage=storage,
        diagnostic_body_bytes=settings.proxy_diagnostic_body_bytes,
        log_body_bytes=settings.proxy_log_body_bytes,
    )

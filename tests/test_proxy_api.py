from __future__ import annotations

from typing import cast

import httpx
import pytest

from streamnotes_backend.deps import get_http_client, get_locator_config, get_object_storage
from streamnotes_backend.domain.locators import LocatorConfig
from streamnotes_backend.main import app  # pyright: ignore[reportMissingTypeStubs]

from .fakes import FakeObjectStorage


def _make_async_client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


def _install(
    handler,  # type: ignore[no-untyped-def]
    *,
    locator: LocatorConfig,
    storage: FakeObjectStorage | None = None,
) -> httpx.AsyncClient:
    upstream = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_http_client] = lambda: upstream
    app.dependency_overrides[get_object_storage] = lambda: storage
    app.dependency_overrides[get_locator_config] = lambda: locator
    return upstream


def _never_called(request: httpx.Request) -> httpx.Response:  # pragma: no cover
    raise AssertionError(f"unexpected upstream request: {request.url}")


@pytest.mark.anyio
async def test_proxy_requires_key_or_url():
    _install(_never_called, locator=LocatorConfig())

    async with _make_async_client() as client:
        r = await client.get("/api/proxy-image")
        assert r.status_code == 400
        assert r.json()["message"] == "key or url required"

        r = await client.get("/api/proxy-image", params={"key": "   "})
        assert r.status_code == 400


@pytest.mark.anyio
async def test_proxy_rejects_key_and_url_together():
    _install(_never_called, locator=LocatorConfig())

    async with _make_async_client() as client:
        r = await client.get(
            "/api/proxy-image", params={"key": "a.png", "url": "https://x.example.com/a.png"}
        )

    assert r.status_code == 400


@pytest.mark.anyio
async def test_proxy_rejects_invalid_url():
    _install(_never_called, locator=LocatorConfig())

    async with _make_async_client() as client:
        r = await client.get("/api/proxy-image", params={"url": "not a url"})

    assert r.status_code == 400
    assert r.json()["message"] == "Invalid url"


@pytest.mark.anyio
async def test_proxy_key_exhaustion_without_config_is_bad_gateway():
    upstream = _install(_never_called, locator=LocatorConfig(), storage=None)

    async with upstream, _make_async_client() as client:
        r = await client.get("/api/proxy-image", params={"key": "missing-key"})

    assert r.status_code == 502
    body = cast(dict[str, object], r.json())
    assert body["error"] == "upstream_error"
    assert "missing-key" in cast(str, body["message"])
    details = cast(dict[str, object], body["details"])
    assert details["storage_fallback_attempted"] is False
    assert details["storage_attempts"] == []


@pytest.mark.anyio
async def test_proxy_key_served_from_public_candidate_with_cache_headers():
    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == "https://pub.example.com/1_abc_cat.png":
            return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})
        return httpx.Response(404)

    upstream = _install(
        handler, locator=LocatorConfig(public_base_url="https://pub.example.com", bucket="notes")
    )

    async with upstream, _make_async_client() as client:
        r = await client.get("/api/proxy-image", params={"key": "1_abc_cat.png"})

    assert r.status_code == 200
    assert r.content == b"\x89PNG"
    assert r.headers["content-type"] == "image/png"
    assert r.headers["cache-control"] == "public, max-age=31536000, immutable"
    assert r.headers["access-control-allow-origin"] == "*"


@pytest.mark.anyio
async def test_proxy_key_streams_from_storage_when_http_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text="AccessDenied")

    storage = FakeObjectStorage({"1_abc_doc.pdf": (b"%PDF-1.7", "application/pdf")})
    upstream = _install(
        handler,
        locator=LocatorConfig(public_base_url="https://pub.example.com", bucket="notes"),
        storage=storage,
    )

    async with upstream, _make_async_client() as client:
        r = await client.get("/api/proxy-image", params={"key": "1_abc_doc.pdf"})

    assert r.status_code == 200
    assert r.content == b"%PDF-1.7"
    assert r.headers["content-type"] == "application/pdf"
    assert r.headers["cache-control"] == "public, max-age=31536000, immutable"
    assert storage.open_calls == ["1_abc_doc.pdf"]


@pytest.mark.anyio
async def test_proxy_url_passes_through_upstream_failure_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="not here")

    upstream = _install(handler, locator=LocatorConfig())

    async with upstream, _make_async_client() as client:
        r = await client.get("/api/proxy-image", params={"url": "https://img.example.com/a.png"})

    assert r.status_code == 404
    body = cast(dict[str, object], r.json())
    details = cast(dict[str, object], body["details"])
    assert details["status"] == 404
    assert details["body"] == "not here"


@pytest.mark.anyio
async def test_proxy_url_success():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"GIF89a", headers={"content-type": "image/gif"})

    upstream = _install(handler, locator=LocatorConfig())

    async with upstream, _make_async_client() as client:
        r = await client.get("/api/proxy-image", params={"url": "https://img.example.com/a.gif"})

    assert r.status_code == 200
    assert r.content == b"GIF89a"
    assert r.headers["access-control-allow-origin"] == "*"


@pytest.mark.anyio
async def test_check_image_falls_back_from_head_to_get():
    methods: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        if request.method == "HEAD":
            return httpx.Response(405)
        return httpx.Response(200, headers={"content-type": "image/webp"})

    upstream = _install(handler, locator=LocatorConfig())

    async with upstream, _make_async_client() as client:
        r = await client.get("/api/check-image", params={"url": "https://img.example.com/a.webp"})

    assert r.status_code == 200
    assert r.json() == {
        "ok": True,
        "status": 200,
        "content_type": "image/webp",
        "url_ok": True,
        "error": None,
    }
    assert methods == ["HEAD", "GET"]


@pytest.mark.anyio
async def test_check_image_network_error_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    upstream = _install(handler, locator=LocatorConfig())

    async with upstream, _make_async_client() as client:
        r = await client.get("/api/check-image", params={"url": "https://img.example.com/a.webp"})
        assert r.status_code == 500
        assert r.json() == {"ok": False, "error": "refused"}

        r = await client.get("/api/check-image")
        assert r.status_code == 400


@pytest.mark.anyio
async def test_url_with_invalid_port_is_rejected_on_both_endpoints():
    upstream = _install(_never_called, locator=LocatorConfig())

    async with upstream, _make_async_client() as client:
        r = await client.get("/api/proxy-image", params={"url": "http://host:abc/x.png"})
        assert r.status_code == 400
        assert r.json()["message"] == "Invalid url"

        r = await client.get("/api/check-image", params={"url": "http://host:abc/x.png"})
        assert r.status_code == 400
        assert r.json()["message"] == "Invalid url"

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest

from streamnotes_backend.db import dispose_engine, reset_engine_cache
from streamnotes_backend.main import app


@pytest.fixture(autouse=True)
async def _reset_app_state_per_test(  # pyright: ignore[reportUnusedFunction]
    anyio_backend: object,  # noqa: ARG001
) -> AsyncGenerator[None, None]:
    _ = anyio_backend
    yield

    app.dependency_overrides.clear()
    for attr in ("http_client", "object_storage"):
        if hasattr(app.state, attr):
            delattr(app.state, attr)

    # Dispose the cached AsyncEngine while the event loop is still alive so the
    # aiosqlite worker thread does not outlive the test.
    try:
        await dispose_engine()
    except Exception:
        pass
    reset_engine_cache()

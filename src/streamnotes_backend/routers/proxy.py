"""Image/attachment proxy.

Serves stored objects same-origin so browsers are not blocked by object-store
CORS/ORB rules. `key` goes through the multi-location resolver, `url` is
fetched directly.
"""

from __future__ import annotations

import logging
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response, StreamingResponse

from streamnotes_backend.deps import get_resolver
from streamnotes_backend.errors import ClientInputError, ExhaustionError
from streamnotes_backend.schemas import CheckImageResponse
from streamnotes_backend.services.resolver_service import (
    AttachmentResolver,
    ResolutionFailure,
    ResolvedObject,
)

router = APIRouter(tags=["proxy"])

logger = logging.getLogger(__name__)

PROXY_CACHE_HEADERS = {
    "Cache-Control": "public, max-age=31536000, immutable",
    "Access-Control-Allow-Origin": "*",
}


def _to_response(obj: ResolvedObject) -> Response:
    if obj.chunks is not None:
        return StreamingResponse(
            obj.chunks, media_type=obj.content_type, headers=dict(PROXY_CACHE_HEADERS)
        )
    return Response(
        content=obj.data or b"", media_type=obj.content_type, headers=dict(PROXY_CACHE_HEADERS)
    )


@router.get(
    "/proxy-image",
    responses={
        200: {
            "description": "Object bytes",
            "content": {
                "application/octet-stream": {"schema": {"type": "string", "format": "binary"}}
            },
        }
    },
)
async def proxy_image(
    key: Annotated[str | None, Query()] = None,
    url: Annotated[str | None, Query()] = None,
    resolver: AttachmentResolver = Depends(get_resolver),
) -> Response:
    key = (key or "").strip() or None
    url = (url or "").strip() or None
    if key is None and url is None:
        raise ClientInputError("key or url required")
    if key is not None and url is not None:
        raise ClientInputError("exactly one of key or url is allowed")

    if url is not None:
        return _to_response(await resolver.fetch_url(url))

    result = await resolver.resolve_key(key or "")
    if isinstance(result, ResolutionFailure):
        raise ExhaustionError(
            f"{result.message}: {result.key}",
            details={
                "key": result.key,
                "http_attempts": result.http_attempts,
                "storage_attempts": result.storage_attempts,
                "storage_fallback_attempted": result.storage_fallback_attempted,
            },
        )
    return _to_response(result)


@router.get("/check-image", response_model=CheckImageResponse)
async def check_image(
    url: Annotated[str | None, Query()] = None,
    resolver: AttachmentResolver = Depends(get_resolver),
) -> CheckImageResponse | JSONResponse:
    if not url or not url.strip():
        raise ClientInputError("url required")
    try:
        status_code, content_type = await resolver.check_url(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("check-image failed url=%s: %s", url, e)
        payload = CheckImageResponse(ok=False, error=str(e) or e.__class__.__name__)
        return JSONResponse(status_code=500, content=payload.model_dump(exclude_none=True))
    return CheckImageResponse(
        ok=True,
        status=status_code,
        content_type=content_type,
        url_ok=200 <= status_code < 300,
    )

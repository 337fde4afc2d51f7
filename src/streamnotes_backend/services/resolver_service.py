"""Read-through resolver for attachment objects.

Strategy for a key: try the unauthenticated HTTP candidates from
`domain.locators.http_candidates` one at a time, first success wins; only when
all of them fail, and only when storage credentials exist, read the object
through the authenticated S3 API under each key variant. Individual failures
are logged and skipped; exhaustion is returned as a `ResolutionFailure` value.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Literal
from urllib.parse import urlsplit

import httpx

from streamnotes_backend.domain.locators import (
    LocatorConfig,
    http_candidates,
    storage_key_variants,
)
from streamnotes_backend.errors import ClientInputError, UpstreamRetrievalError
from streamnotes_backend.integrations.storage.object_storage import (
    ObjectStorage,
    ObjectStorageError,
)
from streamnotes_backend.schemas import DEFAULT_CONTENT_TYPE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedObject:
    source: Literal["http", "storage"]
    location: str
    content_type: str
    # Exactly one of `data` / `chunks` is set.
    data: bytes | None = None
    chunks: AsyncIterator[bytes] | None = None


@dataclass(frozen=True)
class ResolutionFailure:
    key: str
    http_attempts: list[str] = field(default_factory=list)
    storage_attempts: list[str] = field(default_factory=list)
    storage_fallback_attempted: bool = False

    @property
    def message(self) -> str:
        if self.storage_fallback_attempted:
            return "All attempts (HTTP + storage read) failed for key"
        return "All HTTP attempts failed and no storage credentials are configured for fallback"


def validate_absolute_url(url: str) -> str:
    url = (url or "").strip()
    try:
        parts = urlsplit(url)
        # httpx also rejects what urlsplit lets through (e.g. a non-numeric port).
        httpx.URL(url)
    except (ValueError, httpx.InvalidURL) as e:
        raise ClientInputError("Invalid url", details={"url": url}) from e
    if parts.scheme not in {"http", "https"} or not parts.netloc or " " in url:
        raise ClientInputError("Invalid url", details={"url": url})
    return url


class AttachmentResolver:
    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        locator: LocatorConfig,
        storage: ObjectStorage | None,
        diagnostic_body_bytes: int = 2000,
        log_body_bytes: int = 400,
    ) -> None:
        self._http = http_client
        self._locator = locator
        self._storage = storage
        self._diagnostic_body_bytes = diagnostic_body_bytes
        self._log_body_bytes = log_body_bytes

    async def _get(self, url: str, *, body_limit: int) -> httpx.Response:
        try:
            resp = await self._http.get(url, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # Timeouts and unusable candidate URLs count as a failed candidate.
            raise UpstreamRetrievalError(
                f"upstream request failed: {e.__class__.__name__}",
                location=url,
                body_snippet=str(e)[:body_limit],
            ) from e
        if not resp.is_success:
            raise UpstreamRetrievalError(
                f"Upstream returned {resp.status_code}",
                location=url,
                upstream_status=resp.status_code,
                body_snippet=(resp.text or "")[:body_limit],
            )
        return resp

    async def fetch_url(self, url: str) -> ResolvedObject:
        """Direct retrieval of an explicit absolute URL (no fallbacks)."""
        url = validate_absolute_url(url)
        logger.info("proxy direct url=%s", url)
        try:
            resp = await self._get(url, body_limit=self._diagnostic_body_bytes)
        except UpstreamRetrievalError as e:
            logger.warning(
                "proxy direct upstream failed url=%s status=%s body=%s",
                url,
                e.upstream_status,
                e.body_snippet[: self._log_body_bytes],
            )
            raise
        return ResolvedObject(
            source="http",
            location=url,
            content_type=resp.headers.get("content-type") or DEFAULT_CONTENT_TYPE,
            data=resp.content,
        )

    async def _try_http_candidates(self, candidates: list[str]) -> ResolvedObject | None:
        for candidate in candidates:
            try:
                resp = await self._get(candidate, body_limit=self._log_body_bytes)
            except UpstreamRetrievalError as e:
                logger.warning(
                    "proxy candidate failed url=%s status=%s body=%s",
                    candidate,
                    e.upstream_status,
                    e.body_snippet,
                )
                continue
            logger.info("proxy success via http url=%s", candidate)
            return ResolvedObject(
                source="http",
                location=candidate,
                content_type=resp.headers.get("content-type") or DEFAULT_CONTENT_TYPE,
                data=resp.content,
            )
        return None

    async def _try_storage(
        self, storage: ObjectStorage, variants: list[str]
    ) -> ResolvedObject | None:
        for variant in variants:
            try:
                obj = await storage.open_object(variant)
            except ObjectStorageError as e:
                logger.warning("proxy storage read failed key=%s: %s", variant, e)
                continue
            logger.info("proxy success via storage read key=%s", variant)
            return ResolvedObject(
                source="storage",
                location=variant,
                content_type=obj.content_type or DEFAULT_CONTENT_TYPE,
                chunks=obj.chunks,
            )
        return None

    async def resolve_key(self, key: str) -> ResolvedObject | ResolutionFailure:
        key = (key or "").strip()
        if not key:
            raise ClientInputError("key or url required")

        candidates = http_candidates(self._locator, key)
        logger.info("proxy will try http candidates key=%s candidates=%s", key, candidates)
        found = await self._try_http_candidates(candidates)
        if found is not None:
            return found

        if self._storage is None:
            logger.error("proxy: no storage credentials for fallback key=%s", key)
            return ResolutionFailure(key=key, http_attempts=candidates)

        variants = storage_key_variants(self._locator.bucket, key)
        logger.info("proxy will try storage reads key=%s variants=%s", key, variants)
        found = await self._try_storage(self._storage, variants)
        if found is not None:
            return found

        logger.error("proxy: all attempts failed key=%s", key)
        return ResolutionFailure(
            key=key,
            http_attempts=candidates,
            storage_attempts=variants,
            storage_fallback_attempted=True,
        )

    async def check_url(self, url: str) -> tuple[int, str | None]:
        """HEAD the url, falling back to GET; returns (status, content_type)."""
        url = validate_absolute_url(url)
        resp = await self._http.head(url, follow_redirects=True)
        if not resp.is_success:
            resp = await self._http.get(url, follow_redirects=True)
        return resp.status_code, resp.headers.get("content-type") or None

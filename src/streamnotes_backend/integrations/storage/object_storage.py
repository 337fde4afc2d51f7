from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

from streamnotes_backend.config import Settings


class ObjectStorageError(RuntimeError):
    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


@dataclass(frozen=True)
class StoredObject:
    key: str
    content_type: str | None
    content_length: int | None
    chunks: AsyncIterator[bytes]


class ObjectStorage(Protocol):
    async def put_bytes(
        self, key: str, data: bytes, *, content_type: str | None = None
    ) -> None: ...

    async def open_object(self, key: str) -> StoredObject: ...

    async def delete_many(self, keys: list[str]) -> None: ...


def build_object_storage(cfg: Settings) -> ObjectStorage | None:
    # No credentials -> no authenticated storage access at all (uploads/deletes fail,
    # the proxy skips its authenticated fallback).
    if not cfg.storage_credentials_configured():
        return None

    from .s3_storage import S3ObjectStorage

    return S3ObjectStorage(
        endpoint_url=cfg.storage_endpoint_url(),
        region=cfg.s3_region,
        bucket=cfg.s3_bucket.strip(),
        access_key_id=cfg.s3_access_key_id.strip(),
        secret_access_key=cfg.s3_secret_access_key.strip(),
        force_path_style=cfg.s3_force_path_style,
    )

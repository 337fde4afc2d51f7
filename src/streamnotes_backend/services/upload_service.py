from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from streamnotes_backend.domain.locators import LocatorConfig, public_url_for_key
from streamnotes_backend.errors import StorageWriteError
from streamnotes_backend.filenames import build_attachment_storage_key
from streamnotes_backend.integrations.storage.object_storage import (
    ObjectStorage,
    ObjectStorageError,
)
from streamnotes_backend.schemas import DEFAULT_CONTENT_TYPE, AttachmentDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IncomingFile:
    filename: str | None
    content_type: str | None
    data: bytes
    # Releases the spooled temp copy of the upload; failures are only logged.
    cleanup: Callable[[], Awaitable[None]] | None = None


async def _cleanup_best_effort(item: IncomingFile) -> None:
    if item.cleanup is None:
        return
    try:
        await item.cleanup()
    except Exception:
        logger.warning("temp upload cleanup failed filename=%s", item.filename, exc_info=True)


async def _rollback_batch_best_effort(storage: ObjectStorage, keys: list[str]) -> None:
    if not keys:
        return
    try:
        await storage.delete_many(keys)
    except Exception:
        logger.warning("partial upload rollback failed keys=%s", keys, exc_info=True)


async def upload_files(
    *,
    storage: ObjectStorage | None,
    locator: LocatorConfig,
    files: list[IncomingFile],
) -> list[AttachmentDescriptor]:
    """Write every file under a fresh key and return descriptors in input order.

    The batch is all-or-nothing from the caller's point of view: the first failing
    write aborts the rest and the objects already written are removed.
    """
    if storage is None:
        raise StorageWriteError("object storage is not configured")

    written: list[str] = []
    results: list[AttachmentDescriptor] = []

    for index, item in enumerate(files):
        key = build_attachment_storage_key(item.filename)
        content_type = item.content_type or DEFAULT_CONTENT_TYPE
        try:
            await storage.put_bytes(key, item.data, content_type=content_type)
        except ObjectStorageError as e:
            logger.error(
                "upload failed index=%s filename=%s key=%s: %s", index, item.filename, key, e
            )
            await _rollback_batch_best_effort(storage, written)
            raise StorageWriteError(
                "Upload failed",
                details={
                    "index": index,
                    "name": item.filename,
                    "key": key,
                    "reason": str(e),
                },
            ) from e

        written.append(key)
        await _cleanup_best_effort(item)

        descriptor = AttachmentDescriptor(
            name=item.filename or key,
            key=key,
            url=public_url_for_key(locator, key),
            type=content_type,
            size=len(item.data),
        )
        logger.info("uploaded file key=%s size=%s type=%s", key, descriptor.size, content_type)
        results.append(descriptor)

    return results

"""Upload router: multipart files -> object storage -> attachment descriptors."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import FormData, UploadFile

from streamnotes_backend.config import settings
from streamnotes_backend.deps import get_locator_config, get_object_storage
from streamnotes_backend.domain.locators import LocatorConfig
from streamnotes_backend.errors import ClientInputError, PayloadTooLargeError
from streamnotes_backend.integrations.storage.object_storage import ObjectStorage
from streamnotes_backend.schemas import UploadResponse
from streamnotes_backend.services import upload_service

router = APIRouter(tags=["uploads"])

logger = logging.getLogger(__name__)

_FILES_FIELD = "files"


def _collect_upload_files(form: FormData) -> list[UploadFile]:
    files = [v for v in form.getlist(_FILES_FIELD) if isinstance(v, UploadFile)]
    if files:
        return files
    # Clients that use another field name: take every file part in form order.
    return [v for _, v in form.multi_items() if isinstance(v, UploadFile)]


async def _read_upload_file_limited(*, file: UploadFile, max_bytes: int) -> bytes:
    # Read the file in chunks and hard-stop once size exceeds max_bytes.
    buf = bytearray()
    chunk_size = 1024 * 1024
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if max_bytes > 0 and len(buf) > max_bytes:
            raise PayloadTooLargeError(
                "attachment too large",
                details={"name": file.filename, "max_bytes": max_bytes},
            )
    return bytes(buf)


@router.post("/upload", response_model=UploadResponse)
async def upload_files(
    request: Request,
    storage: ObjectStorage | None = Depends(get_object_storage),
    locator: LocatorConfig = Depends(get_locator_config),
) -> UploadResponse:
    try:
        form = await request.form()
    except Exception as e:
        raise ClientInputError("Form parse error", details=str(e)) from e

    files = _collect_upload_files(form)
    if not files:
        raise ClientInputError("No files found in request")

    max_files = int(settings.attachments_max_files)
    if max_files > 0 and len(files) > max_files:
        raise ClientInputError(
            "too many files", details={"count": len(files), "max_files": max_files}
        )

    # Validate and buffer the whole batch before the first write.
    max_bytes = int(settings.attachments_max_size_bytes)
    incoming: list[upload_service.IncomingFile] = []
    for f in files:
        data = await _read_upload_file_limited(file=f, max_bytes=max_bytes)
        incoming.append(
            upload_service.IncomingFile(
                filename=f.filename,
                content_type=f.content_type,
                data=data,
                cleanup=f.close,
            )
        )

    descriptors = await upload_service.upload_files(
        storage=storage, locator=locator, files=incoming
    )
    logger.info("upload batch done count=%s", len(descriptors))
    return UploadResponse(files=descriptors)

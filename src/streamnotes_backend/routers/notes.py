"""Notes router: create/list notes and the storage-first delete."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlmodel.ext.asyncio.session import AsyncSession

from streamnotes_backend.db import get_session
from streamnotes_backend.deps import get_locator_config, get_object_storage
from streamnotes_backend.domain.locators import LocatorConfig
from streamnotes_backend.errors import AttachmentError
from streamnotes_backend.integrations.storage.object_storage import ObjectStorage
from streamnotes_backend.schemas import (
    DeleteNoteRequest,
    DeleteNoteResponse,
    NoteCreateRequest,
    NoteList,
)
from streamnotes_backend.schemas import Note as NoteSchema
from streamnotes_backend.services import deletion_service, notes_service

router = APIRouter(tags=["notes"])

logger = logging.getLogger(__name__)


@router.post("/notes", response_model=NoteSchema, status_code=status.HTTP_201_CREATED)
async def create_note(
    payload: NoteCreateRequest,
    session: AsyncSession = Depends(get_session),
) -> NoteSchema:
    note = await notes_service.create_note(
        session=session,
        stream_id=payload.stream_id,
        subject_id=payload.subject_id,
        text_content=payload.text_content,
        attachments=payload.attachments,
    )
    return notes_service.note_to_schema(note)


@router.get("/notes", response_model=NoteList)
async def list_notes(
    stream_id: Annotated[str | None, Query()] = None,
    subject_id: Annotated[str | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 200,
    offset: Annotated[int, Query(ge=0)] = 0,
    session: AsyncSession = Depends(get_session),
) -> NoteList:
    notes, total = await notes_service.list_notes(
        session=session,
        stream_id=stream_id,
        subject_id=subject_id,
        limit=limit,
        offset=offset,
    )
    return NoteList(
        items=[notes_service.note_to_schema(n) for n in notes],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/notes/{note_id}", response_model=NoteSchema)
async def get_note(
    note_id: str,
    session: AsyncSession = Depends(get_session),
) -> NoteSchema:
    note = await notes_service.get_note(session=session, note_id=note_id)
    return notes_service.note_to_schema(note)


def _delete_failure(status_code: int, *, error: str, details: object | None = None) -> JSONResponse:
    payload = DeleteNoteResponse(success=False, error=error, details=details)
    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))


@router.post(
    "/delete-note",
    response_model=DeleteNoteResponse,
    response_model_exclude_none=True,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {"schema": DeleteNoteRequest.model_json_schema()}
            },
        }
    },
)
async def delete_note(
    request: Request,
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage | None = Depends(get_object_storage),
    locator: LocatorConfig = Depends(get_locator_config),
) -> DeleteNoteResponse | JSONResponse:
    # Every failure of this endpoint, malformed bodies included, is {success: false, ...}.
    try:
        payload = DeleteNoteRequest.model_validate(await request.json())
    except ValueError as e:
        details = (
            e.errors(include_url=False, include_context=False)
            if isinstance(e, ValidationError)
            else str(e)
        )
        return _delete_failure(
            status.HTTP_400_BAD_REQUEST, error="Invalid request body", details=details
        )

    note_id = (payload.note_id or "").strip()
    if not note_id:
        return _delete_failure(status.HTTP_400_BAD_REQUEST, error="noteId is required")

    try:
        outcome = await deletion_service.delete_note_with_attachments(
            session=session,
            storage=storage,
            locator=locator,
            note_id=note_id,
            attachments=payload.attachments,
        )
    except AttachmentError as e:
        return _delete_failure(e.status_code, error=e.message, details=e.details)
    logger.info(
        "note deleted note_id=%s existed=%s objects=%s",
        outcome.note_id,
        outcome.note_existed,
        len(outcome.deleted_keys),
    )
    return DeleteNoteResponse(success=True)

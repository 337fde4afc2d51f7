from __future__ import annotations

import re
import uuid
from urllib.parse import quote

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlmodel.ext.asyncio.session import AsyncSession

from streamnotes_backend.config import settings
from streamnotes_backend.errors import ClientInputError
from streamnotes_backend.models import Note, utc_now
from streamnotes_backend.repositories import notes_repo
from streamnotes_backend.schemas import AttachmentDescriptor, AttachmentView
from streamnotes_backend.schemas import Note as NoteSchema

_IMAGE_EXT_RE = re.compile(r"\.(jpe?g|png|webp|gif|avif|svg)$")


def proxy_src_for(descriptor: AttachmentDescriptor) -> str | None:
    # Prefer the key: it survives public base changes, a stored url may not.
    path = f"{settings.api_prefix.rstrip('/')}/proxy-image"
    if descriptor.key:
        return f"{path}?key={quote(descriptor.key, safe='')}"
    if descriptor.url:
        return f"{path}?url={quote(descriptor.url, safe='')}"
    return None


def is_image_attachment(descriptor: AttachmentDescriptor) -> bool:
    if descriptor.type.lower().startswith("image/"):
        return True
    url_or_name = (descriptor.url or descriptor.name or "").lower()
    return bool(_IMAGE_EXT_RE.search(url_or_name))


def attachment_view(raw: object) -> AttachmentView:
    try:
        descriptor = AttachmentDescriptor.model_validate(raw)
    except ValidationError:
        name = raw.get("name") if isinstance(raw, dict) else None
        return AttachmentView(
            name=name if isinstance(name, str) else "",
            error="attachment record is malformed",
        )

    src = proxy_src_for(descriptor)
    return AttachmentView(
        **descriptor.model_dump(),
        src=src,
        is_image=is_image_attachment(descriptor),
        error=None if src else "attachment has neither key nor url and cannot be retrieved",
    )


def note_to_schema(note: Note) -> NoteSchema:
    return NoteSchema(
        id=note.id,
        stream_id=note.stream_id,
        subject_id=note.subject_id,
        text_content=note.text_content,
        attachments=[attachment_view(a) for a in (note.attachments or [])],
        created_at=note.created_at,
    )


async def create_note(
    *,
    session: AsyncSession,
    stream_id: str,
    subject_id: str,
    text_content: str | None,
    attachments: list[AttachmentDescriptor],
) -> Note:
    text = (text_content or "").strip()
    if not text and not attachments:
        raise ClientInputError("text_content or attachments required")

    unresolvable = [i for i, a in enumerate(attachments) if not a.retrievable]
    if unresolvable:
        raise ClientInputError(
            "every attachment needs a key or url",
            details={"indexes": unresolvable},
        )

    note = Note(
        id=str(uuid.uuid4()),
        stream_id=stream_id,
        subject_id=subject_id,
        text_content=text_content or None,
        attachments=[a.model_dump() for a in attachments],
        created_at=utc_now(),
    )

    try:
        if session.in_transaction():
            session.add(note)
            await session.commit()
            return note

        async with session.begin():
            session.add(note)
        return note
    except Exception:
        try:
            await session.rollback()
        except Exception:
            pass
        raise


async def get_note(*, session: AsyncSession, note_id: str) -> Note:
    note = await notes_repo.get_note(session, note_id=note_id)
    if note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="note not found")
    return note


async def list_notes(
    *,
    session: AsyncSession,
    stream_id: str | None,
    subject_id: str | None,
    limit: int,
    offset: int,
) -> tuple[list[Note], int]:
    return await notes_repo.list_notes(
        session, stream_id=stream_id, subject_id=subject_id, limit=limit, offset=offset
    )

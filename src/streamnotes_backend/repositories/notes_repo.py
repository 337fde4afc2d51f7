from __future__ import annotations

from typing import cast

from sqlalchemy import func
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from streamnotes_backend.models import Note


async def get_note(session: AsyncSession, *, note_id: str) -> Note | None:
    stmt = select(Note).where(Note.id == note_id)
    return (await session.exec(stmt)).first()


async def list_notes(
    session: AsyncSession,
    *,
    stream_id: str | None,
    subject_id: str | None,
    limit: int,
    offset: int,
) -> tuple[list[Note], int]:
    stmt = select(Note)
    count_stmt = select(func.count()).select_from(Note)
    if stream_id:
        stmt = stmt.where(Note.stream_id == stream_id)
        count_stmt = count_stmt.where(Note.stream_id == stream_id)
    if subject_id:
        stmt = stmt.where(Note.subject_id == subject_id)
        count_stmt = count_stmt.where(Note.subject_id == subject_id)

    created_at = cast(ColumnElement[object], cast(object, Note.created_at))
    stmt = stmt.order_by(created_at.desc()).offset(offset).limit(limit)

    notes = list((await session.exec(stmt)).all())
    total = int((await session.exec(count_stmt)).one())
    return notes, total


async def delete_note(session: AsyncSession, *, note_id: str) -> bool:
    note = await get_note(session, note_id=note_id)
    if note is None:
        return False
    await session.delete(note)
    return True

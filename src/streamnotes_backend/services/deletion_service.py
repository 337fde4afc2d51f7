from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import ValidationError
from sqlmodel.ext.asyncio.session import AsyncSession

from streamnotes_backend.domain.locators import LocatorConfig, dedupe, key_from_url
from streamnotes_backend.errors import ConsistencyError, NoteRecordDeleteError
from streamnotes_backend.integrations.storage.object_storage import (
    ObjectStorage,
    ObjectStorageError,
)
from streamnotes_backend.repositories import notes_repo
from streamnotes_backend.schemas import AttachmentDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeleteOutcome:
    note_id: str
    deleted_keys: list[str]
    note_existed: bool


def storage_key_for(locator: LocatorConfig, descriptor: AttachmentDescriptor) -> str | None:
    # key > key derived from url > name.
    if descriptor.key:
        return descriptor.key
    derived = key_from_url(locator, descriptor.url)
    if derived:
        return derived
    return descriptor.name.strip() or None


def storage_keys_for(
    locator: LocatorConfig, attachments: list[AttachmentDescriptor]
) -> list[str]:
    keys = [storage_key_for(locator, a) for a in attachments]
    return dedupe(k for k in keys if k)


def _stored_descriptor(raw: object) -> AttachmentDescriptor:
    try:
        return AttachmentDescriptor.model_validate(raw)
    except ValidationError:
        # Keep whatever locators the record still has so its object is not orphaned.
        data = raw if isinstance(raw, dict) else {}
        return AttachmentDescriptor(
            key=data.get("key") if isinstance(data.get("key"), str) else None,
            url=data.get("url") if isinstance(data.get("url"), str) else None,
        )


async def delete_note_with_attachments(
    *,
    session: AsyncSession,
    storage: ObjectStorage | None,
    locator: LocatorConfig,
    note_id: str,
    attachments: list[AttachmentDescriptor] | None,
) -> DeleteOutcome:
    """Delete the note's objects first, then the note row.

    A storage failure aborts before the row is touched so a note never points at
    objects that are gone. A row delete failure after the objects are deleted
    cannot be undone here and is reported as-is.
    """
    note = await notes_repo.get_note(session, note_id=note_id)
    if attachments is None:
        stored = note.attachments if note is not None else []
        attachments = [_stored_descriptor(a) for a in stored or []]

    keys = storage_keys_for(locator, attachments)
    if keys:
        if storage is None:
            raise ConsistencyError(
                "Failed to delete files from storage",
                details="object storage is not configured",
            )
        try:
            await storage.delete_many(keys)
        except ObjectStorageError as e:
            logger.error("storage delete failed note_id=%s keys=%s: %s", note_id, keys, e)
            raise ConsistencyError(
                "Failed to delete files from storage", details=str(e)
            ) from e
        logger.info("deleted %s objects from storage for note_id=%s", len(keys), note_id)

    try:
        if session.in_transaction():
            await notes_repo.delete_note(session, note_id=note_id)
            await session.commit()
        else:
            async with session.begin():
                await notes_repo.delete_note(session, note_id=note_id)
    except Exception as e:
        try:
            await session.rollback()
        except Exception:
            pass
        logger.error("note row delete failed after storage delete note_id=%s", note_id)
        raise NoteRecordDeleteError("Failed to delete note from DB", details=str(e)) from e

    return DeleteOutcome(note_id=note_id, deleted_keys=keys, note_existed=note is not None)

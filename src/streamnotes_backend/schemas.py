from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class AttachmentDescriptor(BaseModel):
    """Locator record for one uploaded object, embedded in a note.

    `key` is the authoritative locator. `url` is the public URL computed at upload
    time and is only relied upon for legacy records that lack a key.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", max_length=1024)
    key: str | None = Field(default=None, max_length=1024)
    url: str | None = Field(default=None, max_length=2048)
    type: str = Field(default=DEFAULT_CONTENT_TYPE, max_length=255)
    size: int = Field(default=0, ge=0)

    @field_validator("key", "url", mode="before")
    @classmethod
    def _blank_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("type", mode="before")
    @classmethod
    def _default_type(cls, v: object) -> object:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_CONTENT_TYPE
        return v

    @property
    def retrievable(self) -> bool:
        return bool(self.key or self.url)


class AttachmentView(AttachmentDescriptor):
    # Render-time projection; unresolvable descriptors carry `error` instead of being dropped.
    src: str | None = None
    is_image: bool = False
    error: str | None = None


class UploadResponse(BaseModel):
    files: list[AttachmentDescriptor] = Field(default_factory=list)


class NoteCreateRequest(BaseModel):
    stream_id: str = Field(min_length=1, max_length=64)
    subject_id: str = Field(min_length=1, max_length=64)
    text_content: str | None = None
    attachments: list[AttachmentDescriptor] = Field(default_factory=list)


class Note(BaseModel):
    id: str
    stream_id: str
    subject_id: str
    text_content: str | None = None
    attachments: list[AttachmentView] = Field(default_factory=list)
    created_at: datetime


class NoteList(BaseModel):
    items: list[Note] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


class DeleteNoteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Optional so a missing id yields the endpoint's own {success: false} contract.
    note_id: str | None = Field(
        default=None, validation_alias=AliasChoices("noteId", "note_id")
    )
    # None 表示使用笔记上已持久化的附件描述符
    attachments: list[AttachmentDescriptor] | None = None


class DeleteNoteResponse(BaseModel):
    success: bool
    error: str | None = None
    details: object | None = None


class CheckImageResponse(BaseModel):
    ok: bool
    status: int | None = None
    content_type: str | None = None
    url_ok: bool | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    """Uniform error body: {error, message, request_id, details}."""

    error: str
    message: str
    request_id: str | None = None
    details: object | None = None

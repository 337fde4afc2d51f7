# basedpyright: reportAssignmentType=false
# basedpyright: reportIncompatibleVariableOverride=false

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, Text
from sqlalchemy.types import JSON as SAJSON
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Note(SQLModel, table=True):
    __tablename__ = "notes"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: str = Field(primary_key=True, min_length=1, max_length=36)

    # stream/subject 由外部应用管理，这里只按不透明 id 存储
    stream_id: str = Field(index=True, min_length=1, max_length=64)
    subject_id: str = Field(index=True, min_length=1, max_length=64)

    text_content: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    # 附件描述符（有序）：[{name, key, url, type, size}, ...]
    attachments: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(SAJSON))

    created_at: datetime = Field(default_factory=utc_now, index=True)

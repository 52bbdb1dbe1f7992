"""
Note Models

Notes, the folders that group them, and the binary attachments they carry.

DESIGN DECISION: Folder membership is recorded on BOTH sides
(`Note.folder_id` and `NoteFolder.note_ids`). The folder repository is
the only thing that moves notes, and keeps both sides in step.
"""

import base64
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from pocketledger.codec.color import SYSTEM_COLORS, HexColor, parse_hex
from pocketledger.models.base import LocalDateTime, Record, local_now


class AttachmentType(str, Enum):
    IMAGE = "image"
    AUDIO = "audio"
    DRAWING = "drawing"
    DOCUMENT = "document"


class NoteAttachment(BaseModel):
    """
    Binary payload attached to a note.

    The payload is held inline and written as base64 in JSON.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4, frozen=True)
    type: AttachmentType
    data: bytes = Field(..., description="Raw attachment bytes")
    filename: str = Field(..., min_length=1, max_length=255)
    media_type: str = Field(default="application/octet-stream")
    created_at: LocalDateTime = Field(default_factory=local_now)

    @field_validator('data', mode='before')
    @classmethod
    def decode_base64(cls, v: Any) -> Any:
        if isinstance(v, str):
            return base64.b64decode(v.encode("ascii"), validate=True)
        return v

    @field_serializer('data', when_used='json')
    def encode_base64(self, data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")

    @property
    def size(self) -> int:
        return len(self.data)


class Note(Record):
    """A note with optional folder membership and attachments."""

    title: str = Field(default="", max_length=200)
    content: str = Field(default="")
    created_at: LocalDateTime = Field(default_factory=local_now)
    modified_at: LocalDateTime = Field(default_factory=local_now)
    is_pinned: bool = False
    folder_id: Optional[UUID] = None
    tags: list[str] = Field(default_factory=list)
    attachments: list[NoteAttachment] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_timestamps(self) -> 'Note':
        if self.modified_at < self.created_at:
            raise ValueError("Modified time cannot be before creation time")
        return self

    def matches(self, text: str) -> bool:
        """Case-insensitive search over title and content."""
        needle = text.casefold()
        return needle in self.title.casefold() or needle in self.content.casefold()


class NoteFolder(Record):
    """A named, colored group of notes."""

    name: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(default="folder")
    color: HexColor = Field(default_factory=lambda: parse_hex(SYSTEM_COLORS["blue"]))
    note_ids: list[UUID] = Field(
        default_factory=list,
        description="Ordered membership"
    )

    @field_validator('note_ids')
    @classmethod
    def unique_members(cls, v: list[UUID]) -> list[UUID]:
        if len(set(v)) != len(v):
            raise ValueError("A note can only appear once in a folder")
        return v


# Folders created on first run: (name, icon, palette color)
DEFAULT_FOLDERS: list[tuple[str, str, str]] = [
    ("All Notes", "tray", "blue"),
    ("Pinned", "pin", "orange"),
    ("Recently Deleted", "trash", "red"),
]

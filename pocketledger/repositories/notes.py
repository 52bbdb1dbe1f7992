"""
Note Repositories

Notes and note folders. Folder membership is kept on both sides
(`Note.folder_id` and `NoteFolder.note_ids`); `NoteFolderRepository.move_note`
is the one operation that changes it, and it updates both.

Three default folders are virtual views rather than containers:
"All Notes" shows every note, "Pinned" shows pinned notes and
"Recently Deleted" is always empty (deletion is permanent). Notes cannot be
moved into a virtual folder.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from pocketledger.models.base import ValidationIssue, local_now, to_local_naive
from pocketledger.models.finance import palette_color
from pocketledger.models.notes import (
    DEFAULT_FOLDERS,
    AttachmentType,
    Note,
    NoteAttachment,
    NoteFolder,
)
from pocketledger.repositories.base import Repository, issues_from_error
from pocketledger.services.storage.interface import (
    NotFoundError,
    ValidationFailedError,
)


ALL_NOTES = "All Notes"
PINNED = "Pinned"
RECENTLY_DELETED = "Recently Deleted"
VIRTUAL_FOLDERS = frozenset({ALL_NOTES, PINNED, RECENTLY_DELETED})

# Editing any of these counts as modifying the note
CONTENT_FIELDS = ("title", "content", "tags", "attachments")


def display_order(notes: list[Note]) -> list[Note]:
    """Pinned first, then most recently modified."""
    return sorted(notes, key=lambda n: (not n.is_pinned, -n.modified_at.timestamp()))


class NoteRepository(Repository[Note]):
    """
    Notes. `modified_at` is maintained here: any content edit stamps it,
    pinning and moving do not.
    """

    family = "notes"
    record_type = Note

    def _prepare_update(self, current: Note, updated: Note) -> Note:
        content_changed = any(
            getattr(current, field) != getattr(updated, field)
            for field in CONTENT_FIELDS
        )
        if content_changed and updated.modified_at == current.modified_at:
            updated.modified_at = max(local_now(), updated.created_at)
        return updated

    def _validate(self, record: Note) -> list[ValidationIssue]:
        if record.folder_id is None:
            return []
        folders = self._owner_for("folder_id")
        folder = folders._records.get(record.folder_id) if folders else None
        if folder is not None and record.id not in folder.note_ids:
            return [ValidationIssue(
                field="folder_id",
                issue_type="membership_mismatch",
                message="Folder does not list this note; use move_note()",
                value=str(record.folder_id),
            )]
        return []

    def toggle_pin(self, note_id: UUID) -> Note:
        def flip(note: Note) -> None:
            note.is_pinned = not note.is_pinned
        return self.update(note_id, flip)

    def touch(self, note_id: UUID, when: Optional[datetime] = None) -> Note:
        """Stamp modified_at without changing content."""
        def stamp(note: Note) -> None:
            note.modified_at = max(to_local_naive(when or local_now()), note.created_at)
        return self.update(note_id, stamp)

    def search(self, text: str) -> list[Note]:
        """Case-insensitive title/content match in display order; all notes for blank text."""
        text = text.strip()
        matches = [n for n in self._scan() if not text or n.matches(text)]
        return [n.model_copy(deep=True) for n in display_order(matches)]

    def pinned(self) -> list[Note]:
        return [n.model_copy(deep=True) for n in display_order(
            [n for n in self._scan() if n.is_pinned]
        )]

    def add_attachment(
        self,
        note_id: UUID,
        type: AttachmentType,
        data: bytes,
        filename: str,
        media_type: str = "application/octet-stream",
        created_at: Optional[datetime] = None,
    ) -> NoteAttachment:
        """
        Attach a binary payload to a note.

        Raises:
            NotFoundError: If the note does not exist
            ValidationFailedError: If the attachment is invalid
        """
        try:
            attachment = NoteAttachment(
                type=type,
                data=data,
                filename=filename,
                media_type=media_type,
                created_at=created_at or local_now(),
            )
        except PydanticValidationError as e:
            raise ValidationFailedError(
                "Invalid attachment",
                issues=issues_from_error(e),
            ) from e

        self.update(note_id, lambda n: n.attachments.append(attachment))
        return attachment.model_copy(deep=True)

    def remove_attachment(self, note_id: UUID, attachment_id: UUID) -> Note:
        """
        Raises:
            NotFoundError: If the note or the attachment does not exist
        """
        note = self.get(note_id)
        if not any(a.id == attachment_id for a in note.attachments):
            raise NotFoundError(
                f"Note {note_id} has no attachment with id {attachment_id}"
            )

        def drop(n: Note) -> None:
            n.attachments = [a for a in n.attachments if a.id != attachment_id]
        return self.update(note_id, drop)


class NoteFolderRepository(Repository[NoteFolder]):
    family = "folders"
    record_type = NoteFolder

    def _notes(self) -> NoteRepository:
        notes = self._owner_for("note_ids")
        if notes is None:
            raise ValidationFailedError("Folders are not linked to a note repository")
        return notes

    def _validate(self, record: NoteFolder) -> list[ValidationIssue]:
        if record.name in VIRTUAL_FOLDERS and record.note_ids:
            return [ValidationIssue(
                field="note_ids",
                issue_type="virtual_folder",
                message=f"'{record.name}' cannot hold notes",
            )]
        return []

    def seed_defaults(self) -> list[NoteFolder]:
        """Add the default folders that are missing by name."""
        existing = {f.name for f in self._scan()}
        return [
            self.create(name=name, icon=icon, color=palette_color(color))
            for name, icon, color in DEFAULT_FOLDERS
            if name not in existing
        ]

    def move_note(self, note_id: UUID, folder_id: Optional[UUID]) -> Note:
        """
        Move a note into a folder, or out of every folder with None.

        Raises:
            NotFoundError: If the note or the target folder does not exist
            ValidationFailedError: If the target is a virtual folder
        """
        notes = self._notes()
        note = notes.get(note_id)
        target = self.get(folder_id) if folder_id is not None else None
        if target is not None and target.name in VIRTUAL_FOLDERS:
            raise ValidationFailedError(f"Notes cannot be moved into '{target.name}'")
        if note.folder_id == folder_id:
            return note

        # Folder side first, so the note's new folder already lists it
        with self._notifier.mutation():
            if note.folder_id is not None and note.folder_id in self:
                self.update(
                    note.folder_id,
                    lambda f: setattr(f, "note_ids", [i for i in f.note_ids if i != note_id]),
                )
            if target is not None:
                self.update(folder_id, lambda f: f.note_ids.append(note_id))

            return notes.update(note_id, lambda n: setattr(n, "folder_id", folder_id))

    def notes_in_folder(self, folder_id: UUID) -> list[Note]:
        """
        Notes shown for a folder. Real folders keep their membership order;
        virtual folders use display order.
        """
        folder = self.get(folder_id)
        notes = self._notes()

        if folder.name == ALL_NOTES:
            return notes.search("")
        if folder.name == PINNED:
            return notes.pinned()
        if folder.name == RECENTLY_DELETED:
            return []
        return [notes.get(note_id) for note_id in folder.note_ids if note_id in notes]

    def filtered_notes(
        self,
        folder_id: Optional[UUID] = None,
        search_text: str = "",
    ) -> list[Note]:
        """Notes in a folder (all if None) matching search text, in display order."""
        candidates = (
            self.notes_in_folder(folder_id) if folder_id is not None
            else self._notes().search("")
        )
        text = search_text.strip()
        return display_order([n for n in candidates if not text or n.matches(text)])

"""
Note store for Muddle.

An ordered, write-through collection of kept notes backed by a single
JSON file. Every mutation rewrites the whole file; note volumes are
small enough that diffing is not worth it.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Iterator

from pydantic import TypeAdapter, ValidationError

from muddle.config import get_notes_path
from muddle.errors import StorageError
from muddle.models import Note

logger = logging.getLogger(__name__)

_NOTES_ADAPTER = TypeAdapter(list[Note])


def encode_notes(notes: Iterable[Note]) -> str:
    """Serialise notes to the JSON document stored on disk."""
    data = _NOTES_ADAPTER.dump_python(list(notes), mode="json", by_alias=True)
    return json.dumps(data, indent=2, ensure_ascii=False)


def decode_notes(text: str | bytes) -> list[Note]:
    """
    Parse the on-disk JSON document.

    Raises pydantic.ValidationError if the content is not a list of notes
    (invalid JSON included).
    """
    return _NOTES_ADAPTER.validate_json(text)


class NoteStore:
    """
    Ordered collection of kept notes.

    Entries are never handed out directly: reads return deep copies, so
    editing a restored note cannot change what is stored until it is
    kept again.
    """

    def __init__(self, path: Path | None = None):
        self.path = path or get_notes_path()
        self._notes: list[Note] = []

    def __len__(self) -> int:
        return len(self._notes)

    def __iter__(self) -> Iterator[Note]:
        return iter(self.notes)

    @property
    def notes(self) -> list[Note]:
        """Copies of all stored notes, in save order."""
        return [note.copy_deep() for note in self._notes]

    def load(self) -> list[Note]:
        """
        Load notes from disk, replacing the in-memory collection.

        A missing or unreadable file counts as an empty store.
        """
        if not self.path.exists():
            self._notes = []
            return []

        try:
            notes = decode_notes(self.path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning("Ignoring unreadable notes file %s: %s", self.path, e)
            notes = []

        self._notes = notes
        return self.notes

    def append(self, note: Note) -> None:
        """
        Add a note and persist the whole collection.

        A note whose id is already stored moves to the end: the old entry
        is dropped so ids stay unique and order stays save order.
        The in-memory change stands even if persisting fails.
        """
        stored = note.copy_deep()
        self._notes = [existing for existing in self._notes if existing.id != stored.id]
        self._notes.append(stored)

        self.persist()

    def persist(self, notes: Iterable[Note] | None = None) -> None:
        """
        Write notes (default: the current collection) to disk atomically.

        Writes a temp file next to the target, fsyncs it and renames it over
        the old file, so a crash mid-write leaves the previous version.
        """
        payload = encode_notes(self._notes if notes is None else notes)
        tmp_name = None

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())  # Ensure durability before the rename
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error("Failed to write notes to %s: %s", self.path, e)
            raise StorageError(f"Could not save notes to {self.path}: {e}") from e

    def get(self, note_id: str) -> Note | None:
        """Get a copy of a stored note by ID."""
        for note in self._notes:
            if note.id == note_id:
                return note.copy_deep()
        return None

    def filter_by_tag(self, tag: str) -> list[Note]:
        """Stored notes carrying the exact tag. An empty tag matches all."""
        if not tag:
            return self.notes
        return [note.copy_deep() for note in self._notes if note.has_tag(tag)]

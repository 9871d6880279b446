"""
Note session for Muddle.

Holds the note being edited plus the browsing state around it (lens,
tag search, selected history note), and is the only path from the
editor into the note store.
"""

import asyncio
import logging
from typing import Callable

from muddle.classifier import Classifier
from muddle.config import load_config
from muddle.models import Note, utc_now
from muddle.store import NoteStore
from muddle.watcher import ChangeWatcher

logger = logging.getLogger(__name__)

LENSES = ("Summary", "Client Email", "Creative Direction")


class NoteSession:
    """The active note and everything the user can do to it."""

    def __init__(
        self,
        store: NoteStore,
        classifier: Classifier,
        poll_interval: float | None = None,
        on_update: Callable[[Note], None] | None = None,
    ):
        if poll_interval is None:
            poll_interval = float(load_config()["watcher"]["poll_interval"])

        self.store = store
        self.note = Note()
        self.watcher = ChangeWatcher(
            self,
            classifier,
            poll_interval=poll_interval,
            on_update=on_update,
        )

        self.selected_lens: str | None = None
        self.search_tag = ""
        self._selected_history_id: str | None = None

    # Editing

    def set_raw_text(self, text: str) -> None:
        self.note.raw_text = text

    def add_tag(self, tag: str) -> bool:
        """
        Add a tag to the active note.

        Whitespace is trimmed; empty or already-present tags are ignored
        (exact, case-sensitive match). Returns True if the tag was added.
        """
        tag = tag.strip()
        if not tag or self.note.has_tag(tag):
            return False
        self.note.tags.append(tag)
        return True

    def keep(self) -> Note:
        """
        Save the active note and start a fresh one.

        Returns the kept copy. StorageError propagates after the store has
        taken the note in memory, so nothing is lost while the app runs.
        """
        self.note.date_modified = utc_now()
        kept = self.note.copy_deep()
        self.note = Note()
        self.store.append(kept)
        logger.info("Kept note %s", kept.id)
        return kept

    def restore(self, note: Note) -> None:
        """Make a copy of a stored note the active note."""
        self.note = note.copy_deep()

    def refresh_now(self) -> asyncio.Task | None:
        """Classify the active note immediately, changed or not."""
        return self.watcher.dispatch(force=True)

    # Lenses

    def select_lens(self, lens: str) -> None:
        if lens not in LENSES:
            raise ValueError(f"Unknown lens: {lens}")
        self.selected_lens = lens

    def clear_lens(self) -> None:
        self.selected_lens = None

    # History

    def history(self) -> list[Note]:
        """Stored notes matching the current tag search."""
        return self.store.filter_by_tag(self.search_tag)

    def clear_search(self) -> None:
        self.search_tag = ""

    def select_history(self, note_id: str) -> Note:
        """Select a stored note for preview. Raises KeyError if unknown."""
        note = self.store.get(note_id)
        if note is None:
            raise KeyError(note_id)
        self._selected_history_id = note_id
        return note

    @property
    def selected_history_note(self) -> Note | None:
        if self._selected_history_id is None:
            return None
        return self.store.get(self._selected_history_id)

    def restore_selected(self) -> Note | None:
        """Restore the selected history note and clear the selection."""
        selected = self.selected_history_note
        if selected is not None:
            self.restore(selected)
        self._selected_history_id = None
        return selected

    def dismiss_history(self) -> None:
        self._selected_history_id = None

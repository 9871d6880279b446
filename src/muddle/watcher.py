"""
Change watcher for Muddle.

Polls the active note on a fixed period and re-classifies it when the
text has changed since the last request. At most one request is in
flight at any time; edits made meanwhile are picked up on a later tick.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from muddle.classifier import ClassificationResult, Classifier
from muddle.config import DEFAULT_POLL_INTERVAL

if TYPE_CHECKING:
    from muddle.models import Note
    from muddle.session import NoteSession

logger = logging.getLogger(__name__)


class ChangeWatcher:
    """Timer-driven re-classification of the session's active note."""

    def __init__(
        self,
        session: "NoteSession",
        classifier: Classifier,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_update: Callable[["Note"], None] | None = None,
    ):
        self.session = session
        self.classifier = classifier
        self.poll_interval = poll_interval
        self.on_update = on_update

        self.last_text = ""
        self.in_flight = False
        self.last_error: Exception | None = None

        self._request: asyncio.Task | None = None
        self._loop_task: asyncio.Task | None = None

    def tick(self) -> asyncio.Task | None:
        """One poll: classify the active note if its text has changed."""
        return self.dispatch()

    def dispatch(self, force: bool = False) -> asyncio.Task | None:
        """
        Start a classification request for the active note.

        Skipped when a request is already in flight, or (unless force is
        set) when the text matches what was last sent. Returns the request
        task, or None if nothing was started.
        """
        if self.in_flight:
            logger.debug("Request in flight, skipping dispatch")
            return None

        note = self.session.note
        if not force and note.raw_text == self.last_text:
            return None

        self.in_flight = True
        self.last_text = note.raw_text
        self._request = asyncio.create_task(self._classify(note.id, note.raw_text))
        return self._request

    async def _classify(self, note_id: str, text: str) -> ClassificationResult | None:
        try:
            result = await self.classifier.classify(text)
        except Exception as e:
            self.last_error = e
            logger.warning("Classification request crashed: %s", e, exc_info=True)
            return None
        finally:
            self.in_flight = False

        self._apply(note_id, result)
        return result

    def _apply(self, note_id: str, result: ClassificationResult) -> None:
        """Apply a finished request to the session, if it still applies."""
        if result.status == "failed":
            self.last_error = result.error
            logger.warning(
                "Classification failed (%s): %s",
                type(result.error).__name__,
                result.error,
            )
            return

        if not result.ok:
            return

        if self.session.note.id != note_id:
            logger.info("Discarding stale classification for note %s", note_id)
            return

        self.last_error = None
        self.session.note.structured = result.structured
        if self.on_update:
            self.on_update(self.session.note)

    async def run(self) -> None:
        """Tick forever, one poll_interval apart."""
        while True:
            await asyncio.sleep(self.poll_interval)
            self.tick()

    def start(self) -> asyncio.Task:
        """Start polling in the background on the running event loop."""
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self.run())
        return self._loop_task

    async def stop(self) -> None:
        """Stop polling and wait for any in-flight request to finish."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        if self._request is not None and not self._request.done():
            await self._request

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

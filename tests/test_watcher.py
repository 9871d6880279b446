"""Tests for the change watcher."""

import asyncio
import logging

import httpx
import pytest

from muddle.classifier import ClassificationResult
from muddle.errors import ServiceProtocolError, TransportError
from muddle.models import Note, StructuredContent
from muddle.session import NoteSession
from tests.fakes import make_classifier, structured_reply


async def settle() -> None:
    """Let freshly created tasks run up to their first await."""
    await asyncio.sleep(0)


class TestTick:
    """Change detection and dispatch, driven tick by tick."""

    @pytest.mark.asyncio
    async def test_no_change_no_request(self, session, fake_classifier):
        assert session.watcher.tick() is None
        assert fake_classifier.calls == []

    @pytest.mark.asyncio
    async def test_changed_text_dispatches(self, session, fake_classifier):
        session.set_raw_text("hello")
        request = session.watcher.tick()
        assert request is not None
        assert session.watcher.in_flight
        assert session.watcher.last_text == "hello"
        await request
        assert not session.watcher.in_flight
        assert fake_classifier.calls == ["hello"]

    @pytest.mark.asyncio
    async def test_unchanged_text_classified_once(self, session, fake_classifier):
        session.set_raw_text("hello")
        first = session.watcher.tick()
        await first
        assert session.watcher.tick() is None
        assert session.watcher.tick() is None
        assert fake_classifier.calls == ["hello"]

    @pytest.mark.asyncio
    async def test_one_request_in_flight(self, session, fake_classifier):
        fake_classifier.gate = asyncio.Event()

        session.set_raw_text("first draft")
        first = session.watcher.tick()
        await settle()

        session.set_raw_text("second draft")
        assert session.watcher.tick() is None
        assert session.watcher.tick() is None
        assert fake_classifier.calls == ["first draft"]

        fake_classifier.gate.set()
        await first

        second = session.watcher.tick()
        assert second is not None
        await second
        assert fake_classifier.calls == ["first draft", "second draft"]

    @pytest.mark.asyncio
    async def test_only_latest_text_is_sent(self, session, fake_classifier):
        fake_classifier.gate = asyncio.Event()
        session.set_raw_text("a")
        first = session.watcher.tick()
        await settle()

        for text in ("ab", "abc", "abcd"):
            session.set_raw_text(text)
            session.watcher.tick()

        fake_classifier.gate.set()
        await first
        await session.watcher.tick()
        assert fake_classifier.calls == ["a", "abcd"]

    @pytest.mark.asyncio
    async def test_success_replaces_structured(self, session):
        session.note.structured = StructuredContent(ideas=["old idea"])
        session.set_raw_text("new text")
        await session.watcher.tick()
        assert session.note.structured == StructuredContent(summary="new text")

    @pytest.mark.asyncio
    async def test_on_update_called(self, store, fake_classifier):
        updates = []
        session = NoteSession(store, fake_classifier, on_update=updates.append)
        session.set_raw_text("hello")
        await session.watcher.tick()
        assert [note.structured.summary for note in updates] == ["hello"]


class TestFailures:
    """Failed requests leave the note alone."""

    @pytest.mark.asyncio
    async def test_failure_keeps_content_and_logs(self, session, fake_classifier, caplog):
        previous = StructuredContent(ideas=["keep me"], summary="old")
        session.note.structured = previous.model_copy(deep=True)
        error = ServiceProtocolError("Unexpected response envelope")
        fake_classifier.results = [ClassificationResult(status="failed", error=error)]

        session.set_raw_text("changed")
        with caplog.at_level(logging.WARNING, logger="muddle.watcher"):
            await session.watcher.tick()

        assert session.note.structured == previous
        assert session.watcher.last_error is error
        assert not session.watcher.in_flight
        assert "ServiceProtocolError" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_retried_only_on_change_or_refresh(self, session, fake_classifier):
        fake_classifier.results = [
            ClassificationResult(status="failed", error=TransportError("down")),
        ]
        session.set_raw_text("text")
        await session.watcher.tick()
        assert session.watcher.tick() is None

        await session.refresh_now()
        assert fake_classifier.calls == ["text", "text"]
        assert session.watcher.last_error is None
        assert session.note.structured.summary == "text"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_logged(self, store, caplog):
        class CrashingClassifier:
            async def classify(self, raw_text):
                raise httpx.InvalidURL("bad base_url")

        session = NoteSession(store, CrashingClassifier(), poll_interval=0.01)
        session.note.structured = StructuredContent(ideas=["keep me"])
        session.set_raw_text("text")

        with caplog.at_level(logging.WARNING, logger="muddle.watcher"):
            session.watcher.start()
            await asyncio.sleep(0.05)
            await session.watcher.stop()

        assert isinstance(session.watcher.last_error, httpx.InvalidURL)
        assert not session.watcher.in_flight
        assert session.note.structured == StructuredContent(ideas=["keep me"])
        assert "bad base_url" in caplog.text

    @pytest.mark.asyncio
    async def test_empty_result_changes_nothing(self, session, fake_classifier):
        session.note.structured = StructuredContent(actions=["x"])
        fake_classifier.results = [ClassificationResult(status="empty")]
        session.set_raw_text("   ")
        await session.watcher.tick()
        assert session.note.structured == StructuredContent(actions=["x"])
        assert session.watcher.last_error is None


class TestStaleResults:
    """Results for a note that is no longer active are dropped."""

    @pytest.mark.asyncio
    async def test_keep_during_request(self, session, store, fake_classifier):
        fake_classifier.gate = asyncio.Event()
        session.set_raw_text("first note")
        request = session.watcher.tick()
        await settle()

        kept = session.keep()
        fake_classifier.gate.set()
        await request

        assert session.note.id != kept.id
        assert session.note.structured == StructuredContent()
        assert store.get(kept.id).structured == StructuredContent()

    @pytest.mark.asyncio
    async def test_restore_during_request(self, session, store, fake_classifier):
        stored = Note(raw_text="stored")
        store.append(stored)

        fake_classifier.gate = asyncio.Event()
        session.set_raw_text("draft")
        request = session.watcher.tick()
        await settle()

        session.restore(store.get(stored.id))
        fake_classifier.gate.set()
        await request

        assert session.note.raw_text == "stored"
        assert session.note.structured == StructuredContent()


class TestScheduling:
    """The background polling loop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, session, fake_classifier):
        session.watcher.start()
        assert session.watcher.running
        session.set_raw_text("typed while polling")
        await asyncio.sleep(0.1)
        await session.watcher.stop()

        assert not session.watcher.running
        assert fake_classifier.calls == ["typed while polling"]
        assert session.note.structured.summary == "typed while polling"

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, session):
        first = session.watcher.start()
        assert session.watcher.start() is first
        await session.watcher.stop()

    @pytest.mark.asyncio
    async def test_stop_waits_for_request(self, session, fake_classifier):
        fake_classifier.gate = asyncio.Event()
        session.watcher.start()
        session.set_raw_text("slow")
        await asyncio.sleep(0.05)
        assert session.watcher.in_flight

        asyncio.get_running_loop().call_later(0.01, fake_classifier.gate.set)
        await session.watcher.stop()
        assert not session.watcher.in_flight
        assert session.note.structured.summary == "slow"


class TestWithHttpClassifier:
    """The watcher driving the real classifier over a mock transport."""

    @pytest.mark.asyncio
    async def test_buy_milk_scenario(self, store):
        def handler(request):
            return httpx.Response(200, json=structured_reply(
                ideas=[],
                decisions=["Decide on venue by Friday"],
                questions=[],
                actions=["Buy milk"],
                summary="Shopping and event planning",
            ))

        session = NoteSession(store, make_classifier(handler))
        session.note.structured = StructuredContent(ideas=["old idea"])
        session.set_raw_text("Buy milk. Decide on venue by Friday.")
        await session.watcher.tick()

        assert session.note.structured == StructuredContent(
            ideas=[],
            decisions=["Decide on venue by Friday"],
            questions=[],
            actions=["Buy milk"],
            summary="Shopping and event planning",
        )

    @pytest.mark.asyncio
    async def test_missing_choices_leaves_content(self, store):
        def handler(request):
            return httpx.Response(200, json={"object": "chat.completion"})

        session = NoteSession(store, make_classifier(handler))
        before = StructuredContent(ideas=["old idea"], summary="before")
        session.note.structured = before.model_copy(deep=True)
        session.set_raw_text("anything")
        await session.watcher.tick()

        assert session.note.structured == before
        assert isinstance(session.watcher.last_error, ServiceProtocolError)

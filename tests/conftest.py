"""Common test fixtures for Muddle."""

import pytest

from muddle.session import NoteSession
from muddle.store import NoteStore
from tests.fakes import FakeClassifier


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point every muddle path at a temp dir and drop real API keys."""
    monkeypatch.setenv("MUDDLE_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("MUDDLE_DEBUG", raising=False)


@pytest.fixture
def notes_path(tmp_path):
    return tmp_path / "data" / "notes.json"


@pytest.fixture
def store(notes_path):
    """An empty note store backed by a temp file."""
    return NoteStore(notes_path)


@pytest.fixture
def fake_classifier():
    return FakeClassifier()


@pytest.fixture
def session(store, fake_classifier):
    """A session wired to the temp store and the fake classifier."""
    return NoteSession(store, fake_classifier, poll_interval=0.01)

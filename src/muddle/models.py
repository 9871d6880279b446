"""
Data model for Muddle.

Notes are pydantic models so the same classes validate LLM output,
serialise the notes file and hold the session's working copy.
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# The four list-valued categories, in display order
CATEGORIES = ("ideas", "decisions", "questions", "actions")


def generate_id() -> str:
    """Generate a unique note ID (UUID4, string form)."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StructuredContent(BaseModel):
    """Categorised decomposition of a note's raw text."""

    ideas: list[str] = Field(default_factory=list)
    decisions: list[str] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)
    summary: str | None = None


class Note(BaseModel):
    """
    A single note.

    Serialised with camelCase keys (rawText, dateCreated, ...) so the
    notes file keeps the layout earlier versions wrote.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    raw_text: str = ""
    structured: StructuredContent = Field(default_factory=StructuredContent)
    tags: list[str] = Field(default_factory=list)
    date_created: datetime = Field(default_factory=utc_now)
    date_modified: datetime = Field(default_factory=utc_now)

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, tags: list[str]) -> list[str]:
        """Drop repeated tags, keeping the first occurrence."""
        return list(dict.fromkeys(tags))

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def copy_deep(self) -> "Note":
        """Return an independent copy (no shared lists or sub-models)."""
        return self.model_copy(deep=True)

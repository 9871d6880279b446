"""
LLM Classifier for Muddle.

Decomposes a note's raw text into ideas, decisions, questions, actions
and a summary using an OpenAI-compatible chat completions API.
"""

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from muddle.config import DEFAULT_BASE_URL, DEFAULT_MODEL, load_config
from muddle.errors import (
    ClassificationError,
    ClassificationFormatError,
    ServiceProtocolError,
    TransportError,
)
from muddle.models import CATEGORIES, StructuredContent

logger = logging.getLogger(__name__)


CLASSIFIER_PROMPT = (
    "Classify the following text into ideas, decisions, questions, actions, "
    "and summary as JSON:\n"
)


class _Message(BaseModel):
    content: str


class _Choice(BaseModel):
    message: _Message


class ChatCompletion(BaseModel):
    """The slice of the chat completions response we rely on."""

    choices: list[_Choice] = Field(min_length=1)


@dataclass
class ClassificationResult:
    """
    Outcome of a classify() call.

    status is one of:
    - "classified": structured holds the new content
    - "empty": input was blank, no request was sent
    - "failed": error holds the ClassificationError
    """

    status: str
    structured: StructuredContent | None = None
    error: ClassificationError | None = None
    llm_model: str | None = None
    processing_time_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "classified"


def build_prompt(raw_text: str) -> str:
    return CLASSIFIER_PROMPT + raw_text


def parse_envelope(body: bytes | str) -> str:
    """
    Stage 1: pull the first choice's message content out of the response.

    Raises ServiceProtocolError if the body is not the expected envelope.
    """
    try:
        completion = ChatCompletion.model_validate_json(body)
    except ValidationError as e:
        raise ServiceProtocolError(f"Unexpected response envelope: {e}") from e
    return completion.choices[0].message.content


def _strip_code_fence(content: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one."""
    text = content.strip()
    if text.startswith("```"):
        # Remove opening ``` and optional language tag
        lines = text.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


def parse_structured(content: str) -> StructuredContent:
    """
    Stage 2: parse the model's content as a structured-content document.

    Every category key must be present. A reply like {} is a format error,
    not an empty note.
    """
    try:
        data = json.loads(_strip_code_fence(content))
    except json.JSONDecodeError as e:
        raise ClassificationFormatError(f"Content is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ClassificationFormatError(
            f"Expected a JSON object, got {type(data).__name__}"
        )

    missing = [name for name in CATEGORIES if name not in data]
    if missing:
        raise ClassificationFormatError(f"Missing categories: {', '.join(missing)}")

    try:
        return StructuredContent.model_validate(data)
    except ValidationError as e:
        raise ClassificationFormatError(f"Invalid structured content: {e}") from e


class Classifier:
    """LLM-powered classifier for notes. Talks to OpenAI-compatible APIs."""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or load_config()
        self.llm_config = self.config.get("llm", {})
        self.transport = transport

        self.api_key = (
            self.llm_config.get("openai_api_key")
            or os.environ.get("OPENAI_API_KEY")
        )
        if not self.api_key:
            raise ValueError(
                "OpenAI API key not found. Set OPENAI_API_KEY env var or add to config."
            )

        self.model = self.llm_config.get("model", DEFAULT_MODEL)
        self.base_url = self.llm_config.get("base_url", DEFAULT_BASE_URL).rstrip("/")
        self.max_tokens = int(self.llm_config.get("max_tokens", 512))
        self.timeout = float(self.llm_config.get("timeout", 30.0))

    async def classify(self, raw_text: str) -> ClassificationResult:
        """
        Classify raw note text.

        Never raises ClassificationError: failures come back as a result
        with status "failed" so the caller can keep the last good content.
        """
        if not raw_text.strip():
            return ClassificationResult(status="empty", llm_model=self.model)

        start_time = time.monotonic()

        try:
            body = await self._call_openai(build_prompt(raw_text))
            content = parse_envelope(body)
            structured = parse_structured(content)
        except ClassificationError as e:
            return ClassificationResult(
                status="failed",
                error=e,
                llm_model=self.model,
                processing_time_ms=int((time.monotonic() - start_time) * 1000),
            )

        processing_time = int((time.monotonic() - start_time) * 1000)
        logger.debug("Classified %d chars with %s in %dms", len(raw_text), self.model, processing_time)

        return ClassificationResult(
            status="classified",
            structured=structured,
            llm_model=self.model,
            processing_time_ms=processing_time,
        )

    async def _call_openai(self, prompt: str) -> bytes:
        """Call the chat completions endpoint. Returns the raw response body."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": self.model,
                        "messages": [{"role": "user", "content": prompt}],
                        "max_tokens": self.max_tokens,
                    },
                )
                response.raise_for_status()
                return response.content
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise TransportError(f"Service returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request failed: {e}") from e


# tests/conftest.py
import math
from unittest.mock import AsyncMock, Mock

import pytest

from pod_match.completions import CompletionClient
from pod_match.db import FloatValue, IntValue, NullValue, Params, SqlExecutor, TextValue, VectorValue
from pod_match.embeddings import EmbeddingClient
from pod_match.recommender import (
    INSERT_PODCAST_SQL,
    INSERT_SUGGESTION_SQL,
    RECOMMEND_PODCASTS_SQL,
    SELECT_SUGGESTED_PODCASTS_SQL,
    SELECT_USER_EMBEDDING_SQL,
    UPDATE_USER_HISTORY_SQL,
    PodcastService,
)

EMBEDDING_DIMENSIONS = 3


class FakeExecutor:
    """In-memory stand-in for SqlExecutor that understands the service's statements."""

    def __init__(self):
        self.podcasts: list[dict] = []
        self.users: dict[int, dict] = {}
        self.suggestions: list[dict] = []
        self.statements: list[tuple[str, Params | None]] = []

    def add_user(self, user_id: int, embedding=None, listening_history: str | None = None):
        self.users[user_id] = {
            "listening_history": TextValue(listening_history) if listening_history else NullValue(),
            "embedding": VectorValue(tuple(embedding)) if embedding is not None else NullValue(),
        }

    def add_podcast(self, title: str, embedding=None, summary: str = "") -> int:
        podcast_id = len(self.podcasts) + 1
        self.podcasts.append({
            "id": IntValue(podcast_id),
            "title": TextValue(title),
            "summary": TextValue(summary or f"About {title}"),
            "transcript": TextValue(f"Transcript of {title}"),
            "embedding": VectorValue(tuple(embedding)) if embedding is not None else NullValue(),
        })
        return podcast_id

    @property
    def writes(self) -> list[str]:
        return [
            sql for sql, _ in self.statements
            if sql in (INSERT_PODCAST_SQL, UPDATE_USER_HISTORY_SQL, INSERT_SUGGESTION_SQL)
        ]

    async def execute(self, sql: str, params: Params | None = None) -> list[dict]:
        self.statements.append((sql, params))
        params = params or Params()

        if sql == INSERT_PODCAST_SQL:
            self.podcasts.append({
                "id": IntValue(len(self.podcasts) + 1),
                "title": params["title"],
                "summary": params["summary"],
                "transcript": params["transcript"],
                "embedding": params["embedding"],
            })
            return []

        if sql == UPDATE_USER_HISTORY_SQL:
            user = self.users.get(params["id"].value)
            if user is not None:
                user["listening_history"] = params["history"]
                user["embedding"] = params["embedding"]
            return []

        if sql == SELECT_USER_EMBEDDING_SQL:
            user = self.users.get(params["id"].value)
            return [{"embedding": user["embedding"]}] if user else []

        if sql == RECOMMEND_PODCASTS_SQL:
            target = params["embedding"].value
            ranked = sorted(
                (
                    (math.dist(p["embedding"].value, target), p)
                    for p in self.podcasts
                    if isinstance(p["embedding"], VectorValue)
                ),
                key=lambda pair: pair[0],
            )
            return [
                {
                    "id": p["id"],
                    "title": p["title"],
                    "summary": p["summary"],
                    "similarity": FloatValue(distance),
                }
                for distance, p in ranked[: params["limit"].value]
            ]

        if sql == INSERT_SUGGESTION_SQL:
            self.suggestions.append({
                "user_id": params["user_id"].value,
                "podcast_id": params["podcast_id"].value,
                "similarity_score": params["similarity"].value,
            })
            return []

        if sql == SELECT_SUGGESTED_PODCASTS_SQL:
            user_id = params["user_id"].value
            titles = {p["id"].value: p["title"] for p in self.podcasts}
            rows = sorted(
                (s for s in self.suggestions if s["user_id"] == user_id),
                key=lambda s: s["similarity_score"],
            )
            return [
                {
                    "user_id": IntValue(s["user_id"]),
                    "podcast_id": IntValue(s["podcast_id"]),
                    "title": titles[s["podcast_id"]],
                }
                for s in rows
            ]

        raise AssertionError(f"Unexpected statement: {sql}")


def fake_embedding(text: str) -> list[float]:
    """Deterministic 3-dim embedding: length, vowel count, word count."""
    vowels = sum(1 for ch in text.lower() if ch in "aeiou")
    return [float(len(text)), float(vowels), float(len(text.split()))]


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def mock_embeddings():
    client = Mock(spec=EmbeddingClient)
    client.dimensions = EMBEDDING_DIMENSIONS
    client.embed = AsyncMock(side_effect=fake_embedding)
    return client


@pytest.fixture
def mock_completions():
    client = Mock(spec=CompletionClient)

    async def complete(prompt: str) -> str:
        if prompt.startswith("Summarize the following podcast transcript:"):
            return "A show about " + prompt.split("\n")[1][:40]
        return "Five words or less here"

    client.complete = AsyncMock(side_effect=complete)
    return client


@pytest.fixture
def service(fake_executor, mock_embeddings, mock_completions):
    return PodcastService(fake_executor, mock_embeddings, mock_completions)


@pytest.fixture
def mock_executor():
    """A Mock shaped like SqlExecutor, for tests that script rows by hand."""
    executor = Mock(spec=SqlExecutor)
    executor.execute = AsyncMock(return_value=[])
    return executor

"""Podcast ingestion, listening history and embedding-based recommendations."""

import logging
import re

from .completions import CompletionClient
from .config import RECOMMENDATION_LIMIT, SHORT_DESCRIPTION_MAX_WORDS
from .db import (
    FloatValue,
    IntValue,
    NullValue,
    Params,
    SqlExecutor,
    SqlValue,
    TextValue,
    VectorValue,
)
from .embeddings import EmbeddingClient
from .models import PodcastRecommendation, SuggestedPodcast

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """\
Summarize the following podcast transcript:
{transcript}
Summary:"""

SHORT_DESCRIPTION_PROMPT = """\
Summarize the following podcast in {max_words} words or less:

Podcast: {title}
Description: {summary}

Summary:"""

INSERT_PODCAST_SQL = """
    INSERT INTO podcast_episodes (title, summary, transcript, embedding)
    VALUES (%(title)s, %(summary)s, %(transcript)s, %(embedding)s)
"""

UPDATE_USER_HISTORY_SQL = """
    UPDATE users SET listening_history = %(history)s, embedding = %(embedding)s
    WHERE id = %(id)s
"""

SELECT_USER_EMBEDDING_SQL = "SELECT embedding FROM users WHERE id = %(id)s"

# Nearest first by L2 distance; ties fall back to whatever order the database returns.
RECOMMEND_PODCASTS_SQL = """
    SELECT id, title, summary, embedding <-> %(embedding)s AS similarity
    FROM podcast_episodes
    WHERE embedding IS NOT NULL
    ORDER BY similarity ASC
    LIMIT %(limit)s
"""

INSERT_SUGGESTION_SQL = """
    INSERT INTO suggested_podcasts (user_id, podcast_id, similarity_score)
    VALUES (%(user_id)s, %(podcast_id)s, %(similarity)s)
"""

SELECT_SUGGESTED_PODCASTS_SQL = """
    SELECT sp.user_id, pe.id AS podcast_id, pe.title
    FROM suggested_podcasts sp
    JOIN podcast_episodes pe ON sp.podcast_id = pe.id
    WHERE sp.user_id = %(user_id)s
    ORDER BY sp.similarity_score ASC
"""

_INTEGER_RE = re.compile(r"^\s*[+-]?\d+\s*$", re.ASCII)
_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1


class InvalidUserIdError(ValueError):
    """A user id that is not a 32-bit integer."""


def parse_user_id(raw: str, field: str = "user_id") -> int:
    """Parse a user id the way the ``users.id`` INTEGER column can hold it."""
    if raw is None or not _INTEGER_RE.match(raw):
        raise InvalidUserIdError(f"Invalid {field} format. Must be an integer.")
    value = int(raw)
    if not _INT32_MIN <= value <= _INT32_MAX:
        raise InvalidUserIdError(f"Invalid {field} format. Must be an integer.")
    return value


def _as_text(value: SqlValue) -> str:
    match value:
        case TextValue(v):
            return v
        case IntValue(v) | FloatValue(v):
            return str(v)
        case NullValue():
            return ""
    raise TypeError(f"Expected a text-like column, got {value!r}")


def _as_int(value: SqlValue) -> int:
    match value:
        case IntValue(v):
            return v
    raise TypeError(f"Expected an integer column, got {value!r}")


def _as_float(value: SqlValue) -> float:
    match value:
        case FloatValue(v):
            return v
        case IntValue(v):
            return float(v)
    raise TypeError(f"Expected a numeric column, got {value!r}")


class PodcastService:
    """Coordinates the completion and embedding clients with the database.

    Each method issues its statements independently; there is no transaction
    spanning the statements of one call.
    """

    def __init__(
        self,
        executor: SqlExecutor,
        embeddings: EmbeddingClient,
        completions: CompletionClient,
        recommendation_limit: int = RECOMMENDATION_LIMIT,
    ):
        self.executor = executor
        self.embeddings = embeddings
        self.completions = completions
        self.recommendation_limit = recommendation_limit

    async def add_podcast(self, title: str, transcript: str) -> str:
        """Summarize, embed and store a transcript. Returns the generated summary."""
        summary = await self.completions.complete(SUMMARY_PROMPT.format(transcript=transcript))
        embedding = await self.embeddings.embed(summary)

        await self.executor.execute(
            INSERT_PODCAST_SQL,
            Params()
            .text("title", title)
            .text("summary", summary)
            .text("transcript", transcript)
            .vector("embedding", embedding),
        )
        logger.info(f"Stored podcast '{title}' ({len(embedding)}-dim embedding)")
        return summary

    async def update_user_history(self, user_id: int, listening_history: str):
        """Replace a user's listening history and re-derive its embedding."""
        embedding = await self.embeddings.embed(listening_history)
        await self.executor.execute(
            UPDATE_USER_HISTORY_SQL,
            Params()
            .text("history", listening_history)
            .vector("embedding", embedding)
            .integer("id", user_id),
        )
        logger.info(f"Updated listening history for user {user_id}")

    async def get_user_embedding(self, user_id: int) -> VectorValue | None:
        rows = await self.executor.execute(
            SELECT_USER_EMBEDDING_SQL, Params().integer("id", user_id)
        )
        if not rows:
            return None
        match rows[0].get("embedding"):
            case VectorValue() as embedding:
                return embedding
        return None

    async def recommend(self, user_id: int) -> list[PodcastRecommendation] | None:
        """Recommend the nearest podcasts to a user and log each suggestion.

        Returns None when the user doesn't exist or has no embedding yet.
        Candidates are handled one at a time in rank order; any failure aborts
        the whole call, leaving suggestions already logged in place.
        """
        user_embedding = await self.get_user_embedding(user_id)
        if user_embedding is None:
            return None

        candidates = await self.executor.execute(
            RECOMMEND_PODCASTS_SQL,
            Params()
            .vector("embedding", user_embedding.value)
            .integer("limit", self.recommendation_limit),
        )
        logger.info(f"Found {len(candidates)} candidate podcasts for user {user_id}")

        recommendations: list[PodcastRecommendation] = []
        for row in candidates:
            podcast_id = _as_int(row["id"])
            title = _as_text(row["title"])
            similarity = _as_float(row["similarity"])

            prompt = SHORT_DESCRIPTION_PROMPT.format(
                max_words=SHORT_DESCRIPTION_MAX_WORDS,
                title=title,
                summary=_as_text(row["summary"]),
            )
            short_description = await self.completions.complete(prompt)

            await self.executor.execute(
                INSERT_SUGGESTION_SQL,
                Params()
                .integer("user_id", user_id)
                .integer("podcast_id", podcast_id)
                .real("similarity", similarity),
            )

            recommendations.append(
                PodcastRecommendation(
                    id=str(podcast_id),
                    title=title,
                    summary=short_description,
                    similarity=similarity,
                )
            )

        logger.info(f"Logged {len(recommendations)} suggestions for user {user_id}")
        return recommendations

    async def get_suggested_podcasts(self, user_id: int) -> list[SuggestedPodcast]:
        """Suggestion history for a user, most similar first."""
        rows = await self.executor.execute(
            SELECT_SUGGESTED_PODCASTS_SQL, Params().integer("user_id", user_id)
        )
        return [
            SuggestedPodcast(
                user_id=_as_int(row["user_id"]),
                podcast_id=_as_int(row["podcast_id"]),
                title=_as_text(row["title"]),
            )
            for row in rows
        ]

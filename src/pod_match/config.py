# src/pod_match/config.py
"""
Service Configuration

Values are read from the environment (``api.py`` loads the repo-root ``.env``
first). Constructor arguments always win over environment variables.

RECOMMENDATIONS:
- RECOMMENDATION_LIMIT: nearest podcasts returned per request
- SHORT_DESCRIPTION_MAX_WORDS: word cap given to the model for each description

IDENTIFIER PARSING:
Two endpoints (update-user-history, recommend-podcasts) have historically let a
malformed integer id escape as an unhandled error, while get-suggested-podcasts
answers 400. IdParsePolicy makes that choice explicit:
- PROPAGATE: raise InvalidUserIdError and let the host turn it into a 500
- STRICT: answer 400 like get-suggested-podcasts does
"""

import os
from enum import Enum


class IdParsePolicy(str, Enum):
    PROPAGATE = "propagate"
    STRICT = "strict"

    @classmethod
    def from_env(cls) -> "IdParsePolicy":
        raw = os.getenv("POD_MATCH_ID_PARSE_POLICY", cls.PROPAGATE.value)
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise ValueError(
                f"POD_MATCH_ID_PARSE_POLICY must be one of "
                f"{[p.value for p in cls]}, got {raw!r}"
            ) from None


def env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to ``default``."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


# Recommendations
RECOMMENDATION_LIMIT = 3
SHORT_DESCRIPTION_MAX_WORDS = 5

# Embeddings (OpenAI)
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSIONS = 1536

# Completions (Claude)
DEFAULT_COMPLETION_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_COMPLETION_MAX_TOKENS = 1024

import os

from openai import AsyncOpenAI

from .config import DEFAULT_EMBEDDING_DIMENSIONS, DEFAULT_EMBEDDING_MODEL, env_int


class EmbeddingClient:
    """Async client turning text into fixed-length vectors via the OpenAI API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        dimensions: int | None = None,
    ):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY", "")
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY must be set")
        self.model = model or os.getenv("POD_MATCH_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL)
        self.dimensions = dimensions or env_int(
            "POD_MATCH_EMBEDDING_DIMENSIONS", DEFAULT_EMBEDDING_DIMENSIONS
        )
        # Provider errors surface to the caller as-is; no client-side retries.
        self.client = AsyncOpenAI(api_key=self.api_key, max_retries=0)

    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for ``text``."""
        if not text:
            raise ValueError("Cannot embed empty text")

        response = await self.client.embeddings.create(
            model=self.model,
            input=text,
            dimensions=self.dimensions,
        )
        return [float(x) for x in response.data[0].embedding]

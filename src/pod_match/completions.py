import os

import anthropic

from .config import DEFAULT_COMPLETION_MAX_TOKENS, DEFAULT_COMPLETION_MODEL, env_int


class CompletionClient:
    """Async wrapper around Claude for single-prompt text completions."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ):
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY", "")
        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY must be set")
        self.model = model or os.getenv("POD_MATCH_COMPLETION_MODEL", DEFAULT_COMPLETION_MODEL)
        self.max_tokens = max_tokens or env_int(
            "POD_MATCH_COMPLETION_MAX_TOKENS", DEFAULT_COMPLETION_MAX_TOKENS
        )
        self.client = anthropic.AsyncAnthropic(api_key=self.api_key, max_retries=0)

    async def complete(self, prompt: str) -> str:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return text.strip()

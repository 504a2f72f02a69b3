"""Claude API client used as the primary natural-language reminder parser."""

import anthropic

from config import ANTHROPIC_API_KEY, CLAUDE_MAX_TOKENS, CLAUDE_MODEL
from logger import logger


class ClaudeClient:
    """Thin text-in, text-out wrapper around the Claude messages API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = CLAUDE_MODEL,
        max_tokens: int = CLAUDE_MAX_TOKENS
    ):
        self.client = anthropic.AsyncAnthropic(api_key=api_key or ANTHROPIC_API_KEY)
        self.model = model
        self.max_tokens = max_tokens

    async def generate(self, prompt: str, system: str | None = None) -> str:
        """
        Send a single prompt and return the concatenated text response.

        Args:
            prompt: User prompt
            system: Optional system prompt

        Returns:
            Raw response text (untrusted, may not be JSON)

        Raises:
            anthropic.APIError: On any API failure
        """
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            logger.error(f"Claude API error: {e}")
            raise

        text_blocks = [b.text for b in response.content if b.type == "text"]
        return "\n".join(text_blocks)

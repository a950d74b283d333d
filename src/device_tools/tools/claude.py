"""Anthropic Claude wrapper used as the text-generation collaborator."""

import logging
from typing import Protocol, runtime_checkable

from anthropic import AsyncAnthropic

from device_tools.config import Settings, get_settings

logger = logging.getLogger(__name__)


@runtime_checkable
class TextGenerator(Protocol):
    """Produces natural-language text from a prompt."""

    async def complete(self, prompt: str, system: str | None = None) -> str: ...


class ClaudeClient:
    """Single-attempt completions from Anthropic Claude."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        # Tools make exactly one attempt per call
        self.client = AsyncAnthropic(api_key=settings.anthropic_api_key, max_retries=0)
        self.model = settings.claude_model
        self.max_tokens = settings.claude_max_tokens

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a completion from Claude.

        Args:
            prompt: The user prompt
            system: Optional system prompt
            max_tokens: Override default max tokens

        Returns:
            The generated text response

        Raises:
            APIError: If the API request fails
        """
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens or self.max_tokens,
            system=system or "",
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(block.text for block in response.content if block.type == "text")
        logger.debug(f"Claude completion: {len(text)} chars")
        return text

# server/llm.py
# ---------------------------------------------------------
# Model client for the plan relay.
#
# Routes only need one thing from the model: an async stream of
# text fragments for a prompt. ClaudePlanModel provides that on top
# of the Anthropic SDK; tests swap in their own object with the
# same `stream_text` method.
# ---------------------------------------------------------

from typing import AsyncIterator, Optional

from anthropic import AsyncAnthropic

from . import config
from .errors import UpstreamGenerationError


def _key_prefix(key: str) -> str:
    return key[:8] + "..." if len(key) >= 8 else "(short key)"


client: Optional[AsyncAnthropic] = None
if config.ANTHROPIC_API_KEY:
    client = AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY)
    print("[llm] Anthropic client initialized; key prefix:", _key_prefix(config.ANTHROPIC_API_KEY))
    print("[llm] Using Anthropic model:", config.MODEL)
else:
    print("[llm] No ANTHROPIC_API_KEY found. Plan generation will fail until one is set.")


class ClaudePlanModel:
    """Streams plan text from Claude."""

    def __init__(
        self,
        anthropic_client: Optional[AsyncAnthropic],
        model: str = config.MODEL,
        max_tokens: int = config.MAX_TOKENS,
        temperature: float = 0.3,
    ):
        self._client = anthropic_client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def stream_text(self, prompt: str) -> AsyncIterator[str]:
        if self._client is None:
            raise UpstreamGenerationError("ANTHROPIC_API_KEY is not configured")

        # Leaving the context manager closes the HTTP stream, which is what
        # happens when the consumer closes this generator early.
        async with self._client.messages.stream(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            messages=[{"role": "user", "content": prompt}],
        ) as stream:
            async for text in stream.text_stream:
                yield text


default_model = ClaudePlanModel(client)

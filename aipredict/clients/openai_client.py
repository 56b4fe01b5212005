"""
OpenAI chat client used for generating and judging predictions.
"""

from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from ..errors import CompletionError
from ..utils.logger import get_logger

logger = get_logger("openai")


class OpenAIClient:
    """Thin async wrapper around the OpenAI chat completions API."""

    def __init__(self, api_key: str, model: str = "gpt-4"):
        self.model = model
        self._client: Optional[AsyncOpenAI] = None
        self._api_key = api_key

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def complete(self, system: str, user: str, temperature: float = 0.7) -> str:
        """
        Run a single system+user chat turn.

        Returns:
            Stripped content of the first choice
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise CompletionError(str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise CompletionError("OpenAI returned an empty completion")

        return content.strip()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

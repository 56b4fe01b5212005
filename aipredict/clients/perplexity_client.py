"""
Perplexity API client for up-to-date web research.
Feeds fresh context into market generation and resolution prompts.
"""

import asyncio
from typing import Optional

import aiohttp

from ..errors import ResearchError
from ..utils.logger import get_logger

logger = get_logger("perplexity")

RESEARCH_SYSTEM_PROMPT = (
    "You are a highly knowledgeable assistant tasked with providing the most "
    "recent and relevant information on a given topic. Focus on factual, "
    "verifiable data from reliable sources. Include specific numbers, dates, "
    "and key events where applicable."
)


def build_research_prompt(query: str) -> str:
    return (
        f"Provide the most up-to-date and relevant information on the following "
        f"topic: {query}. Include recent developments, statistics, and expert "
        f"opinions if available. Format the information in a clear, concise manner."
    )


class PerplexityClient:
    """
    Client for the Perplexity chat completions API.

    Online models search the web before answering, so the response
    reflects current events up to the configured recency window.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.1-sonar-small-128k-online",
        base_url: str = "https://api.perplexity.ai",
        max_tokens: int = 300,
        temperature: float = 0.5,
        top_p: float = 0.9,
        recency_filter: str = "week",
        timeout_seconds: float = 60.0
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.recency_filter = recency_filter
        self.timeout_seconds = timeout_seconds

        self._session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        logger.info("Perplexity client initialized")

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def build_payload(self, query: str) -> dict:
        """Request body for a research query."""
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
                {"role": "user", "content": build_research_prompt(query)},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "return_citations": True,
            "return_images": False,
            "return_related_questions": False,
            "search_recency_filter": self.recency_filter,
        }

    async def research(self, query: str) -> str:
        """
        Fetch recent information about a topic.

        Args:
            query: Topic or prediction text to research

        Returns:
            Plain-text summary from the model
        """
        if not self._session:
            await self.initialize()

        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with self._session.post(
                url, json=self.build_payload(query), headers=headers
            ) as response:
                response.raise_for_status()
                data = await response.json()
        except asyncio.TimeoutError as e:
            logger.error(f"Perplexity request timed out after {self.timeout_seconds}s")
            raise ResearchError(
                f"Perplexity request timed out after {self.timeout_seconds}s"
            ) from e
        except aiohttp.ClientError as e:
            logger.error(f"Perplexity request failed: {e}")
            raise ResearchError(f"Failed to fetch data from Perplexity: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ResearchError(f"Unexpected Perplexity response: {data}") from e

        logger.debug("Perplexity research complete", extra={"query": query[:80]})
        return content

"""
Prediction generator.

Researches a topic with Perplexity, asks OpenAI to draft prediction
markets from that research and publishes the drafts on the contract.
"""

import json
import re
from typing import Any, Optional

from .. import database
from ..clients.chain_client import PredictionContractClient
from ..clients.openai_client import OpenAIClient
from ..clients.perplexity_client import PerplexityClient
from ..config import SIX_MONTHS_SECONDS
from ..errors import GenerationError
from ..utils.logger import get_logger, OracleLogger
from .models import PredictionDraft, PublishedPrediction

logger = get_logger("generator")
oracle_logger = OracleLogger()

MIN_DURATION_SECONDS = 3600
MAX_TAGS = 5

GENERATION_SYSTEM_PROMPT = (
    "You are an expert in creating engaging and relevant prediction market "
    "questions based on current events and data."
)

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def build_generation_prompt(topic: str, research: str, count: int) -> str:
    return f"""
Based on the following current information about {topic}:

{research}

Generate {count} prediction market questions. Each prediction should be:
1. Specific and unambiguous
2. Measurable with a clear outcome
3. Have a definite timeframe for resolution (within the next 6 months)
4. Relevant to the given topic and current events
5. Interesting and engaging for participants

Output should be a valid JSON array of prediction objects with the following fields:
- description: The prediction question
- duration: Time until the prediction resolves, in seconds (max 6 months)
- tags: An array of relevant tags (3-5 tags)

Ensure the predictions are diverse and cover different aspects of the topic.
"""


def _extract_json_array(content: str) -> Any:
    """Decode the JSON array in an LLM reply, tolerating code fences and chatter."""
    text = _FENCE_RE.sub("", content.strip()).strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        raise GenerationError("LLM response does not contain a JSON array")

    try:
        return json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise GenerationError(f"LLM response is not valid JSON: {e}") from e


def _clean_tags(raw: Any) -> list[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, list):
        return []
    tags = [str(tag).strip() for tag in raw if str(tag).strip()]
    return tags[:MAX_TAGS]


def _clamp_duration(raw: Any, max_duration: int) -> Optional[int]:
    try:
        duration = int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return None
    return max(MIN_DURATION_SECONDS, min(duration, max_duration))


def parse_predictions(
    content: str,
    max_duration: int = SIX_MONTHS_SECONDS,
    min_votes: int = 1,
    max_votes: int = 1000
) -> list[PredictionDraft]:
    """
    Turn an LLM reply into prediction drafts.

    Entries without a description or a numeric duration are dropped.
    Durations are clamped to [1 hour, max_duration] and tags to five.

    Raises:
        GenerationError: reply is not a JSON array or has no usable entries
    """
    data = _extract_json_array(content)

    if isinstance(data, dict) and isinstance(data.get("predictions"), list):
        data = data["predictions"]

    if not isinstance(data, list):
        raise GenerationError("LLM response is not a JSON array")

    drafts = []
    for item in data:
        if not isinstance(item, dict):
            continue

        description = str(item.get("description") or "").strip()
        if not description:
            continue

        duration = _clamp_duration(item.get("duration"), max_duration)
        if duration is None:
            logger.warning(f"Dropping prediction with invalid duration: {description[:60]}")
            continue

        drafts.append(PredictionDraft(
            description=description,
            duration=duration,
            tags=_clean_tags(item.get("tags")),
            min_votes=min_votes,
            max_votes=max_votes,
            prediction_type=0,
            options_count=2
        ))

    if not drafts:
        raise GenerationError("LLM response contained no usable predictions")

    return drafts


class PredictionGenerator:
    """
    Drafts prediction markets from a topic and publishes them.

    Publishing is sequential: every draft waits for its receipt before
    the next one is sent, and one failed draft never blocks the rest.
    """

    def __init__(
        self,
        perplexity: PerplexityClient,
        openai: OpenAIClient,
        contract: Optional[PredictionContractClient] = None,
        predictions_per_topic: int = 3,
        max_duration: int = SIX_MONTHS_SECONDS,
        min_votes: int = 1,
        max_votes: int = 1000,
        temperature: float = 0.7
    ):
        self.perplexity = perplexity
        self.openai = openai
        self.contract = contract
        self.predictions_per_topic = predictions_per_topic
        self.max_duration = max_duration
        self.min_votes = min_votes
        self.max_votes = max_votes
        self.temperature = temperature

    async def generate(self, topic: str) -> list[PredictionDraft]:
        """
        Draft predictions for a topic without touching the chain.

        Raises:
            ValueError: topic is empty
            ResearchError, CompletionError, GenerationError
        """
        topic = (topic or "").strip()
        if not topic:
            raise ValueError("Topic is required")

        logger.info(f"Generating predictions for topic: {topic}")

        research = await self.perplexity.research(topic)
        content = await self.openai.complete(
            GENERATION_SYSTEM_PROMPT,
            build_generation_prompt(topic, research, self.predictions_per_topic),
            temperature=self.temperature
        )

        drafts = parse_predictions(
            content,
            max_duration=self.max_duration,
            min_votes=self.min_votes,
            max_votes=self.max_votes
        )

        oracle_logger.predictions_generated(topic, len(drafts))
        return drafts

    async def publish(self, draft: PredictionDraft) -> PublishedPrediction:
        """Create one draft on the contract."""
        if self.contract is None:
            raise GenerationError("No contract client configured for publishing")

        result = await self.contract.create_prediction(draft)

        if result.success:
            oracle_logger.prediction_published(
                draft.description, result.tx_hash, result.block_number
            )
            return PublishedPrediction(draft=draft, transaction_hash=result.tx_hash)

        error = f"Failed to create prediction on contract: {result.error}"
        oracle_logger.prediction_publish_failed(draft.description, error)
        return PublishedPrediction(draft=draft, error=error)

    async def generate_and_publish(self, topic: str) -> list[PublishedPrediction]:
        """Draft predictions for a topic and create each on the contract."""
        drafts = await self.generate(topic)

        published = []
        for draft in drafts:
            item = await self.publish(draft)
            published.append(item)

            database.record_generated_prediction(
                topic=topic.strip(),
                description=draft.description,
                duration=draft.duration,
                tags=draft.tags,
                tx_hash=item.transaction_hash,
                error=item.error
            )

        logger.info(
            "Publishing complete",
            extra={
                "topic": topic,
                "published": sum(1 for p in published if p.success),
                "failed": sum(1 for p in published if not p.success)
            }
        )
        return published

"""
Outcome resolver.

Researches a prediction with Perplexity, asks OpenAI to judge whether it
came true and finalizes the prediction on the contract.
"""

import re
import time
from dataclasses import dataclass, field
from typing import Optional

from .. import database
from ..clients.chain_client import PredictionContractClient
from ..clients.openai_client import OpenAIClient
from ..clients.perplexity_client import PerplexityClient
from ..errors import (
    ChainError,
    CompletionError,
    OracleError,
    OutcomeFormatError,
    ResearchError,
)
from ..utils.logger import get_logger, OracleLogger
from .models import OutcomeDecision, Prediction, PredictionStatus, ResolutionResult

logger = get_logger("resolver")
oracle_logger = OracleLogger()

DEFAULT_EXPLANATION = "No explanation provided"

RESOLUTION_SYSTEM_PROMPT = (
    "You are an impartial judge tasked with determining the outcomes of "
    "prediction markets based on the most current and relevant information "
    "available. Provide concise and accurate assessments."
)

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_LIST_MARKER_RE = re.compile(r"^\d+[.)]\s+")
_OUTCOME_RE = re.compile(r"^[01](?:\.0+)?$")


def build_resolution_prompt(description: str, current_data: str) -> str:
    return f"""
Analyze the following prediction and the most recent related information to determine its outcome:

Prediction: "{description}"

Current Information:
{current_data}

Based on this data, has the prediction come true? Respond in the following format:
1. A single digit: 0 if the prediction is false or has not occurred, 1 if it is true or has occurred.
2. A confidence score between 0 and 1 (e.g., 0.8 for 80% confidence).
3. A brief explanation (max 50 words) of your reasoning.

Example response:
1
0.9
Bitcoin has surpassed $50,000 on multiple major exchanges according to current market data, meeting the prediction criteria with high confidence.

Your response:
"""


def _first_number(line: str, what: str) -> str:
    match = _NUMBER_RE.search(_LIST_MARKER_RE.sub("", line))
    if not match:
        raise OutcomeFormatError(f"Invalid AI response format: no {what} in {line!r}")
    return match.group(0)


def parse_outcome(content: str) -> OutcomeDecision:
    """
    Parse the three-part verdict: outcome digit, confidence, explanation.

    Blank lines are ignored and a leading "1." or "2)" list marker on the
    first two lines is dropped. The outcome line must hold exactly 0 or 1
    so a reply with outcome and confidence swapped is rejected.

    Raises:
        OutcomeFormatError: outcome or confidence missing or out of range
    """
    lines = [line.strip() for line in (content or "").strip().splitlines()]
    lines = [line for line in lines if line]

    if len(lines) < 2:
        raise OutcomeFormatError("Invalid AI response format")

    outcome_text = _LIST_MARKER_RE.sub("", lines[0])
    if not _OUTCOME_RE.match(outcome_text):
        raise OutcomeFormatError(f"Outcome line must be 0 or 1, got {lines[0]!r}")
    outcome = int(float(outcome_text))

    try:
        confidence = float(_first_number(lines[1], "confidence"))
    except ValueError as e:
        raise OutcomeFormatError(f"Invalid AI response format: {e}") from e

    if not 0.0 <= confidence <= 1.0:
        raise OutcomeFormatError(f"Confidence must be between 0 and 1, got {confidence}")

    explanation = " ".join(lines[2:]).strip() or DEFAULT_EXPLANATION

    return OutcomeDecision(outcome=outcome, confidence=confidence, explanation=explanation)


@dataclass
class ResolutionSweep:
    """Summary of one pass over predictions that are due."""
    resolved: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "resolved": self.resolved,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class OutcomeResolver:
    """
    Judges and finalizes predictions.

    Manual resolution (resolve) always writes the verdict. The periodic
    sweep (resolve_due) only writes verdicts at or above min_confidence.
    """

    def __init__(
        self,
        perplexity: PerplexityClient,
        openai: OpenAIClient,
        contract: Optional[PredictionContractClient] = None,
        min_confidence: float = 0.8,
        temperature: float = 0.1
    ):
        self.perplexity = perplexity
        self.openai = openai
        self.contract = contract
        self.min_confidence = min_confidence
        self.temperature = temperature

    def _require_contract(self) -> PredictionContractClient:
        if self.contract is None:
            raise ChainError("No contract client configured")
        return self.contract

    async def determine_outcome(self, description: str, current_data: str) -> OutcomeDecision:
        """Ask the LLM whether the prediction has come true."""
        content = await self.openai.complete(
            RESOLUTION_SYSTEM_PROMPT,
            build_resolution_prompt(description, current_data),
            temperature=self.temperature
        )
        return parse_outcome(content)

    async def judge(self, description: str, prediction_id: Optional[int] = None) -> OutcomeDecision:
        """Research a prediction and determine its outcome."""
        current_data = await self.perplexity.research(description)
        decision = await self.determine_outcome(description, current_data)
        oracle_logger.outcome_determined(prediction_id, decision.outcome, decision.confidence)
        return decision

    async def _judge_prediction(self, prediction: Prediction) -> OutcomeDecision:
        """Judge an on-chain prediction, recording a failed verdict before re-raising."""
        try:
            return await self.judge(prediction.description, prediction.prediction_id)
        except (ResearchError, CompletionError, OutcomeFormatError) as e:
            database.record_resolution(
                prediction_id=prediction.prediction_id,
                description=prediction.description,
                outcome=None,
                confidence=None,
                explanation=str(e),
                status="failed"
            )
            raise

    async def preview(self, description: str) -> OutcomeDecision:
        """Determine an outcome without writing anything on chain."""
        description = (description or "").strip()
        if not description:
            raise ValueError("Prediction description is required")

        logger.info(f"Test finalizing prediction: {description[:80]}")
        return await self.judge(description)

    async def _finalize(self, prediction: Prediction, decision: OutcomeDecision) -> ResolutionResult:
        contract = self._require_contract()
        result = await contract.finalize_prediction(prediction.prediction_id, decision.outcome)

        if not result.success:
            database.record_resolution(
                prediction_id=prediction.prediction_id,
                description=prediction.description,
                outcome=decision.outcome,
                confidence=decision.confidence,
                explanation=decision.explanation,
                status="failed",
                tx_hash=result.tx_hash or None
            )
            raise ChainError(
                f"Failed to finalize prediction {prediction.prediction_id} "
                f"on the blockchain: {result.error}"
            )

        database.record_resolution(
            prediction_id=prediction.prediction_id,
            description=prediction.description,
            outcome=decision.outcome,
            confidence=decision.confidence,
            explanation=decision.explanation,
            status="finalized",
            tx_hash=result.tx_hash
        )
        oracle_logger.prediction_finalized(
            prediction.prediction_id, decision.outcome, result.tx_hash
        )

        return ResolutionResult(
            prediction_id=prediction.prediction_id,
            description=prediction.description,
            decision=decision,
            transaction_hash=result.tx_hash
        )

    async def resolve(self, prediction_id: int) -> ResolutionResult:
        """
        Judge a prediction and finalize it on the contract.

        Raises:
            ValueError: prediction is no longer active
            ResearchError, CompletionError, OutcomeFormatError: judging failed
            ChainError: reading or finalizing on chain failed
        """
        contract = self._require_contract()
        prediction = await contract.get_prediction(prediction_id)

        if prediction.status != PredictionStatus.ACTIVE:
            raise ValueError(
                f"Prediction {prediction_id} is {prediction.status.name.lower()}, not active"
            )

        logger.info(f"Finalizing prediction {prediction_id}: {prediction.description[:80]}")

        decision = await self._judge_prediction(prediction)
        return await self._finalize(prediction, decision)

    async def resolve_due(self, now: Optional[float] = None) -> ResolutionSweep:
        """Finalize every active prediction past its end time with a confident verdict."""
        now = time.time() if now is None else now
        contract = self._require_contract()
        sweep = ResolutionSweep()

        active = await contract.list_predictions(status=PredictionStatus.ACTIVE)
        due = [p for p in active if p.is_resolvable(now)]

        if not due:
            logger.debug("No predictions due for resolution")
            return sweep

        logger.info(f"{len(due)} predictions due for resolution")

        for prediction in due:
            try:
                decision = await self._judge_prediction(prediction)

                if decision.confidence < self.min_confidence:
                    logger.warning(
                        "Skipping low-confidence verdict",
                        extra={
                            "prediction_id": prediction.prediction_id,
                            "confidence": decision.confidence,
                            "min_confidence": self.min_confidence
                        }
                    )
                    database.record_resolution(
                        prediction_id=prediction.prediction_id,
                        description=prediction.description,
                        outcome=decision.outcome,
                        confidence=decision.confidence,
                        explanation=decision.explanation,
                        status="skipped"
                    )
                    sweep.skipped.append(prediction.prediction_id)
                    continue

                await self._finalize(prediction, decision)
                sweep.resolved.append(prediction.prediction_id)

            except OracleError as e:
                logger.error(f"Error resolving prediction {prediction.prediction_id}: {e}")
                sweep.failed.append(prediction.prediction_id)

        return sweep

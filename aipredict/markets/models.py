"""
Data models for on-chain predictions and the oracle's LLM decisions.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence
import time

WEI_PER_ETH = 10 ** 18


class PredictionStatus(Enum):
    """Prediction lifecycle status as stored by the contract."""
    ACTIVE = 0
    FINALIZED = 1
    CANCELLED = 2


@dataclass
class PredictionDraft:
    """Prediction proposed by the generator, not yet on chain."""
    description: str
    duration: int  # Seconds until the prediction ends
    tags: list[str] = field(default_factory=list)
    min_votes: int = 1
    max_votes: int = 1000
    prediction_type: int = 0  # 0 = binary yes/no
    options_count: int = 2

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "duration": self.duration,
            "tags": list(self.tags),
            "minVotes": self.min_votes,
            "maxVotes": self.max_votes,
            "predictionType": self.prediction_type,
            "optionsCount": self.options_count,
        }


@dataclass
class Prediction:
    """Prediction as returned by getPredictionDetails."""
    prediction_id: int
    description: str
    end_time: int
    status: PredictionStatus
    total_votes: list[int]
    outcome: int
    min_votes: int
    max_votes: int
    prediction_type: int
    creator: str
    creation_time: int
    tags: list[str]
    options_count: int
    total_bet_amount: int  # Wei

    @classmethod
    def from_contract(cls, prediction_id: int, data: Sequence) -> "Prediction":
        """Build from the raw tuple returned by the contract."""
        (
            description, end_time, status, total_votes, outcome,
            min_votes, max_votes, prediction_type, creator,
            creation_time, tags, options_count, total_bet_amount,
        ) = data

        return cls(
            prediction_id=prediction_id,
            description=description,
            end_time=int(end_time),
            status=PredictionStatus(int(status)),
            total_votes=[int(v) for v in total_votes],
            outcome=int(outcome),
            min_votes=int(min_votes),
            max_votes=int(max_votes),
            prediction_type=int(prediction_type),
            creator=creator,
            creation_time=int(creation_time),
            tags=list(tags),
            options_count=int(options_count),
            total_bet_amount=int(total_bet_amount),
        )

    @property
    def is_active(self) -> bool:
        return self.status == PredictionStatus.ACTIVE

    @property
    def total_bet_eth(self) -> float:
        return self.total_bet_amount / WEI_PER_ETH

    def is_ended(self, now: Optional[float] = None) -> bool:
        """Check if the prediction end time has passed."""
        now = time.time() if now is None else now
        return now > self.end_time

    def is_resolvable(self, now: Optional[float] = None) -> bool:
        """Active predictions past their end time can be finalized."""
        return self.is_active and self.is_ended(now)

    def vote_percentages(self) -> tuple[float, float]:
        """Yes/No share of votes in percent, even split when nobody voted."""
        yes_votes = self.total_votes[0] if len(self.total_votes) > 0 else 0
        no_votes = self.total_votes[1] if len(self.total_votes) > 1 else 0
        total = yes_votes + no_votes

        if total <= 0:
            return 50.0, 50.0

        return yes_votes / total * 100, no_votes / total * 100

    def to_dict(self) -> dict:
        yes_pct, no_pct = self.vote_percentages()
        return {
            "id": self.prediction_id,
            "description": self.description,
            "endTime": self.end_time,
            "endTimeIso": datetime.fromtimestamp(self.end_time, tz=timezone.utc).isoformat(),
            "status": self.status.name.lower(),
            "totalVotes": self.total_votes,
            "outcome": self.outcome,
            "minVotes": self.min_votes,
            "maxVotes": self.max_votes,
            "predictionType": self.prediction_type,
            "creator": self.creator,
            "creationTime": self.creation_time,
            "tags": self.tags,
            "optionsCount": self.options_count,
            "totalBetAmount": self.total_bet_amount,
            "totalBetEth": self.total_bet_eth,
            "yesPercentage": round(yes_pct, 1),
            "noPercentage": round(no_pct, 1),
            "isEnded": self.is_ended(),
        }


@dataclass
class UserStats:
    """Per-user statistics kept by the contract."""
    address: str
    total_predictions: int
    correct_predictions: int
    total_rewards: int  # Wei

    @property
    def accuracy(self) -> float:
        if self.total_predictions == 0:
            return 0.0
        return self.correct_predictions / self.total_predictions

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "totalPredictions": self.total_predictions,
            "correctPredictions": self.correct_predictions,
            "totalRewards": self.total_rewards,
            "totalRewardsEth": self.total_rewards / WEI_PER_ETH,
            "accuracy": self.accuracy,
        }


@dataclass
class OutcomeDecision:
    """LLM verdict on whether a prediction came true."""
    outcome: int  # 1 = occurred, 0 = did not occur
    confidence: float
    explanation: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PublishedPrediction:
    """Outcome of publishing one draft on chain."""
    draft: PredictionDraft
    transaction_hash: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.transaction_hash is not None and self.error is None

    def to_dict(self) -> dict:
        result = self.draft.to_dict()
        if self.transaction_hash:
            result["transactionHash"] = self.transaction_hash
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class ResolutionResult:
    """Outcome of finalizing a prediction on chain."""
    prediction_id: int
    description: str
    decision: OutcomeDecision
    transaction_hash: str

    def to_dict(self) -> dict:
        return {
            "message": f"Prediction {self.prediction_id} finalized successfully",
            "outcome": self.decision.to_dict(),
            "transactionHash": self.transaction_hash,
        }

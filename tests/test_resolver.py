"""
Tests for AI outcome resolution.
"""

import pytest
from unittest.mock import AsyncMock

from aipredict.clients.chain_client import PredictionContractClient, TransactionResult
from aipredict.clients.openai_client import OpenAIClient
from aipredict.clients.perplexity_client import PerplexityClient
from aipredict.errors import (
    ChainError,
    CompletionError,
    ContractReadError,
    OutcomeFormatError,
    ResearchError,
)
from aipredict.markets.models import PredictionStatus
from aipredict.markets.resolver import (
    DEFAULT_EXPLANATION,
    OutcomeResolver,
    parse_outcome,
)

from conftest import make_prediction


@pytest.fixture
def mock_perplexity():
    client = AsyncMock(spec=PerplexityClient)
    client.research.return_value = "BTC closed at $104,000 on Dec 31."
    return client


@pytest.fixture
def mock_openai():
    client = AsyncMock(spec=OpenAIClient)
    client.complete.return_value = "1\n0.95\nBTC closed above $100,000."
    return client


@pytest.fixture
def mock_contract():
    client = AsyncMock(spec=PredictionContractClient)
    client.get_prediction.return_value = make_prediction(prediction_id=3)
    client.finalize_prediction.return_value = TransactionResult(
        success=True,
        tx_hash="0xfinal",
        block_number=20
    )
    return client


@pytest.fixture
def resolver(mock_perplexity, mock_openai, mock_contract):
    return OutcomeResolver(
        perplexity=mock_perplexity,
        openai=mock_openai,
        contract=mock_contract,
        min_confidence=0.8
    )


class TestParseOutcome:
    """Tests for parsing the three-line verdict."""

    def test_standard_reply(self):
        decision = parse_outcome("1\n0.9\nBitcoin passed $50,000 on all major exchanges.")

        assert decision.outcome == 1
        assert decision.confidence == 0.9
        assert decision.explanation == "Bitcoin passed $50,000 on all major exchanges."

    def test_numbered_lines_and_blank_lines(self):
        decision = parse_outcome("\n1. 0\n\n2. 0.75\n3. It did not happen.\nStill pending.\n")

        assert decision.outcome == 0
        assert decision.confidence == 0.75
        assert decision.explanation == "3. It did not happen. Still pending."

    def test_missing_explanation(self):
        decision = parse_outcome("0\n0.6")
        assert decision.explanation == DEFAULT_EXPLANATION

    def test_too_few_lines(self):
        with pytest.raises(OutcomeFormatError):
            parse_outcome("1")

    def test_empty(self):
        with pytest.raises(OutcomeFormatError):
            parse_outcome("")

    def test_outcome_out_of_range(self):
        with pytest.raises(OutcomeFormatError):
            parse_outcome("2\n0.9\nMaybe.")

    def test_swapped_outcome_and_confidence(self):
        with pytest.raises(OutcomeFormatError):
            parse_outcome("0.9\n1\nExplanation")

    def test_fractional_outcome(self):
        with pytest.raises(OutcomeFormatError):
            parse_outcome("0.5\n0.9\nHalf true.")

    def test_outcome_with_trailing_text(self):
        with pytest.raises(OutcomeFormatError):
            parse_outcome("1 (yes)\n0.9\nIt happened.")

    def test_outcome_written_as_float(self):
        assert parse_outcome("1.0\n0.9\nIt happened.").outcome == 1

    def test_confidence_out_of_range(self):
        with pytest.raises(OutcomeFormatError):
            parse_outcome("1\n85\nVery sure.")

    def test_no_numbers(self):
        with pytest.raises(OutcomeFormatError):
            parse_outcome("Yes\nHigh\nIt happened.")


class TestResolve:
    """Tests for manual finalization."""

    @pytest.mark.asyncio
    async def test_resolve_finalizes_on_chain(self, resolver, mock_contract, temp_db):
        result = await resolver.resolve(3)

        mock_contract.finalize_prediction.assert_called_once_with(3, 1)
        assert result.transaction_hash == "0xfinal"
        assert result.decision.confidence == 0.95

        body = result.to_dict()
        assert body["message"] == "Prediction 3 finalized successfully"
        assert body["outcome"]["outcome"] == 1
        assert body["transactionHash"] == "0xfinal"

        history = temp_db.get_recent_resolutions()
        assert history[0]["status"] == "finalized"
        assert history[0]["tx_hash"] == "0xfinal"

    @pytest.mark.asyncio
    async def test_resolve_ignores_confidence_threshold(self, resolver, mock_openai, mock_contract, temp_db):
        mock_openai.complete.return_value = "0\n0.3\nUnclear."

        result = await resolver.resolve(3)

        mock_contract.finalize_prediction.assert_called_once_with(3, 0)
        assert result.decision.outcome == 0

    @pytest.mark.asyncio
    async def test_resolve_rejects_finalized_prediction(self, resolver, mock_contract, mock_perplexity):
        mock_contract.get_prediction.return_value = make_prediction(
            prediction_id=3, status=PredictionStatus.FINALIZED
        )

        with pytest.raises(ValueError):
            await resolver.resolve(3)

        mock_perplexity.research.assert_not_called()
        mock_contract.finalize_prediction.assert_not_called()

    @pytest.mark.asyncio
    async def test_resolve_chain_failure(self, resolver, mock_contract, temp_db):
        mock_contract.finalize_prediction.return_value = TransactionResult(
            success=False, tx_hash="", error="caller is not an oracle"
        )

        with pytest.raises(ChainError, match="caller is not an oracle"):
            await resolver.resolve(3)

        assert temp_db.get_recent_resolutions()[0]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_resolve_bad_llm_reply(self, resolver, mock_openai, mock_contract, temp_db):
        mock_openai.complete.return_value = "I think so."

        with pytest.raises(OutcomeFormatError):
            await resolver.resolve(3)

        mock_contract.finalize_prediction.assert_not_called()

    @pytest.mark.asyncio
    async def test_resolve_records_bad_verdict(self, resolver, mock_openai, temp_db):
        mock_openai.complete.return_value = "0.9\n1\nSwapped."

        with pytest.raises(OutcomeFormatError):
            await resolver.resolve(3)

        record = temp_db.get_recent_resolutions()[0]
        assert record["status"] == "failed"
        assert record["outcome"] is None

    @pytest.mark.asyncio
    async def test_resolve_read_failure(self, resolver, mock_contract, mock_perplexity):
        mock_contract.get_prediction.side_effect = ContractReadError("getPredictionDetails failed")

        with pytest.raises(ContractReadError):
            await resolver.resolve(3)

        mock_perplexity.research.assert_not_called()

    @pytest.mark.asyncio
    async def test_preview_does_not_touch_chain(self, resolver, mock_contract):
        decision = await resolver.preview("Will BTC close above $100,000 on Dec 31?")

        assert decision.outcome == 1
        mock_contract.get_prediction.assert_not_called()
        mock_contract.finalize_prediction.assert_not_called()

    @pytest.mark.asyncio
    async def test_preview_requires_description(self, resolver):
        with pytest.raises(ValueError):
            await resolver.preview("  ")


class TestResolveDue:
    """Tests for the periodic resolution sweep."""

    @pytest.mark.asyncio
    async def test_only_ended_predictions(self, resolver, mock_contract, temp_db):
        mock_contract.list_predictions.return_value = [
            make_prediction(prediction_id=0, end_time=500),
            make_prediction(prediction_id=1, end_time=5_000),
        ]

        sweep = await resolver.resolve_due(now=1_000)

        mock_contract.list_predictions.assert_called_once_with(status=PredictionStatus.ACTIVE)
        mock_contract.finalize_prediction.assert_called_once_with(0, 1)
        assert sweep.resolved == [0]
        assert sweep.skipped == []
        assert sweep.failed == []

    @pytest.mark.asyncio
    async def test_low_confidence_skipped(self, resolver, mock_openai, mock_contract, temp_db):
        mock_contract.list_predictions.return_value = [make_prediction(prediction_id=4, end_time=500)]
        mock_openai.complete.return_value = "1\n0.6\nProbably."

        sweep = await resolver.resolve_due(now=1_000)

        mock_contract.finalize_prediction.assert_not_called()
        assert sweep.skipped == [4]
        assert temp_db.get_recent_resolutions()[0]["status"] == "skipped"

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_sweep(self, resolver, mock_openai, mock_contract, temp_db):
        mock_contract.list_predictions.return_value = [
            make_prediction(prediction_id=0, end_time=500),
            make_prediction(prediction_id=1, end_time=500),
        ]
        mock_openai.complete.side_effect = [
            CompletionError("rate limited"),
            "0\n0.9\nDid not happen.",
        ]

        sweep = await resolver.resolve_due(now=1_000)

        assert sweep.failed == [0]
        assert sweep.resolved == [1]
        mock_contract.finalize_prediction.assert_called_once_with(1, 0)

    @pytest.mark.asyncio
    async def test_nothing_due(self, resolver, mock_contract, mock_perplexity):
        mock_contract.list_predictions.return_value = []

        sweep = await resolver.resolve_due(now=1_000)

        assert sweep.to_dict() == {"resolved": [], "skipped": [], "failed": []}
        mock_perplexity.research.assert_not_called()

    @pytest.mark.asyncio
    async def test_research_timeout_does_not_stop_sweep(self, resolver, mock_perplexity, mock_contract, temp_db):
        mock_contract.list_predictions.return_value = [
            make_prediction(prediction_id=0, end_time=500),
            make_prediction(prediction_id=1, end_time=500),
        ]
        mock_perplexity.research.side_effect = [
            ResearchError("Perplexity request timed out after 60.0s"),
            "BTC closed at $104,000 on Dec 31.",
        ]

        sweep = await resolver.resolve_due(now=1_000)

        assert sweep.failed == [0]
        assert sweep.resolved == [1]

    @pytest.mark.asyncio
    async def test_failed_judgement_recorded(self, resolver, mock_openai, mock_contract, temp_db):
        mock_contract.list_predictions.return_value = [make_prediction(prediction_id=6, end_time=500)]
        mock_openai.complete.side_effect = CompletionError("rate limited")

        await resolver.resolve_due(now=1_000)

        record = temp_db.get_recent_resolutions()[0]
        assert record["prediction_id"] == 6
        assert record["status"] == "failed"
        assert record["outcome"] is None
        assert record["confidence"] is None
        assert record["explanation"] == "rate limited"
        assert temp_db.get_stats()["failed"] == 1

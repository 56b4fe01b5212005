"""
Shared fixtures.
"""

import pytest

from aipredict import database
from aipredict.markets.models import Prediction, PredictionStatus


@pytest.fixture
def temp_db(tmp_path):
    """Point the history database at a fresh file."""
    original = database.DB_PATH
    database.configure(tmp_path / "test.db")
    database.init_db()
    yield database
    database.configure(original)


def make_prediction(
    prediction_id: int = 0,
    description: str = "Will BTC close above $100,000 on Dec 31?",
    end_time: int = 1_000,
    status: PredictionStatus = PredictionStatus.ACTIVE,
    total_votes=(0, 0),
    total_bet_amount: int = 0
) -> Prediction:
    return Prediction(
        prediction_id=prediction_id,
        description=description,
        end_time=end_time,
        status=status,
        total_votes=list(total_votes),
        outcome=0,
        min_votes=1,
        max_votes=1000,
        prediction_type=0,
        creator="0x" + "11" * 20,
        creation_time=0,
        tags=["crypto", "bitcoin"],
        options_count=2,
        total_bet_amount=total_bet_amount,
    )

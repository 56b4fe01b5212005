"""
Tests for the wallet/contract client and on-chain models.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from aipredict.clients.abi import ADMIN_ROLE, DEFAULT_ADMIN_ROLE, ROLES
from aipredict.clients.chain_client import (
    NonceTracker,
    PredictionContractClient,
    WalletClient,
    is_nonce_error,
    is_valid_address,
)
from aipredict.errors import ChainError
from aipredict.markets.models import Prediction, PredictionDraft, PredictionStatus

from conftest import make_prediction


WALLET = "0x" + "ab" * 20
RECIPIENT = "0x" + "cd" * 20
CONTRACT = "0x" + "ef" * 20


def make_wallet(nonce: int = 7) -> WalletClient:
    """Wallet client wired to a fake web3 instead of a node."""
    wallet = WalletClient(rpc_url="http://localhost:8545", private_key="0x" + "01" * 32, chain_id=84532)

    web3 = MagicMock()
    web3.eth.get_transaction_count.return_value = nonce
    web3.eth.gas_price = 1_000_000_000
    web3.eth.send_raw_transaction.return_value = b"\x12" * 32
    web3.eth.wait_for_transaction_receipt.return_value = {
        "status": 1,
        "blockNumber": 42,
        "gasUsed": 21000,
    }

    account = MagicMock()
    account.address = WALLET
    account.sign_transaction.return_value = MagicMock(raw_transaction=b"signed")

    wallet._web3 = web3
    wallet._account = account
    return wallet


class TestHelpers:

    def test_valid_addresses(self):
        assert is_valid_address(WALLET)
        assert is_valid_address("0x000000000000000000000000000000000000dEaD")

    def test_invalid_addresses(self):
        assert not is_valid_address(None)
        assert not is_valid_address("")
        assert not is_valid_address("0x1234")
        assert not is_valid_address("not an address")
        assert not is_valid_address(12345)

    def test_nonce_errors(self):
        assert is_nonce_error(ValueError("nonce too low: next nonce 5, tx nonce 4"))
        assert is_nonce_error(ValueError("Nonce has already been used"))
        assert not is_nonce_error(ValueError("insufficient funds for gas"))

    def test_role_ids(self):
        assert DEFAULT_ADMIN_ROLE == "0x" + "00" * 32
        assert ADMIN_ROLE == "0xa49807205ce4d355092ef5a8a18f56e8913cf4a201fbe287825b095693c21775"
        assert set(ROLES) == {"admin", "creator", "oracle", "predictor", "moderator"}
        assert all(len(role) == 66 for role in ROLES.values())


class TestNonceTracker:

    @pytest.mark.asyncio
    async def test_seeds_once_then_advances(self):
        fetch = AsyncMock(return_value=5)
        tracker = NonceTracker(fetch)

        assert tracker.current is None
        assert await tracker.peek() == 5
        tracker.advance()
        assert await tracker.peek() == 6

        fetch.assert_called_once()

    @pytest.mark.asyncio
    async def test_reset_refetches(self):
        fetch = AsyncMock(side_effect=[5, 9])
        tracker = NonceTracker(fetch)

        await tracker.peek()
        tracker.reset()

        assert tracker.current is None
        assert await tracker.peek() == 9

    def test_advance_before_seed_is_noop(self):
        tracker = NonceTracker(AsyncMock(return_value=0))
        tracker.advance()
        assert tracker.current is None


class TestWalletClient:

    def test_not_initialized(self):
        wallet = WalletClient(rpc_url="http://localhost:8545", private_key="0x" + "01" * 32, chain_id=84532)

        with pytest.raises(ChainError):
            wallet.address
        with pytest.raises(ChainError):
            wallet.web3

    @pytest.mark.asyncio
    async def test_send_eth(self):
        wallet = make_wallet(nonce=7)

        result = await wallet.send_eth(RECIPIENT, 1500)

        assert result.success
        assert result.tx_hash == "0x" + "12" * 32
        assert result.block_number == 42

        tx = wallet._account.sign_transaction.call_args[0][0]
        assert tx["nonce"] == 7
        assert tx["value"] == 1500
        assert tx["gas"] == 21000
        assert tx["chainId"] == 84532
        assert tx["to"].lower() == RECIPIENT

    @pytest.mark.asyncio
    async def test_consecutive_sends_use_sequential_nonces(self):
        wallet = make_wallet(nonce=7)

        await wallet.send_eth(RECIPIENT, 1)
        await wallet.send_eth(RECIPIENT, 1)

        nonces = [c[0][0]["nonce"] for c in wallet._account.sign_transaction.call_args_list]
        assert nonces == [7, 8]
        wallet.web3.eth.get_transaction_count.assert_called_once()

    @pytest.mark.asyncio
    async def test_send_failure_resets_nonce(self):
        wallet = make_wallet(nonce=7)
        wallet.web3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")

        result = await wallet.send_eth(RECIPIENT, 1)

        assert not result.success
        assert "nonce too low" in result.error
        assert wallet._nonces.current is None

        wallet.web3.eth.send_raw_transaction.side_effect = None
        wallet.web3.eth.get_transaction_count.return_value = 8

        result = await wallet.send_eth(RECIPIENT, 1)

        assert result.success
        assert wallet._account.sign_transaction.call_args[0][0]["nonce"] == 8

    @pytest.mark.asyncio
    async def test_reverted_transaction(self):
        wallet = make_wallet()
        wallet.web3.eth.wait_for_transaction_receipt.return_value = {
            "status": 0,
            "blockNumber": 43,
            "gasUsed": 50000,
        }

        result = await wallet.send_eth(RECIPIENT, 1)

        assert not result.success
        assert result.error == "Transaction reverted"
        assert result.tx_hash == "0x" + "12" * 32

    @pytest.mark.asyncio
    async def test_get_balance_wraps_errors(self):
        wallet = make_wallet()
        wallet.web3.eth.get_balance.side_effect = ConnectionError("rpc down")

        with pytest.raises(ChainError):
            await wallet.get_balance()


class TestPredictionContractClient:

    def make_client(self) -> PredictionContractClient:
        client = PredictionContractClient(
            rpc_url="http://localhost:8545",
            private_key="0x" + "01" * 32,
            contract_address=CONTRACT,
            chain_id=84532
        )
        wallet = make_wallet()
        client._web3 = wallet._web3
        client._account = wallet._account
        client._contract = MagicMock()
        return client

    @pytest.mark.asyncio
    async def test_list_predictions_filters_status(self):
        client = self.make_client()
        client.get_prediction_count = AsyncMock(return_value=3)
        client.get_prediction = AsyncMock(side_effect=[
            make_prediction(prediction_id=0),
            make_prediction(prediction_id=1, status=PredictionStatus.FINALIZED),
            make_prediction(prediction_id=2),
        ])

        active = await client.list_predictions(status=PredictionStatus.ACTIVE)

        assert [p.prediction_id for p in active] == [0, 2]

    @pytest.mark.asyncio
    async def test_read_failure_raises_chain_error(self):
        client = self.make_client()
        client._contract.functions.getPredictionDetails.return_value.call.side_effect = (
            ValueError("execution reverted")
        )

        with pytest.raises(ChainError, match="getPredictionDetails"):
            await client.get_prediction(99)

    @pytest.mark.asyncio
    async def test_user_stats(self):
        client = self.make_client()
        client._contract.functions.getUserStats.return_value.call.return_value = (10, 7, 3 * 10 ** 17)

        stats = await client.get_user_stats(WALLET)

        assert stats.total_predictions == 10
        assert stats.correct_predictions == 7
        assert stats.accuracy == 0.7
        assert stats.to_dict()["totalRewardsEth"] == 0.3

    @pytest.mark.asyncio
    async def test_create_prediction_arguments(self):
        client = self.make_client()
        fn = client._contract.functions.createPrediction.return_value
        fn.estimate_gas.return_value = 100_000
        fn.build_transaction.side_effect = lambda params: dict(params)

        draft = PredictionDraft(description="Will it rain?", duration=7200, tags=["weather"])
        result = await client.create_prediction(draft)

        assert result.success
        client._contract.functions.createPrediction.assert_called_with(
            "Will it rain?", 7200, 1, 1000, 0, 2, ["weather"]
        )
        tx = client._account.sign_transaction.call_args[0][0]
        assert tx["gas"] == 120_000


class TestPredictionModel:

    def test_from_contract(self):
        data = (
            "Will SOL flip ETH?", 2_000, 0, [3, 1], 0, 1, 1000, 0,
            "0x" + "22" * 20, 1_000, ["crypto"], 2, 5 * 10 ** 17,
        )

        prediction = Prediction.from_contract(8, data)

        assert prediction.prediction_id == 8
        assert prediction.status == PredictionStatus.ACTIVE
        assert prediction.total_bet_eth == 0.5
        assert prediction.vote_percentages() == (75.0, 25.0)
        assert prediction.is_resolvable(now=2_001)
        assert not prediction.is_resolvable(now=2_000)

    def test_no_votes_split_evenly(self):
        assert make_prediction().vote_percentages() == (50.0, 50.0)

    def test_finalized_not_resolvable(self):
        prediction = make_prediction(end_time=0, status=PredictionStatus.FINALIZED)
        assert not prediction.is_resolvable(now=10)

    def test_to_dict(self):
        body = make_prediction(prediction_id=2, end_time=0, total_votes=(1, 3)).to_dict()

        assert body["id"] == 2
        assert body["status"] == "active"
        assert body["endTimeIso"] == "1970-01-01T00:00:00+00:00"
        assert body["yesPercentage"] == 25.0
        assert body["noPercentage"] == 75.0
        assert body["isEnded"] is True

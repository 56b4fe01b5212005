"""
EVM client for the prediction market contract.
Handles wallet transfers, contract reads and signed contract writes.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from web3 import Web3
from eth_account import Account

from ..errors import ChainError, ContractReadError
from ..markets.models import Prediction, PredictionDraft, PredictionStatus, UserStats
from ..utils.logger import get_logger
from .abi import PREDICTION_MARKET_ABI, ROLES

logger = get_logger("chain")

RECEIPT_TIMEOUT_SECONDS = 120
GAS_BUFFER = 1.2
TRANSFER_GAS = 21000


@dataclass
class TransactionResult:
    """Result of a blockchain transaction."""
    success: bool
    tx_hash: str
    block_number: Optional[int] = None
    gas_used: int = 0
    error: Optional[str] = None


def is_valid_address(value: Any) -> bool:
    """Check for a 20-byte hex address, with or without checksum casing."""
    if not isinstance(value, str):
        return False
    return Web3.is_address(value)


def is_nonce_error(error: Exception) -> bool:
    """Node rejected the transaction because its nonce was already used."""
    message = str(error).lower()
    return "nonce too low" in message or "nonce has already been used" in message


class NonceTracker:
    """
    In-memory nonce bookkeeping for one signing wallet.

    The next nonce is seeded lazily from the node's pending count,
    advanced after every accepted transaction and dropped whenever a
    send fails so the following send re-reads it from the node.
    """

    def __init__(self, fetch_nonce: Callable[[], Awaitable[int]]):
        self._fetch_nonce = fetch_nonce
        self._next_nonce: Optional[int] = None
        self.lock = asyncio.Lock()

    @property
    def current(self) -> Optional[int]:
        return self._next_nonce

    async def peek(self) -> int:
        """Return the nonce the next transaction should use."""
        if self._next_nonce is None:
            self._next_nonce = await self._fetch_nonce()
            logger.debug(f"Nonce seeded from node: {self._next_nonce}")
        return self._next_nonce

    def advance(self) -> None:
        """Mark the current nonce as consumed."""
        if self._next_nonce is not None:
            self._next_nonce += 1

    def reset(self) -> None:
        """Forget the cached nonce."""
        self._next_nonce = None


class WalletClient:
    """
    Signing wallet on an EVM chain.

    Handles:
    - Balance queries
    - Native ETH transfers
    - Nonce-tracked signed sends
    """

    def __init__(self, rpc_url: str, private_key: str, chain_id: int):
        """
        Initialize wallet client.

        Args:
            rpc_url: JSON-RPC endpoint URL
            private_key: Wallet private key
            chain_id: Chain ID used when signing
        """
        self.rpc_url = rpc_url
        self.private_key = private_key
        self.chain_id = chain_id

        self._web3: Optional[Web3] = None
        self._account = None
        self._nonces = NonceTracker(self._fetch_pending_nonce)

    @property
    def address(self) -> str:
        if self._account is None:
            raise ChainError("Wallet client not initialized")
        return self._account.address

    @property
    def web3(self) -> Web3:
        if self._web3 is None:
            raise ChainError("Wallet client not initialized")
        return self._web3

    async def initialize(self) -> None:
        """Initialize Web3 connection and signing account."""
        if self._web3 is not None:
            return

        logger.info("Initializing wallet client", extra={"rpc_url": self.rpc_url})

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._setup_web3)

        logger.info("Wallet client initialized", extra={"address": self.address})

    def _setup_web3(self) -> None:
        """Set up Web3 instance and account."""
        self._web3 = Web3(Web3.HTTPProvider(self.rpc_url))

        if not self._web3.is_connected():
            raise ChainError(f"Failed to connect to RPC: {self.rpc_url}")

        self._account = Account.from_key(self.private_key)

    async def _run(self, func: Callable[[], Any]) -> Any:
        """Run a blocking web3 call in the default executor."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, func)

    async def _fetch_pending_nonce(self) -> int:
        return await self._run(
            lambda: self.web3.eth.get_transaction_count(self.address, "pending")
        )

    async def get_balance(self, address: Optional[str] = None) -> int:
        """Get native balance in wei (defaults to this wallet)."""
        target = Web3.to_checksum_address(address) if address else self.address
        try:
            return await self._run(lambda: self.web3.eth.get_balance(target))
        except ChainError:
            raise
        except Exception as e:
            raise ChainError(f"Failed to get balance for {target}: {e}") from e

    async def send_eth(self, to_address: str, amount_wei: int) -> TransactionResult:
        """
        Send native ETH from this wallet.

        Args:
            to_address: Recipient address
            amount_wei: Amount in wei

        Returns:
            TransactionResult with tx hash and receipt data
        """
        recipient = Web3.to_checksum_address(to_address)

        async def build(nonce: int) -> dict:
            gas_price = await self._run(lambda: self.web3.eth.gas_price)
            return {
                "to": recipient,
                "value": amount_wei,
                "nonce": nonce,
                "gas": TRANSFER_GAS,
                "gasPrice": gas_price,
                "chainId": self.chain_id,
            }

        return await self._send(build, label=f"transfer to {recipient}")

    async def _send(
        self,
        build_tx: Callable[[int], Awaitable[dict]],
        label: str
    ) -> TransactionResult:
        """Sign and send a transaction, then wait for its receipt."""
        async with self._nonces.lock:
            try:
                nonce = await self._nonces.peek()
                logger.info(f"Sending {label}", extra={"nonce": nonce})

                tx = await build_tx(nonce)
                signed_tx = await self._run(lambda: self._account.sign_transaction(tx))
                tx_hash = await self._run(
                    lambda: self.web3.eth.send_raw_transaction(signed_tx.raw_transaction)
                )
            except Exception as e:
                if is_nonce_error(e):
                    logger.warning("Nonce too low, resetting")
                else:
                    logger.error(f"Failed to send {label}: {e}")
                self._nonces.reset()
                return TransactionResult(success=False, tx_hash="", error=str(e))

            self._nonces.advance()

        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"Transaction sent: {tx_hash_hex}")

        try:
            receipt = await self._run(
                lambda: self.web3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=RECEIPT_TIMEOUT_SECONDS
                )
            )
        except Exception as e:
            logger.error(f"No receipt for {tx_hash_hex}: {e}")
            return TransactionResult(success=False, tx_hash=tx_hash_hex, error=str(e))

        if receipt["status"] != 1:
            return TransactionResult(
                success=False,
                tx_hash=tx_hash_hex,
                block_number=receipt["blockNumber"],
                gas_used=receipt["gasUsed"],
                error="Transaction reverted"
            )

        logger.info(
            "Transaction confirmed",
            extra={"tx_hash": tx_hash_hex, "block_number": receipt["blockNumber"]}
        )

        return TransactionResult(
            success=True,
            tx_hash=tx_hash_hex,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"]
        )


class PredictionContractClient(WalletClient):
    """
    Client for the prediction market contract.

    Reads predictions, user stats and roles; creates and finalizes
    predictions signed by the backend wallet.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        contract_address: str,
        chain_id: int
    ):
        super().__init__(rpc_url, private_key, chain_id)
        self.contract_address = Web3.to_checksum_address(contract_address)
        self._contract = None

    def _setup_web3(self) -> None:
        super()._setup_web3()
        self._contract = self._web3.eth.contract(
            address=self.contract_address,
            abi=PREDICTION_MARKET_ABI
        )

    @property
    def contract(self):
        if self._contract is None:
            raise ChainError("Contract client not initialized")
        return self._contract

    async def _call(self, name: str, *args) -> Any:
        """Call a view function on the contract."""
        try:
            return await self._run(
                lambda: getattr(self.contract.functions, name)(*args).call()
            )
        except ChainError:
            raise
        except Exception as e:
            raise ContractReadError(f"{name} failed: {e}") from e

    async def get_prediction_count(self) -> int:
        return int(await self._call("predictionCounter"))

    async def get_prediction(self, prediction_id: int) -> Prediction:
        """Fetch and parse one prediction."""
        data = await self._call("getPredictionDetails", prediction_id)
        return Prediction.from_contract(prediction_id, data)

    async def list_predictions(
        self,
        status: Optional[PredictionStatus] = None
    ) -> list[Prediction]:
        """Fetch all predictions, optionally filtered by status."""
        count = await self.get_prediction_count()
        predictions = await asyncio.gather(
            *(self.get_prediction(i) for i in range(count))
        )
        if status is None:
            return list(predictions)
        return [p for p in predictions if p.status == status]

    async def get_user_stats(self, address: str) -> UserStats:
        checksum = Web3.to_checksum_address(address)
        total, correct, rewards = await self._call("getUserStats", checksum)
        return UserStats(
            address=checksum,
            total_predictions=int(total),
            correct_predictions=int(correct),
            total_rewards=int(rewards)
        )

    async def has_role(self, role: str, address: str) -> bool:
        return bool(await self._call("hasRole", role, Web3.to_checksum_address(address)))

    async def get_roles(self, address: str) -> dict[str, bool]:
        """Check every known role for an address."""
        names = list(ROLES)
        flags = await asyncio.gather(*(self.has_role(ROLES[n], address) for n in names))
        return dict(zip(names, flags))

    async def _transact(self, label: str, name: str, *args) -> TransactionResult:
        """Build, sign and send a contract write."""
        async def build(nonce: int) -> dict:
            fn = getattr(self.contract.functions, name)(*args)
            gas_price = await self._run(lambda: self.web3.eth.gas_price)
            tx_params = {
                "from": self.address,
                "nonce": nonce,
                "gasPrice": gas_price,
                "chainId": self.chain_id,
            }
            gas_estimate = await self._run(lambda: fn.estimate_gas(tx_params))
            tx_params["gas"] = int(gas_estimate * GAS_BUFFER)
            return await self._run(lambda: fn.build_transaction(tx_params))

        return await self._send(build, label=label)

    async def create_prediction(self, draft: PredictionDraft) -> TransactionResult:
        """Create a prediction on the contract."""
        logger.info(
            "Creating prediction on contract",
            extra={
                "description": draft.description[:80],
                "contract": self.contract_address
            }
        )
        return await self._transact(
            "createPrediction",
            "createPrediction",
            draft.description,
            draft.duration,
            draft.min_votes,
            draft.max_votes,
            draft.prediction_type,
            draft.options_count,
            list(draft.tags),
        )

    async def finalize_prediction(self, prediction_id: int, outcome: int) -> TransactionResult:
        """Finalize a prediction with the given outcome."""
        logger.info(
            "Finalizing prediction on contract",
            extra={"prediction_id": prediction_id, "outcome": outcome}
        )
        return await self._transact(
            f"finalizePrediction({prediction_id})",
            "finalizePrediction",
            prediction_id,
            outcome,
        )

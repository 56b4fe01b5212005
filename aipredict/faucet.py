"""
Test-network ETH faucet.
Sends a fixed small amount to wallets that ask, at most once per cooldown.
"""

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from web3 import Web3

from . import database
from .clients.chain_client import WalletClient, is_valid_address
from .errors import (
    ChainError,
    FaucetCooldownError,
    InsufficientFaucetFundsError,
    InvalidAddressError,
)
from .utils.logger import get_logger, OracleLogger

logger = get_logger("faucet")
oracle_logger = OracleLogger()


@dataclass
class FaucetResult:
    """Successful faucet payout."""
    address: str
    amount_eth: str
    transaction_hash: str

    def to_dict(self) -> dict:
        return {
            "message": f"Successfully sent {self.amount_eth} ETH to {self.address}",
            "transactionHash": self.transaction_hash,
        }


class Faucet:
    """
    Dispenses test ETH from a dedicated wallet.

    Checks, in order: address validity, per-address cooldown, wallet balance.
    Requests for the same address are serialized from the cooldown check
    until the payout is recorded.
    """

    def __init__(
        self,
        wallet: WalletClient,
        amount_eth: str = "0.0015",
        cooldown_seconds: int = 86400
    ):
        self.wallet = wallet
        self.amount_eth = amount_eth
        self.amount_wei = int(Web3.to_wei(Decimal(amount_eth), "ether"))
        self.cooldown_seconds = cooldown_seconds
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, address: str) -> asyncio.Lock:
        key = address.lower()
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def check_cooldown(self, address: str, now: Optional[float] = None) -> None:
        """Raise FaucetCooldownError if the address was funded too recently."""
        if self.cooldown_seconds <= 0:
            return

        now = time.time() if now is None else now
        last = database.get_last_faucet_request(address)
        if last is None:
            return

        elapsed = now - last["requested_at"]
        if elapsed < self.cooldown_seconds:
            raise FaucetCooldownError(address, int(self.cooldown_seconds - elapsed) + 1)

    async def dispense(self, address: str, now: Optional[float] = None) -> FaucetResult:
        """
        Send the configured amount to an address.

        Raises:
            InvalidAddressError, FaucetCooldownError, InsufficientFaucetFundsError
            ChainError: transfer failed or reverted
        """
        if not is_valid_address(address):
            oracle_logger.faucet_rejected(str(address), "invalid address")
            raise InvalidAddressError("Valid Ethereum address is required")

        recipient = Web3.to_checksum_address(address)

        async with self._lock_for(recipient):
            return await self._dispense_to(recipient, now)

    async def _dispense_to(self, recipient: str, now: Optional[float]) -> FaucetResult:
        try:
            self.check_cooldown(recipient, now)
        except FaucetCooldownError:
            oracle_logger.faucet_rejected(recipient, "cooldown")
            raise

        balance = await self.wallet.get_balance()
        if balance < self.amount_wei:
            oracle_logger.faucet_rejected(recipient, "insufficient funds")
            raise InsufficientFaucetFundsError("Insufficient funds in faucet wallet")

        result = await self.wallet.send_eth(recipient, self.amount_wei)
        if not result.success:
            raise ChainError(f"Faucet transfer failed: {result.error}")

        database.record_faucet_request(
            recipient,
            self.amount_wei,
            result.tx_hash,
            time.time() if now is None else now
        )
        oracle_logger.faucet_dispensed(recipient, self.amount_eth, result.tx_hash)

        return FaucetResult(
            address=recipient,
            amount_eth=self.amount_eth,
            transaction_hash=result.tx_hash
        )

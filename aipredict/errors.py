"""
Exception hierarchy for the oracle backend.
Clients raise these; only the HTTP layer turns them into responses.
"""

from typing import Optional


class OracleError(Exception):
    """Base class for all backend errors."""


class ResearchError(OracleError):
    """Perplexity research request failed."""


class CompletionError(OracleError):
    """OpenAI completion request failed."""


class GenerationError(OracleError):
    """LLM output could not be turned into prediction drafts."""


class OutcomeFormatError(OracleError):
    """LLM verdict did not follow the outcome/confidence/explanation format."""


class PriceFeedError(OracleError):
    """Pyth request failed or timed out."""


class PriceFeedNotFoundError(PriceFeedError):
    """Pyth returned no feed for the requested id."""


class ChainError(OracleError):
    """RPC or contract call failed."""


class ContractReadError(ChainError):
    """A view call on the contract failed."""


class FaucetError(OracleError):
    """Base class for faucet refusals."""


class InvalidAddressError(FaucetError):
    """Requested address is not a valid Ethereum address."""


class InsufficientFaucetFundsError(FaucetError):
    """Faucet wallet cannot cover the payout."""


class FaucetCooldownError(FaucetError):
    """Address was already funded within the cooldown window."""

    def __init__(self, address: str, retry_after: int, message: Optional[str] = None):
        self.address = address
        self.retry_after = retry_after
        super().__init__(
            message or f"Address {address} was funded recently, retry in {retry_after}s"
        )

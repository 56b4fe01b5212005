# External service clients
from .perplexity_client import PerplexityClient
from .openai_client import OpenAIClient
from .pyth_client import PythClient
from .chain_client import PredictionContractClient, WalletClient, TransactionResult

__all__ = [
    "PerplexityClient",
    "OpenAIClient",
    "PythClient",
    "PredictionContractClient",
    "WalletClient",
    "TransactionResult",
]

"""
Configuration module for the AI Predict oracle backend.
Loads settings from environment variables with validation.
"""

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

SIX_MONTHS_SECONDS = 6 * 30 * 24 * 3600


@dataclass
class OpenAIConfig:
    """OpenAI API configuration."""
    api_key: str
    model: str = "gpt-4"
    generation_temperature: float = 0.7
    resolution_temperature: float = 0.1


@dataclass
class PerplexityConfig:
    """Perplexity search API configuration."""
    api_key: str
    model: str = "llama-3.1-sonar-small-128k-online"
    base_url: str = "https://api.perplexity.ai"
    max_tokens: int = 300
    temperature: float = 0.5
    top_p: float = 0.9
    recency_filter: str = "week"


@dataclass
class ChainConfig:
    """Wallet and contract configuration."""
    rpc_url: str
    private_key: str
    contract_address: str
    faucet_private_key: Optional[str] = None

    # Chain ID for Base Sepolia
    chain_id: int = 84532


@dataclass
class FaucetConfig:
    """Test ETH faucet settings."""
    amount_eth: str = "0.0015"
    cooldown_seconds: int = 86400


@dataclass
class OracleConfig:
    """Market generation and auto-resolution parameters."""
    auto_resolve: bool = False
    resolve_interval_seconds: int = 600
    min_confidence: float = 0.8
    predictions_per_topic: int = 3
    max_duration_seconds: int = SIX_MONTHS_SECONDS
    min_votes: int = 1
    max_votes: int = 1000


@dataclass
class ServerConfig:
    """HTTP server settings."""
    host: str = "0.0.0.0"
    port: int = 4000


@dataclass
class LogConfig:
    """Logging configuration."""
    log_level: str
    json_logging: bool


@dataclass
class DatabaseConfig:
    """History database location."""
    path: str = "data/oracle.db"


@dataclass
class Config:
    """Main configuration container."""
    openai: OpenAIConfig
    perplexity: PerplexityConfig
    chain: ChainConfig
    faucet: FaucetConfig
    oracle: OracleConfig
    server: ServerConfig
    logging: LogConfig
    database: DatabaseConfig


def get_env(key: str, default: Optional[str] = None, required: bool = True) -> str:
    """Get environment variable with validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable {key} is not set")
    return value or ""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes")


def get_env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    value = os.getenv(key, str(default))
    return int(value)


def get_env_float(key: str, default: float) -> float:
    """Get float environment variable."""
    value = os.getenv(key, str(default))
    return float(value)


def get_env_list(key: str, default: list[str]) -> list[str]:
    """Get comma-separated list environment variable."""
    value = os.getenv(key)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config() -> Config:
    """Load and validate configuration from environment."""
    return Config(
        openai=OpenAIConfig(
            api_key=get_env("OPENAI_API_KEY"),
            model=get_env("OPENAI_MODEL", "gpt-4", required=False),
        ),
        perplexity=PerplexityConfig(
            api_key=get_env("PERPLEXITY_API_KEY"),
            model=get_env(
                "PERPLEXITY_MODEL", "llama-3.1-sonar-small-128k-online", required=False
            ),
        ),
        chain=ChainConfig(
            rpc_url=get_env("RPC_URL"),
            private_key=get_env("PRIVATE_KEY"),
            contract_address=get_env("CONTRACT_ADDRESS"),
            faucet_private_key=get_env("PRIVATE_KEY_FAUCET", required=False) or None,
            chain_id=get_env_int("CHAIN_ID", 84532),
        ),
        faucet=FaucetConfig(
            amount_eth=get_env("FAUCET_AMOUNT_ETH", "0.0015", required=False),
            cooldown_seconds=get_env_int("FAUCET_COOLDOWN_SECONDS", 86400),
        ),
        oracle=OracleConfig(
            auto_resolve=get_env_bool("AUTO_RESOLVE", False),
            resolve_interval_seconds=get_env_int("RESOLVE_INTERVAL_SECONDS", 600),
            min_confidence=get_env_float("MIN_RESOLUTION_CONFIDENCE", 0.8),
            predictions_per_topic=get_env_int("PREDICTIONS_PER_TOPIC", 3),
        ),
        server=ServerConfig(
            host=get_env("HOST", "0.0.0.0", required=False),
            port=get_env_int("PORT", 4000),
        ),
        logging=LogConfig(
            log_level=get_env("LOG_LEVEL", "INFO", required=False),
            json_logging=get_env_bool("JSON_LOGGING", True),
        ),
        database=DatabaseConfig(
            path=get_env("DATABASE_PATH", "data/oracle.db", required=False),
        ),
    )

"""
Tests for service wiring.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from aipredict.config import (
    ChainConfig,
    Config,
    DatabaseConfig,
    FaucetConfig,
    LogConfig,
    OpenAIConfig,
    OracleConfig,
    PerplexityConfig,
    ServerConfig,
)
from aipredict.main import OracleService
from aipredict.markets.resolver import ResolutionSweep


def make_config(tmp_path, faucet_key=None, auto_resolve=False) -> Config:
    return Config(
        openai=OpenAIConfig(api_key="sk-test"),
        perplexity=PerplexityConfig(api_key="pplx-test"),
        chain=ChainConfig(
            rpc_url="http://localhost:8545",
            private_key="0x" + "01" * 32,
            contract_address="0x" + "ef" * 20,
            faucet_private_key=faucet_key
        ),
        faucet=FaucetConfig(),
        oracle=OracleConfig(auto_resolve=auto_resolve, resolve_interval_seconds=1),
        server=ServerConfig(),
        logging=LogConfig(log_level="INFO", json_logging=False),
        database=DatabaseConfig(path=str(tmp_path / "oracle.db")),
    )


def test_faucet_shares_backend_wallet_without_key(tmp_path):
    service = OracleService(make_config(tmp_path))
    assert service.faucet.wallet is service.contract


def test_faucet_uses_dedicated_wallet(tmp_path):
    service = OracleService(make_config(tmp_path, faucet_key="0x" + "02" * 32))
    assert service.faucet.wallet is not service.contract
    assert service.faucet.wallet.private_key == "0x" + "02" * 32


@pytest.mark.asyncio
async def test_auto_resolve_loop_stops_on_shutdown(tmp_path):
    service = OracleService(make_config(tmp_path, auto_resolve=True))
    service.resolver.resolve_due = AsyncMock(return_value=ResolutionSweep(resolved=[1]))
    service._running = True

    task = asyncio.create_task(service._run_auto_resolve())
    await asyncio.sleep(0.05)
    service.request_shutdown()
    await asyncio.wait_for(task, timeout=2)

    service.resolver.resolve_due.assert_called()

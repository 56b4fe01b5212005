"""
Main entry point for the AI Predict oracle backend.
Wires clients and services together, serves the HTTP API and runs the
periodic auto-resolution loop.
"""

import asyncio
import signal
import sys

from . import database
from .config import load_config, Config
from .clients.chain_client import PredictionContractClient, WalletClient
from .clients.openai_client import OpenAIClient
from .clients.perplexity_client import PerplexityClient
from .clients.pyth_client import PythClient
from .faucet import Faucet
from .markets.generator import PredictionGenerator
from .markets.resolver import OutcomeResolver
from .api import server
from .utils.logger import setup_logging, get_logger

logger = get_logger("main")


class OracleService:
    """
    Backend orchestrator.

    Coordinates:
    - Perplexity research and OpenAI reasoning clients
    - Prediction contract client (backend wallet)
    - Faucet wallet
    - HTTP API server
    - Auto-resolution of predictions past their end time
    """

    def __init__(self, config: Config):
        """Initialize service with configuration."""
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._server = None
        self._closed = False

        self.perplexity = PerplexityClient(
            api_key=config.perplexity.api_key,
            model=config.perplexity.model,
            base_url=config.perplexity.base_url,
            max_tokens=config.perplexity.max_tokens,
            temperature=config.perplexity.temperature,
            top_p=config.perplexity.top_p,
            recency_filter=config.perplexity.recency_filter
        )

        self.openai = OpenAIClient(
            api_key=config.openai.api_key,
            model=config.openai.model
        )

        self.pyth = PythClient()

        self.contract = PredictionContractClient(
            rpc_url=config.chain.rpc_url,
            private_key=config.chain.private_key,
            contract_address=config.chain.contract_address,
            chain_id=config.chain.chain_id
        )

        # Without a dedicated key the faucet shares the backend wallet and its nonces
        if config.chain.faucet_private_key:
            self.faucet_wallet: WalletClient = WalletClient(
                rpc_url=config.chain.rpc_url,
                private_key=config.chain.faucet_private_key,
                chain_id=config.chain.chain_id
            )
        else:
            self.faucet_wallet = self.contract

        self.generator = PredictionGenerator(
            perplexity=self.perplexity,
            openai=self.openai,
            contract=self.contract,
            predictions_per_topic=config.oracle.predictions_per_topic,
            max_duration=config.oracle.max_duration_seconds,
            min_votes=config.oracle.min_votes,
            max_votes=config.oracle.max_votes,
            temperature=config.openai.generation_temperature
        )

        self.resolver = OutcomeResolver(
            perplexity=self.perplexity,
            openai=self.openai,
            contract=self.contract,
            min_confidence=config.oracle.min_confidence,
            temperature=config.openai.resolution_temperature
        )

        self.faucet = Faucet(
            wallet=self.faucet_wallet,
            amount_eth=config.faucet.amount_eth,
            cooldown_seconds=config.faucet.cooldown_seconds
        )

    async def initialize(self) -> None:
        """Initialize all components."""
        logger.info("Initializing oracle service")

        database.configure(self.config.database.path)
        database.init_db()

        await self.perplexity.initialize()
        await self.pyth.initialize()
        await self.contract.initialize()
        if self.faucet_wallet is not self.contract:
            await self.faucet_wallet.initialize()

        try:
            balance = await self.faucet_wallet.get_balance()
            logger.info(
                "Faucet wallet balance",
                extra={"address": self.faucet_wallet.address, "balance_wei": balance}
            )
            if balance < self.faucet.amount_wei:
                logger.warning("Faucet wallet cannot cover a single payout")
        except Exception as e:
            logger.warning(f"Could not check faucet balance: {e}")

        logger.info("Oracle service initialized")

    def register_server(self, http_server) -> None:
        """Keep a handle on the HTTP server so shutdown can stop it."""
        self._server = http_server

    async def run(self) -> None:
        """Serve the API and, if enabled, the auto-resolution loop."""
        self._running = True

        tasks = [self._serve_api(), self._wait_for_shutdown()]

        if self.config.oracle.auto_resolve:
            logger.info(
                "Auto-resolution enabled",
                extra={
                    "interval_seconds": self.config.oracle.resolve_interval_seconds,
                    "min_confidence": self.config.oracle.min_confidence
                }
            )
            tasks.append(self._run_auto_resolve())

        try:
            await asyncio.gather(*tasks)
        finally:
            await self.shutdown()

    async def _serve_api(self) -> None:
        """Run the HTTP server; the rest of the service stops when it does."""
        try:
            await server.serve(
                self,
                host=self.config.server.host,
                port=self.config.server.port,
                log_level=self.config.logging.log_level.lower()
            )
        finally:
            self.request_shutdown()

    async def _run_auto_resolve(self) -> None:
        """Periodically finalize predictions that are due."""
        while self._running and not self._shutdown_event.is_set():
            try:
                sweep = await self.resolver.resolve_due()
                if sweep.resolved or sweep.skipped or sweep.failed:
                    logger.info("Resolution sweep complete", extra=sweep.to_dict())
            except Exception as e:
                logger.error(f"Auto-resolve error: {e}")

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.config.oracle.resolve_interval_seconds
                )
            except asyncio.TimeoutError:
                pass

    async def _wait_for_shutdown(self) -> None:
        """Wait for shutdown signal, then stop the HTTP server."""
        await self._shutdown_event.wait()
        self._running = False
        if self._server is not None:
            self._server.should_exit = True

    async def shutdown(self) -> None:
        """Gracefully shutdown the service."""
        if self._closed:
            return

        logger.info("Shutting down oracle service")
        self._closed = True
        self._running = False
        self._server = None

        await self.perplexity.close()
        await self.pyth.close()
        await self.openai.close()

        logger.info("Oracle service shutdown complete")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def setup_signal_handlers(service: OracleService) -> None:
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        service.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def main() -> None:
    """Main entry point."""
    try:
        config = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(
        level=config.logging.log_level,
        json_format=config.logging.json_logging
    )

    logger.info("Starting AI Predict oracle backend")

    service = OracleService(config)

    try:
        await service.initialize()
        setup_signal_handlers(service)
        await service.run()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise
    finally:
        await service.shutdown()


if __name__ == "__main__":
    asyncio.run(main())

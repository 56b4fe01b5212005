"""
Pyth Hermes client for reference crypto prices.
"""

import asyncio
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional

import aiohttp

from ..errors import PriceFeedError, PriceFeedNotFoundError
from ..utils.logger import get_logger

logger = get_logger("pyth")

PRICE_FEED_IDS = {
    "BTC/USD": "0xe62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43",
    "BNB/USD": "0x2f95862b045670cd22bee3114c39763a4a08beeb663b145d283c31d7d1101c4f",
    "SOL/USD": "0xef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d",
    "ETH/USD": "0xff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace",
}


@dataclass
class PriceQuote:
    """Human-readable price from a Pyth feed."""
    id: str
    price: str  # Two decimals
    confidence: str  # Two decimals
    publish_time: str  # ISO-8601 UTC

    def to_dict(self) -> dict:
        result = asdict(self)
        result["publishTime"] = result.pop("publish_time")
        return result


def pair_from_slug(slug: str) -> Optional[str]:
    """Map a URL slug like 'btc-usd' to a known pair like 'BTC/USD'."""
    pair = slug.upper().replace("-", "/")
    return pair if pair in PRICE_FEED_IDS else None


def parse_price_feed(feed: dict) -> PriceQuote:
    """Apply the feed exponent to price and confidence."""
    price_data = feed["price"]
    expo = int(price_data["expo"])
    scale = 10 ** expo

    price = float(price_data["price"]) * scale
    confidence = float(price_data["conf"]) * scale
    published = datetime.fromtimestamp(int(price_data["publish_time"]), tz=timezone.utc)

    return PriceQuote(
        id=feed["id"],
        price=f"{price:.2f}",
        confidence=f"{confidence:.2f}",
        publish_time=published.isoformat().replace("+00:00", "Z")
    )


class PythClient:
    """Client for the Pyth Hermes latest price API (no auth required)."""

    BASE_URL = "https://hermes.pyth.network"

    def __init__(self, base_url: Optional[str] = None, timeout_seconds: float = 10.0):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        logger.info("Pyth client initialized")

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def fetch_price(self, feed_id: str) -> PriceQuote:
        """Fetch the latest price for a feed id."""
        if not self._session:
            await self.initialize()

        url = f"{self.base_url}/api/latest_price_feeds"

        try:
            async with self._session.get(url, params=[("ids[]", feed_id)]) as response:
                response.raise_for_status()
                data = await response.json()
        except asyncio.TimeoutError as e:
            logger.error(f"Pyth request timed out after {self.timeout_seconds}s")
            raise PriceFeedError(f"Pyth request timed out after {self.timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            logger.error(f"Pyth request failed: {e}")
            raise PriceFeedError(f"Failed to fetch price from Pyth: {e}") from e

        if not data:
            raise PriceFeedNotFoundError("Price feed not found")

        return parse_price_feed(data[0])

    async def get_price(self, pair: str) -> PriceQuote:
        """Fetch the latest price for a pair like 'BTC/USD'."""
        feed_id = PRICE_FEED_IDS.get(pair)
        if feed_id is None:
            raise PriceFeedNotFoundError(f"Unknown price pair: {pair}")
        return await self.fetch_price(feed_id)

    async def get_all_prices(self) -> dict[str, PriceQuote]:
        """Fetch every known pair."""
        prices = {}
        for pair, feed_id in PRICE_FEED_IDS.items():
            prices[pair] = await self.fetch_price(feed_id)
        return prices

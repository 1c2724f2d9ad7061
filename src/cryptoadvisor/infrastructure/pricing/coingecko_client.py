# src/cryptoadvisor/infrastructure/pricing/coingecko_client.py
"""
CoinGecko fallback price client with request spacing and a short cache.
The free tier tolerates roughly 10-30 requests per minute.
"""

import asyncio
import logging
import threading
import time
from typing import Dict, Optional, Tuple

import httpx

log = logging.getLogger(__name__)

# Tickers whose CoinGecko id is not simply the lowercased ticker.
_COIN_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "XRP": "ripple",
    "BNB": "binancecoin",
    "DOGE": "dogecoin",
    "ADA": "cardano",
    "DOT": "polkadot",
    "AVAX": "avalanche-2",
    "MATIC": "matic-network",
    "LINK": "chainlink",
    "LTC": "litecoin",
}


class CoinGeckoClient:
    BASE_URL = "https://api.coingecko.com/api/v3"

    def __init__(self, request_interval: float = 6.0, cache_ttl: int = 60, timeout: float = 10.0):
        self._request_interval = request_interval
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        self._last_request_time = 0.0
        # Used from more than one event loop (scheduler thread, API), so not an asyncio.Lock.
        self._lock = threading.Lock()
        self._price_cache: Dict[str, Tuple[float, float]] = {}

    async def _wait_for_rate_limit(self) -> None:
        with self._lock:
            now = time.time()
            wait_time = max(0.0, self._last_request_time + self._request_interval - now)
            self._last_request_time = now + wait_time
        if wait_time > 0:
            log.debug("CoinGecko rate limit: waiting %.2fs", wait_time)
            await asyncio.sleep(wait_time)

    @staticmethod
    def coin_id(ticker: str) -> str:
        ticker = ticker.upper()
        if ticker.endswith("USDT") and len(ticker) > 4:
            ticker = ticker[:-4]
        return _COIN_IDS.get(ticker, ticker.lower())

    async def get_price(self, ticker: str) -> Optional[float]:
        """USD price for a coin ticker ("BTC" or "BTCUSDT"), or None."""
        coin_id = self.coin_id(ticker)

        cached = self._price_cache.get(coin_id)
        if cached:
            price, ts = cached
            if time.time() - ts < self._cache_ttl:
                return price

        try:
            await self._wait_for_rate_limit()
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.BASE_URL}/simple/price",
                    params={"ids": coin_id, "vs_currencies": "usd"},
                    timeout=self._timeout,
                )

                if response.status_code == 429:
                    log.warning("CoinGecko 429 (Too Many Requests) for %s. Backing off.", coin_id)
                    self._request_interval += 2.0
                    return None

                response.raise_for_status()
                data = response.json()

            if coin_id in data and "usd" in data[coin_id]:
                price = float(data[coin_id]["usd"])
                self._price_cache[coin_id] = (price, time.time())
                return price

            log.warning("Price for '%s' not found in CoinGecko.", coin_id)
            return None

        except httpx.HTTPStatusError as e:
            log.error("CoinGecko HTTP error for %s: %s", coin_id, e.response.status_code)
        except httpx.HTTPError as e:
            log.error("CoinGecko fetch failed for %s: %s", coin_id, e)
        return None

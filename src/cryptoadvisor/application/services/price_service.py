# src/cryptoadvisor/application/services/price_service.py
"""
Price fetching with a small cache and automatic provider failover.

Binance is tried first (unless MARKET_DATA_PROVIDER says otherwise); if it
returns nothing (geo-block, timeout, unknown pair) CoinGecko is tried within
the same call. When every provider fails the call raises DataUnavailable.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from cryptoadvisor.config import settings
from cryptoadvisor.domain.errors import DataUnavailable
from cryptoadvisor.domain.value_objects import Symbol
from cryptoadvisor.infrastructure.cache import InMemoryCache
from cryptoadvisor.infrastructure.pricing.binance import BinancePricing
from cryptoadvisor.infrastructure.pricing.coingecko_client import CoinGeckoClient

log = logging.getLogger(__name__)

_STABLECOINS = frozenset({"USDT", "USDC", "BUSD", "DAI", "TUSD", "USD"})


@dataclass
class PriceService:
    provider: str = field(default_factory=lambda: settings.MARKET_DATA_PROVIDER.lower())
    cache_ttl_seconds: int = field(default_factory=lambda: settings.PRICE_CACHE_TTL_SECONDS)
    cache: InMemoryCache = field(default_factory=InMemoryCache)
    coingecko: CoinGeckoClient = field(default_factory=CoinGeckoClient)

    @staticmethod
    def _pair(ticker: str) -> str:
        """Binance trades coins against USDT: "BTC" -> "BTCUSDT"."""
        return f"{ticker}USDT"

    async def get_cached_price(self, symbol: str, force_refresh: bool = False) -> Optional[float]:
        """Return the cached USD price if fresh; otherwise fetch, cache and return it (None on failure)."""
        if not symbol:
            return None

        ticker = Symbol(symbol).value
        if ticker in _STABLECOINS:
            return 1.0

        cache_key = f"price:{ticker}"
        if not force_refresh:
            cached_price = self.cache.get(cache_key)
            if cached_price is not None:
                return cached_price

        live_price: Optional[float] = None
        loop = asyncio.get_running_loop()

        if self.provider == "binance":
            # Blocking client; keep it off the event loop.
            live_price = await loop.run_in_executor(None, BinancePricing.get_price, self._pair(ticker))

        if live_price is None:
            if self.provider == "binance":
                log.info("Binance failed/blocked for %s. Failing over to CoinGecko...", ticker)
            live_price = await self.coingecko.get_price(ticker)

        if live_price is None:
            log.error("All providers failed to fetch price for %s", ticker)
            return None

        self.cache.set(cache_key, live_price, ttl_seconds=self.cache_ttl_seconds)
        return live_price

    async def get_price(self, symbol: str) -> Decimal:
        """Current USD price as a Decimal. Raises DataUnavailable when no provider answers."""
        try:
            price = await self.get_cached_price(symbol)
        except ValueError as e:
            raise DataUnavailable(f"cannot price {symbol!r}: {e}") from e
        if price is None:
            raise DataUnavailable(f"no price available for {symbol}")
        return Decimal(str(price))

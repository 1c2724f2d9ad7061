# src/cryptoadvisor/application/services/sentiment_service.py
import logging
from typing import Optional

from cryptoadvisor.config import settings
from cryptoadvisor.domain.errors import DataUnavailable
from cryptoadvisor.domain.value_objects import SentimentReading
from cryptoadvisor.infrastructure.cache import InMemoryCache
from cryptoadvisor.infrastructure.sentiment.fear_greed import FearGreedClient

log = logging.getLogger(__name__)

_CACHE_KEY = "sentiment:fear_greed"


class SentimentService:
    """Market-wide sentiment from the Fear & Greed index, cached (the index updates daily)."""

    def __init__(self, client: Optional[FearGreedClient] = None, cache_ttl_seconds: Optional[int] = None):
        self.client = client or FearGreedClient()
        self.cache_ttl_seconds = cache_ttl_seconds or settings.SENTIMENT_CACHE_TTL_SECONDS
        self.cache = InMemoryCache(ttl_seconds=self.cache_ttl_seconds)

    async def current(self) -> SentimentReading:
        cached = self.cache.get(_CACHE_KEY)
        if cached is not None:
            return cached

        score = await self.client.get_index()
        if score is None:
            raise DataUnavailable("sentiment index unavailable")

        reading = SentimentReading.from_score(score)
        self.cache.set(_CACHE_KEY, reading)
        log.debug("Sentiment refreshed: %s (%s)", reading.label.value, reading.score)
        return reading

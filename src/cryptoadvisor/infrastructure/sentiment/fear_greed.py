# src/cryptoadvisor/infrastructure/sentiment/fear_greed.py
"""
Client for the Alternative.me Crypto Fear & Greed index (0 = extreme fear,
100 = extreme greed). Returns None on any failure.
"""

import logging
from typing import Optional

import httpx

log = logging.getLogger(__name__)


class FearGreedClient:
    URL = "https://api.alternative.me/fng/"

    def __init__(self, timeout: float = 10.0):
        self._timeout = timeout

    async def get_index(self) -> Optional[int]:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(self.URL, params={"limit": 1}, timeout=self._timeout)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            log.error("Fear & Greed HTTP error: %s", e.response.status_code)
            return None
        except (httpx.HTTPError, ValueError) as e:
            log.error("Fear & Greed fetch failed: %s", e)
            return None

        try:
            return int(payload["data"][0]["value"])
        except (KeyError, IndexError, TypeError, ValueError):
            log.warning("Unexpected Fear & Greed payload: %s", str(payload)[:200])
            return None

# src/cryptoadvisor/infrastructure/pricing/binance.py
"""
Binance spot ticker client. Blocking (requests); callers run it in an executor.
Returns None on any failure so the price service can fail over.
"""
from __future__ import annotations
import requests
import logging
from typing import Optional

log = logging.getLogger(__name__)

BINANCE_SPOT_TICKER = "https://api.binance.com/api/v3/ticker/price"


class BinancePricing:
    """Fetches USDT-quoted spot prices from Binance."""

    @staticmethod
    def get_price(symbol: str, timeout: float = 4.0) -> Optional[float]:
        """Fetches the price for a single trading pair, e.g. "BTCUSDT"."""
        try:
            r = requests.get(BINANCE_SPOT_TICKER, params={"symbol": symbol.upper()}, timeout=timeout)
            if not r.ok:
                log.warning("Binance price fetch failed for %s: %s", symbol, r.text[:200])
                return None

            data = r.json()
            price_val = data.get("price")
            if price_val is None:
                # e.g. {"code":-1121,"msg":"Invalid symbol."}
                log.warning("Binance returned no price for %s. Response: %s", symbol, data)
                return None
            return float(price_val)

        except requests.RequestException as e:
            log.error("Binance request exception for %s: %s", symbol, e)
            return None
        except (ValueError, TypeError) as e:
            log.warning("Unparseable Binance price for %s: %s", symbol, e)
            return None


# src/cryptoadvisor/domain/value_objects.py
"""
Value objects for the alerting domain. These are immutable and carry no
identity of their own.

Symbol normalization:
- Accepts tickers and common long names ("bitcoin", "Fetch.AI") and maps them
  to the canonical uppercase ticker ("BTC", "FET").
- Quote-currency pairs ("ETH/USDT", "ETH-USDT") collapse to the base ticker,
  since holdings and alerts are always tracked per coin.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .entities import SentimentLabel

# Mapping for known full names -> canonical tickers
_SYMBOL_LOOKUP = {
    "FETCH.AI": "FET",
    "FETCHAI": "FET",
    "TETHER": "USDT",
    "BITCOIN": "BTC",
    "ETHEREUM": "ETH",
    "SOLANA": "SOL",
    "DOGECOIN": "DOGE",
    "RIPPLE": "XRP",
    "CARDANO": "ADA",
    "POLKADOT": "DOT",
}

_QUOTE_SUFFIXES = ("USDT", "USDC", "BUSD", "USD")

_SYMBOL_RE = re.compile(r"^[A-Z0-9]{2,15}$")


class Symbol:
    """A coin ticker. Immutable and always uppercase."""

    def __init__(self, value: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Symbol value must be a non-empty string.")
        normalized = self._normalize(value)
        if not _SYMBOL_RE.match(normalized):
            raise ValueError(f"Invalid symbol format: '{value}' -> normalized '{normalized}'")
        self.value = normalized

    def __repr__(self) -> str:
        return f"Symbol('{self.value}')"

    def __str__(self) -> str:
        return self.value

    def __eq__(self, other) -> bool:
        return isinstance(other, Symbol) and self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    @staticmethod
    def _clean_token(tok: str) -> str:
        return re.sub(r"[^A-Za-z0-9]", "", tok or "").upper()

    @classmethod
    def _normalize(cls, raw: str) -> str:
        text = raw.strip().upper()
        if text in _SYMBOL_LOOKUP:
            return _SYMBOL_LOOKUP[text]

        parts = [p for p in re.split(r"[/\-:\s]+", text) if p]
        if len(parts) >= 2:
            base = cls._clean_token(parts[0])
            return _SYMBOL_LOOKUP.get(base, base)

        token = cls._clean_token(text)
        token = _SYMBOL_LOOKUP.get(token, token)
        for quote in _QUOTE_SUFFIXES:
            if token.endswith(quote) and len(token) > len(quote) + 1:
                return token[: -len(quote)]
        return token


@dataclass(frozen=True)
class SentimentReading:
    """A market sentiment observation: the bucketed label and the raw index score."""
    label: SentimentLabel
    score: int

    @classmethod
    def from_score(cls, score: int) -> "SentimentReading":
        return cls(label=SentimentLabel.from_score(score), score=int(score))


@dataclass(frozen=True)
class Position:
    """One holding of a user's watchlist, valued at the current price."""
    symbol: str
    amount: Decimal
    cost_basis: Decimal
    price: Decimal

    @property
    def value(self) -> Decimal:
        return self.amount * self.price

    @property
    def gain_loss(self) -> Decimal:
        return self.value - self.cost_basis

    @property
    def gain_percent(self) -> Optional[Decimal]:
        if self.cost_basis <= 0:
            return None
        return self.gain_loss / self.cost_basis * Decimal("100")

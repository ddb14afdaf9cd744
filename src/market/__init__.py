"""
Simulated market: instrument catalog, price ticks, session hours.

No I/O. Ticks are a pure function of the previous snapshot plus an
injectable random source.
"""

from market.contracts import Instrument
from market.price_generator import PriceGenerator, next_price
from market.session import MarketSession, is_market_open, next_market_open

__all__ = [
    "Instrument",
    "MarketSession",
    "PriceGenerator",
    "is_market_open",
    "next_market_open",
    "next_price",
]

"""
Exact blackjack expectation engine.

This package provides:
- Exact stand/hit/double/split expected returns for any card composition
- A stand expectation cache persisted per (rules, withdrawn cards) configuration
- Full odds table export to Parquet
"""

from .expectation_engine import ExpectationEngine
from .hand_encoder import HandEncoder
from .hand_enumerator import hand_states, player_hands
from .odds_table import OddsTableBuilder, read_odds_table
from .stand_cache import StandExpectationCache, stand_cache_namespace
from .stand_store import InMemoryStandValueStore, ParquetStandValueStore, StandValueStore

__version__ = "0.1.0"

__all__ = [
    "ExpectationEngine",
    "HandEncoder",
    "InMemoryStandValueStore",
    "OddsTableBuilder",
    "ParquetStandValueStore",
    "StandExpectationCache",
    "StandValueStore",
    "hand_states",
    "player_hands",
    "read_odds_table",
    "stand_cache_namespace",
]

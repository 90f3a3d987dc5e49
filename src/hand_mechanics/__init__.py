from .action_type import ActionType
from .card_distribution import CardDistribution, peek_excluded_rank
from .errors import (
    CacheMiss,
    InvalidHandState,
    InvalidRules,
    OddsError,
    StorageUnavailable,
)
from .hand_state import GameState, counts_from_cards
from .rules import RULES, TableRules

__all__ = [
    "ActionType",
    "CacheMiss",
    "CardDistribution",
    "GameState",
    "InvalidHandState",
    "InvalidRules",
    "OddsError",
    "RULES",
    "StorageUnavailable",
    "TableRules",
    "counts_from_cards",
    "peek_excluded_rank",
]

import hashlib
import json
from dataclasses import dataclass, asdict
from typing import Tuple

from .errors import InvalidRules


# Rank buckets: index 0 = Ace, 1..8 = ranks 2..9, 9 = every ten-valued card
RANKS: Tuple[str, ...] = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10")
NUM_RANKS = len(RANKS)
ACE = 0
TEN = 9
RANK_VALUES: Tuple[int, ...] = (1, 2, 3, 4, 5, 6, 7, 8, 9, 10)
PER_RANK_MAX: Tuple[int, ...] = (4, 4, 4, 4, 4, 4, 4, 4, 4, 16)
CARDS_PER_DECK = 52

# Largest shoe whose mixed-radix hand keys still fit a signed 64-bit integer
MAX_SUPPORTED_DECKS = 13

BLACKJACK_PAYOUT = 1.5


@dataclass(frozen=True)
class TableRules:
    """Immutable rule set of a blackjack table."""

    num_decks: int = 8
    dealer_stands_soft_17: bool = True
    double_after_split: bool = True
    ace_resplits: bool = False
    blackjack_pays: float = BLACKJACK_PAYOUT
    max_splits: int = 2  # 2 => up to 4 hands total

    def __post_init__(self):
        if not isinstance(self.num_decks, int) or self.num_decks < 1:
            raise InvalidRules(f"Deck count must be a positive integer, got {self.num_decks!r}")
        if self.num_decks > MAX_SUPPORTED_DECKS:
            raise InvalidRules(
                f"At most {MAX_SUPPORTED_DECKS} decks are supported, got {self.num_decks}"
            )
        if not self.blackjack_pays > 0:
            raise InvalidRules(f"Blackjack payout must be positive, got {self.blackjack_pays!r}")
        if self.max_splits < 0:
            raise InvalidRules(f"Split budget cannot be negative, got {self.max_splits}")

    def rank_capacity(self, rank: int) -> int:
        """Number of cards of `rank` in the full shoe."""
        return PER_RANK_MAX[rank] * self.num_decks

    @property
    def shoe_size(self) -> int:
        return CARDS_PER_DECK * self.num_decks

    def dealer_hits(self, total: int, soft: bool) -> bool:
        """Dealer draws below 17, and on soft 17 unless the table stands there."""
        return total <= 16 or (total == 17 and soft and not self.dealer_stands_soft_17)

    def to_dict(self) -> dict:
        return asdict(self)

    def checksum(self) -> str:
        """Compute checksum of rules for file metadata."""
        rules_json = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(rules_json.encode()).hexdigest()

    def stand_signature(self) -> dict:
        """Rule fields stand expectations depend on; the split budget is not one of them."""
        signature = self.to_dict()
        del signature["max_splits"]
        return signature


RULES = TableRules(
    num_decks=8,
    dealer_stands_soft_17=True,
    double_after_split=True,
    ace_resplits=False,
    blackjack_pays=BLACKJACK_PAYOUT,
    max_splits=2,
)

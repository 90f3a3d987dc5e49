from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from .errors import InvalidHandState
from .hand_value import card_count
from .rules import NUM_RANKS, RANKS, TEN, TableRules

RankCounts = Tuple[int, ...]

EMPTY: RankCounts = (0,) * NUM_RANKS


def add_card(counts: Sequence[int], rank: int) -> RankCounts:
    """Return a copy of `counts` holding one more card of `rank`."""
    new_counts = list(counts)
    new_counts[rank] += 1
    return tuple(new_counts)


def combine(*groups: Sequence[int]) -> RankCounts:
    """Element-wise sum of several groups of cards."""
    return tuple(sum(column) for column in zip(*groups))


def rank_index(card: str) -> int:
    """Map a card label to its rank bucket. Accepts "T/J/Q/K" as tens."""
    label = card.strip().upper()
    if label in ("T", "J", "Q", "K"):
        return TEN
    try:
        return RANKS.index(label)
    except ValueError:
        raise InvalidHandState(f"Unknown card label: {card!r}") from None


def counts_from_cards(cards: Iterable[str]) -> RankCounts:
    """Create RankCounts from card labels, e.g. ["A", "K"]"""
    counts = [0] * NUM_RANKS
    for card in cards:
        counts[rank_index(card)] += 1
    return tuple(counts)


def single_card_rank(hand: Sequence[int]) -> int:
    """Rank of a one-card group such as a dealer up-card."""
    if card_count(hand) != 1:
        raise InvalidHandState(f"Expected exactly one card, got {card_count(hand)}: {tuple(hand)}")
    return next(rank for rank, count in enumerate(hand) if count == 1)


@dataclass(frozen=True)
class GameState:
    """Complete input to an expectation computation: three groups of cards."""

    player: RankCounts
    dealer: RankCounts
    withdrawn: RankCounts = EMPTY

    def __post_init__(self):
        for name in ("player", "dealer", "withdrawn"):
            counts = tuple(getattr(self, name))
            if len(counts) != NUM_RANKS:
                raise InvalidHandState(
                    f"{name} must hold {NUM_RANKS} rank counts, got {len(counts)}"
                )
            if any(count < 0 for count in counts):
                raise InvalidHandState(f"{name} has negative rank counts: {counts}")
            object.__setattr__(self, name, counts)

    @classmethod
    def from_cards(
        cls,
        player: Iterable[str],
        dealer: Iterable[str],
        withdrawn: Iterable[str] = (),
    ) -> "GameState":
        return cls(
            counts_from_cards(player),
            counts_from_cards(dealer),
            counts_from_cards(withdrawn),
        )

    @property
    def cards_out(self) -> RankCounts:
        """Every card no longer in the shoe."""
        return combine(self.player, self.dealer, self.withdrawn)

    def validate(self, rules: TableRules) -> "GameState":
        """Reject states that hold more cards of a rank than the shoe contains."""
        cards_out = self.cards_out
        for rank in range(NUM_RANKS):
            if cards_out[rank] > rules.rank_capacity(rank):
                raise InvalidHandState(
                    f"{cards_out[rank]} cards of rank {RANKS[rank]} are out, "
                    f"but a {rules.num_decks}-deck shoe holds {rules.rank_capacity(rank)}"
                )
        if card_count(self.dealer) == 0:
            raise InvalidHandState("Dealer hand is empty")
        return self

    def with_player(self, player: Sequence[int]) -> "GameState":
        return GameState(tuple(player), self.dealer, self.withdrawn)

    def __str__(self) -> str:
        def fmt(counts: RankCounts) -> str:
            return ",".join(
                label for label, count in zip(RANKS, counts) for _ in range(count)
            ) or "-"

        return f"player [{fmt(self.player)}] vs dealer [{fmt(self.dealer)}], withdrawn [{fmt(self.withdrawn)}]"

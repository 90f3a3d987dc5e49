from typing import Sequence

from .errors import InvalidHandState
from .rules import ACE, RANK_VALUES


def card_count(cards: Sequence[int]) -> int:
    return sum(cards)


def raw_value(hand: Sequence[int]) -> int:
    """Total with every ace counted as 1."""
    return sum(count * value for count, value in zip(hand, RANK_VALUES))


def hand_value(hand: Sequence[int]) -> int:
    """Best total of a hand; at most one ace is ever counted as 11."""
    total = raw_value(hand)
    if hand[ACE] > 0 and total <= 11:
        total += 10
    return total


def is_soft(hand: Sequence[int]) -> bool:
    return hand[ACE] > 0 and raw_value(hand) <= 11


def is_blackjack(hand: Sequence[int]) -> bool:
    return card_count(hand) == 2 and hand_value(hand) == 21


def is_pair(hand: Sequence[int]) -> bool:
    return card_count(hand) == 2 and any(count == 2 for count in hand)


def pair_rank(hand: Sequence[int]) -> int:
    """Rank index of a two-card pair (only valid if is_pair is True)"""
    if not is_pair(hand):
        raise InvalidHandState("Cannot get split rank from non-pair hand")
    return next(rank for rank, count in enumerate(hand) if count == 2)

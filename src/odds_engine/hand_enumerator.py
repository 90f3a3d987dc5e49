"""
Enumeration of every distinct player hand a shoe can deal.

Hands are generated as rank multisets in non-decreasing rank order, so each
composition appears exactly once regardless of the order its cards arrived in.
"""

from typing import Iterator, List, Sequence, Tuple

from hand_mechanics.hand_state import RankCounts
from hand_mechanics.hand_value import card_count
from hand_mechanics.rules import NUM_RANKS, PER_RANK_MAX, RANK_VALUES


def player_hands(num_decks: int, withdrawn_cards: Sequence[int]) -> List[RankCounts]:
    """
    All reachable player hands with at least two cards and a soft (aces as 1)
    value of at most 21, given the cards already withdrawn from the shoe.
    """
    hands: List[RankCounts] = []
    start: List[int] = [0] * NUM_RANKS
    for hand in _extend(num_decks, withdrawn_cards, start, 0, 0):
        if card_count(hand) >= 2:
            hands.append(hand)
    return hands


def _extend(
    num_decks: int,
    withdrawn_cards: Sequence[int],
    hand: List[int],
    first_rank: int,
    soft_value: int,
) -> Iterator[RankCounts]:
    for rank in range(first_rank, NUM_RANKS):
        if soft_value + RANK_VALUES[rank] > 21:
            # Rank values increase with the index
            break
        if num_decks * PER_RANK_MAX[rank] < withdrawn_cards[rank] + hand[rank] + 1:
            continue
        hand[rank] += 1
        yield tuple(hand)
        yield from _extend(
            num_decks, withdrawn_cards, hand, rank, soft_value + RANK_VALUES[rank]
        )
        hand[rank] -= 1


def hand_states(
    num_decks: int, withdrawn_cards: Sequence[int]
) -> Iterator[Tuple[RankCounts, int]]:
    """Every (player hand, dealer up-rank) pair the shoe can still deal."""
    for hand in player_hands(num_decks, withdrawn_cards):
        for dealer_up in range(NUM_RANKS):
            if num_decks * PER_RANK_MAX[dealer_up] >= hand[dealer_up] + withdrawn_cards[dealer_up] + 1:
                yield hand, dealer_up


from typing import List, Optional, Sequence

from .hand_value import card_count
from .rules import ACE, CARDS_PER_DECK, NUM_RANKS, PER_RANK_MAX, TEN


def peek_excluded_rank(dealer_hand: Sequence[int]) -> Optional[int]:
    """
    Rank the hole card cannot be once the dealer has peeked without finding
    blackjack: an Ace under a ten up-card, a ten under an Ace up-card.

    Returns None when the dealer already holds two or more cards or shows any
    other up-card.
    """
    if card_count(dealer_hand) != 1:
        return None
    if dealer_hand[TEN] == 1:
        return ACE
    if dealer_hand[ACE] == 1:
        return TEN
    return None


class CardDistribution:
    """Probability of the rank of the next card drawn from a partially used shoe"""

    def __init__(self, num_decks: int):
        self.num_decks = num_decks
        self.capacity = [PER_RANK_MAX[rank] * num_decks for rank in range(NUM_RANKS)]
        self.shoe_size = CARDS_PER_DECK * num_decks

    def remaining(self, cards_out: Sequence[int]) -> List[int]:
        return [self.capacity[rank] - cards_out[rank] for rank in range(NUM_RANKS)]

    def can_draw(self, cards_out: Sequence[int], rank: int) -> bool:
        return self.capacity[rank] >= cards_out[rank] + 1

    def stand_probabilities(
        self, cards_out: Sequence[int], excluded_rank: Optional[int] = None
    ) -> List[float]:
        """
        Next-card probabilities while resolving the dealer hand.

        The hole card is already a committed card here; if it is known not to be
        `excluded_rank`, that rank gets probability 0 and the others share the
        shoe without it.
        """
        result = [0.0] * NUM_RANKS
        remaining = self.remaining(cards_out)
        total = self.shoe_size - sum(cards_out)

        if excluded_rank is None:
            if total <= 0:
                return result
            for rank in range(NUM_RANKS):
                result[rank] = remaining[rank] / total
            return result

        denominator = total - remaining[excluded_rank]
        if denominator <= 0:
            return result
        for rank in range(NUM_RANKS):
            if rank == excluded_rank:
                continue
            result[rank] = remaining[rank] / denominator
        return result

    def hit_probabilities(
        self, cards_out: Sequence[int], excluded_rank: Optional[int] = None
    ) -> List[float]:
        """
        Next-card probabilities for player draws while the hole card is undealt.

        With an exclusion the hole card still sits in the shoe and is known not
        to be `excluded_rank`:

            P(next = e)      = R_e / (T - 1)
            P(next = i != e) = R_i * (T - R_e - 1) / ((T - 1) * (T - R_e))
        """
        result = [0.0] * NUM_RANKS
        remaining = self.remaining(cards_out)
        total = self.shoe_size - sum(cards_out)

        if excluded_rank is None:
            if total <= 0:
                return result
            for rank in range(NUM_RANKS):
                result[rank] = remaining[rank] / total
            return result

        total_excluded = remaining[excluded_rank]
        # Nothing but the reserved hole card left, or only excluded ranks left
        if total <= 1 or total - total_excluded <= 0:
            return result
        for rank in range(NUM_RANKS):
            if rank == excluded_rank:
                result[rank] = total_excluded / (total - 1)
            else:
                result[rank] = (
                    remaining[rank]
                    * (total - total_excluded - 1)
                    / (total - 1)
                    / (total - total_excluded)
                )
        return result

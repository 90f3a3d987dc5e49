from typing import List, Sequence, Tuple

from hand_mechanics.errors import InvalidHandState, InvalidRules
from hand_mechanics.hand_state import RankCounts
from hand_mechanics.rules import NUM_RANKS, PER_RANK_MAX

INT64_MAX = 2**63 - 1


class HandEncoder:
    """
    Bijective integer key for (player rank counts, dealer up-rank).

    Player counts are mixed-radix digits, Ace least significant, where rank i
    uses radix PER_RANK_MAX[i] * num_decks + 1 so every count the shoe can
    produce has its own digit value. The key is 10 * digits + dealer_up.
    """

    def __init__(self, num_decks: int):
        self.num_decks = num_decks
        self.radices: List[int] = [
            PER_RANK_MAX[rank] * num_decks + 1 for rank in range(NUM_RANKS)
        ]

        # Build strides
        strides = [1] * NUM_RANKS
        prod = 1
        for rank in range(NUM_RANKS):
            strides[rank] = prod
            prod *= self.radices[rank]
        self.strides = strides

        if NUM_RANKS * prod - 1 > INT64_MAX:
            raise InvalidRules(
                f"Hand keys for {num_decks} decks do not fit in a 64-bit integer"
            )

    def encode(self, hand: Sequence[int], dealer_up: int) -> int:
        if not 0 <= dealer_up < NUM_RANKS:
            raise InvalidHandState(f"Dealer up-rank out of range: {dealer_up}")
        digits = 0
        for rank in range(NUM_RANKS):
            count = hand[rank]
            if not 0 <= count < self.radices[rank]:
                raise InvalidHandState(
                    f"Rank count {count} at index {rank} exceeds a {self.num_decks}-deck shoe"
                )
            digits += count * self.strides[rank]
        return NUM_RANKS * digits + dealer_up

    def decode(self, key: int) -> Tuple[RankCounts, int]:
        if key < 0:
            raise InvalidHandState(f"Hand keys are non-negative, got {key}")
        digits, dealer_up = divmod(key, NUM_RANKS)
        hand = []
        for rank in range(NUM_RANKS):
            digits, count = divmod(digits, self.radices[rank])
            hand.append(count)
        if digits:
            raise InvalidHandState(f"Hand key {key} is outside the {self.num_decks}-deck key space")
        return tuple(hand), dealer_up

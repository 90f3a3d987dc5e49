"""
Stand expectation cache.

Holds the exact stand-after-peek expectation of every player hand the shoe can
deal against every dealer up-card, for exactly one (rules, withdrawn cards)
configuration. Values are loaded from a StandValueStore when the configuration
was computed before, otherwise computed from scratch and persisted.
"""

import hashlib
import json
import logging
import multiprocessing
import time
from typing import Dict, List, Optional, Sequence, Tuple

from hand_mechanics.errors import CacheMiss, InvalidHandState
from hand_mechanics.hand_state import GameState, RankCounts, add_card, single_card_rank
from hand_mechanics.rules import NUM_RANKS, TableRules
from odds_engine.expectation_engine import ExpectationEngine
from odds_engine.hand_encoder import HandEncoder
from odds_engine.hand_enumerator import hand_states
from odds_engine.stand_store import InMemoryStandValueStore, StandValueStore

logger = logging.getLogger(__name__)


def stand_cache_namespace(rules: TableRules, withdrawn_cards: Sequence[int]) -> str:
    """Namespace of a (rules, withdrawn cards) configuration in a store."""
    signature = json.dumps(
        {"rules": rules.stand_signature(), "withdrawn": list(withdrawn_cards)}, sort_keys=True
    )
    return "stand_" + hashlib.sha256(signature.encode()).hexdigest()[:16]


def _stand_values_for_hands(
    args: Tuple[TableRules, RankCounts, List[Tuple[RankCounts, int]]]
) -> List[Tuple[RankCounts, int, float]]:
    """Worker: stand-after-peek value of each (hand, dealer up-rank)."""
    rules, withdrawn_cards, states = args
    engine = ExpectationEngine(rules)
    results = []
    for hand, dealer_up in states:
        dealer = add_card((0,) * NUM_RANKS, dealer_up)
        state = GameState(hand, dealer, withdrawn_cards)
        results.append((hand, dealer_up, engine.compute_expectation_stand(state, after_peek=True)))
    return results


class StandExpectationCache:
    """Read-only map of HandKey -> stand expectation for one configuration."""

    def __init__(
        self,
        rules: TableRules,
        withdrawn_cards: Sequence[int],
        store: Optional[StandValueStore] = None,
        *,
        workers: Optional[int] = None,
    ):
        self.rules = rules
        self.withdrawn_cards: RankCounts = tuple(withdrawn_cards)
        if len(self.withdrawn_cards) != NUM_RANKS:
            raise InvalidHandState(
                f"Withdrawn cards must hold {NUM_RANKS} rank counts, got {len(self.withdrawn_cards)}"
            )
        for rank, count in enumerate(self.withdrawn_cards):
            if not 0 <= count <= rules.rank_capacity(rank):
                raise InvalidHandState(
                    f"{count} withdrawn cards of rank index {rank} do not fit "
                    f"a {rules.num_decks}-deck shoe"
                )
        self.store = store if store is not None else InMemoryStandValueStore()
        self.encoder = HandEncoder(rules.num_decks)
        self.namespace = stand_cache_namespace(rules, self.withdrawn_cards)
        self.workers = workers

        self._values: Dict[int, float] = self._initialize()

    def _initialize(self) -> Dict[int, float]:
        start_time = time.time()
        if self.store.exists(self.namespace):
            values = self.store.bulk_read(self.namespace)
            logger.info(
                "Loaded %d stand values for %s in %.2f seconds",
                len(values), self.namespace, time.time() - start_time,
            )
            return values

        logger.info("Stand cache %s not found. Computing stand values...", self.namespace)
        values = self._compute_values()
        logger.info(
            "Computed %d stand values in %.2f seconds", len(values), time.time() - start_time
        )

        self.store.create_namespace(self.namespace, values.keys())
        self.store.bulk_write(self.namespace, values)
        return values

    def _compute_values(self) -> Dict[int, float]:
        states = list(hand_states(self.rules.num_decks, self.withdrawn_cards))
        if self.workers and self.workers > 1:
            chunk_size = max(1, len(states) // (self.workers * 8))
            chunks = [
                (self.rules, self.withdrawn_cards, states[i:i + chunk_size])
                for i in range(0, len(states), chunk_size)
            ]
            with multiprocessing.get_context("spawn").Pool(self.workers) as pool:
                batches = pool.map(_stand_values_for_hands, chunks)
        else:
            batches = [_stand_values_for_hands((self.rules, self.withdrawn_cards, states))]

        values: Dict[int, float] = {}
        for batch in batches:
            for hand, dealer_up, stand_ev in batch:
                values[self.encoder.encode(hand, dealer_up)] = stand_ev
        return values

    # ------------ Public API ------------

    def get_cached_value(self, player_hand: Sequence[int], dealer_hand: Sequence[int]) -> float:
        dealer_up = single_card_rank(dealer_hand)
        key = self.encoder.encode(player_hand, dealer_up)
        try:
            return self._values[key]
        except KeyError:
            raise CacheMiss(
                f"No stand value for hand {tuple(player_hand)} vs up-rank {dealer_up} "
                f"in cache {self.namespace}; it was built for other rules or withdrawn cards"
            ) from None

    def matches(self, rules: TableRules, withdrawn_cards: Sequence[int]) -> bool:
        return (
            rules.stand_signature() == self.rules.stand_signature()
            and tuple(withdrawn_cards) == self.withdrawn_cards
        )

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: int) -> bool:
        return key in self._values

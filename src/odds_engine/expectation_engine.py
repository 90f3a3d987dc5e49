from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from hand_mechanics import ActionType, CardDistribution, peek_excluded_rank
from hand_mechanics.errors import CacheMiss, InvalidHandState
from hand_mechanics.hand_state import GameState, RankCounts, add_card, combine
from hand_mechanics.hand_value import (
    card_count,
    hand_value,
    is_blackjack,
    is_pair,
    is_soft,
    pair_rank,
)
from hand_mechanics.rules import ACE, NUM_RANKS, RULES, TEN, TableRules

if TYPE_CHECKING:
    from odds_engine.stand_cache import StandExpectationCache


@dataclass
class _Memo:
    # Subproblem values for one top-level call; dealer and withdrawn cards are
    # fixed for its whole duration, so the player composition is a full key.
    hit: Dict[RankCounts, float] = field(default_factory=dict)
    stand: Dict[RankCounts, float] = field(default_factory=dict)


class ExpectationEngine:
    """
    Exact composition-dependent expected returns per unit wager:
      compute_expectation_stand / _hit / _double / _split(state) -> float

    - Every draw probability comes from the exact remaining shoe (player, dealer
      and withdrawn cards removed), conditioned on the dealer peek where it applies
    - Hit/double/split consult a StandExpectationCache instead of resolving the
      dealer again, when one built for the same rules and withdrawn cards is given
    - Splits assume the two resulting hands play out independently
    """

    def __init__(
        self,
        rules: TableRules | None = None,
        stand_cache: Optional["StandExpectationCache"] = None,
    ):
        self.rules = rules or RULES
        self.distribution = CardDistribution(self.rules.num_decks)
        self.stand_cache = stand_cache

    # ------------ Public API ------------

    def compute_expectation_stand(self, state: GameState, after_peek: bool = True) -> float:
        """
        Expected return of standing now.

        `after_peek` means the dealer has already checked for blackjack, so a
        lone Ace or ten up-card cannot be completing a natural.
        """
        state.validate(self.rules)
        return self._stand_value(state.player, state.dealer, state.withdrawn, after_peek)

    def compute_expectation_hit(
        self, state: GameState, use_cached_values: Optional[bool] = None
    ) -> float:
        """Expected return of hitting, then playing on optimally."""
        use_cache = self._prepare(state, use_cached_values)
        self._require_live_hand(state, "hit")
        return self._hit(state.player, state.dealer, state.withdrawn, use_cache, _Memo())

    def compute_expectation_double(
        self, state: GameState, use_cached_values: Optional[bool] = None
    ) -> float:
        """Expected return of doubling: one forced card on a doubled wager."""
        use_cache = self._prepare(state, use_cached_values)
        self._require_live_hand(state, "double")
        if card_count(state.player) != 2:
            raise InvalidHandState(f"Can only double a two-card hand: {state}")
        return self._double(state.player, state.dealer, state.withdrawn, use_cache, _Memo())

    def compute_expectation_split(
        self,
        state: GameState,
        use_cached_values: Optional[bool] = None,
        splits_left: Optional[int] = None,
    ) -> float:
        """
        Approximate expected return of splitting a pair.

        `splits_left` bounds further re-splits (2 => up to 4 hands). Split values
        for every smaller budget are computed first into a scratch table, which
        the re-split branches of the larger budgets read from.
        """
        use_cache = self._prepare(state, use_cached_values)
        if not is_pair(state.player):
            raise InvalidHandState(f"Cannot split non-pair hand: {state}")
        if splits_left is None:
            splits_left = self.rules.max_splits
        if splits_left < 0:
            raise ValueError(f"splits_left cannot be negative, got {splits_left}")
        if state.player[ACE] == 2 and not self.rules.ace_resplits:
            splits_left = 0

        memo = _Memo()
        split_values: List[float] = [0.0] * (splits_left + 1)
        for depth in range(splits_left + 1):
            split_values[depth] = self._split(state, depth, split_values, use_cache, memo)
        return split_values[splits_left]

    def compute_all(
        self,
        state: GameState,
        use_cached_values: Optional[bool] = None,
        splits_left: Optional[int] = None,
    ) -> Dict[ActionType, float]:
        """Expected return of every action available to the player hand."""
        evs: Dict[ActionType, float] = {}
        if self._prepare(state, use_cached_values):
            evs[ActionType.STAND] = self.stand_cache.get_cached_value(state.player, state.dealer)
        else:
            evs[ActionType.STAND] = self.compute_expectation_stand(state, after_peek=True)

        if hand_value(state.player) < 21:
            evs[ActionType.HIT] = self.compute_expectation_hit(state, use_cached_values)
            if card_count(state.player) == 2:
                evs[ActionType.DOUBLE] = self.compute_expectation_double(state, use_cached_values)
                if is_pair(state.player):
                    evs[ActionType.SPLIT] = self.compute_expectation_split(
                        state, use_cached_values, splits_left
                    )
        return evs

    def evaluate(
        self,
        state: GameState,
        use_cached_values: Optional[bool] = None,
        splits_left: Optional[int] = None,
    ) -> Tuple[float, ActionType]:
        """Compute the *optimal* expected return and the action achieving it."""
        evs = self.compute_all(state, use_cached_values, splits_left)
        best_action = max(evs, key=lambda a: evs[a])
        return evs[best_action], best_action

    # ------------ Stand: dealer resolution ------------

    def _stand_value(
        self,
        player: RankCounts,
        dealer: RankCounts,
        withdrawn: RankCounts,
        after_peek: bool,
    ) -> float:
        if hand_value(player) > 21:
            return -1.0
        if is_blackjack(player):
            return self._blackjack_stand(player, dealer, withdrawn, after_peek)
        return self._resolve_dealer(player, dealer, withdrawn, after_peek, {})

    def _resolve_dealer(
        self,
        player: RankCounts,
        dealer: RankCounts,
        withdrawn: RankCounts,
        after_peek: bool,
        memo: Dict[RankCounts, float],
    ) -> float:
        # Keyed by dealer composition: draw order does not change what is left
        if dealer in memo:
            return memo[dealer]

        dealer_total = hand_value(dealer)
        if self.rules.dealer_hits(dealer_total, is_soft(dealer)):
            cards_out = combine(player, dealer, withdrawn)
            excluded = peek_excluded_rank(dealer) if after_peek else None
            probabilities = self.distribution.stand_probabilities(cards_out, excluded)
            win = self.rules.blackjack_pays if is_blackjack(player) else 1.0

            ev = 0.0
            for rank in range(NUM_RANKS):
                # The peek already ruled out the card that completes a natural
                if rank == excluded or not self.distribution.can_draw(cards_out, rank):
                    continue
                next_dealer = add_card(dealer, rank)
                if hand_value(next_dealer) > 21:
                    ev += probabilities[rank] * win
                else:
                    ev += probabilities[rank] * self._resolve_dealer(
                        player, next_dealer, withdrawn, after_peek, memo
                    )
        else:
            ev = self._settle(player, dealer)

        memo[dealer] = ev
        return ev

    def _settle(self, player: RankCounts, dealer: RankCounts) -> float:
        """Payout once the dealer stands."""
        player_bj = is_blackjack(player)
        dealer_bj = is_blackjack(dealer)
        if player_bj and not dealer_bj:
            return self.rules.blackjack_pays

        player_total = hand_value(player)
        dealer_total = hand_value(dealer)
        if dealer_total < player_total:
            return 1.0
        if dealer_total > player_total or (dealer_bj and not player_bj):
            return -1.0
        return 0.0

    def _blackjack_stand(
        self,
        player: RankCounts,
        dealer: RankCounts,
        withdrawn: RankCounts,
        after_peek: bool,
    ) -> float:
        """A player natural only ties a dealer natural; it never needs a dealer draw."""
        payout = self.rules.blackjack_pays
        if card_count(dealer) >= 2:
            return 0.0 if is_blackjack(dealer) else payout

        if dealer[TEN] == 1:
            completing_rank = ACE
        elif dealer[ACE] == 1:
            completing_rank = TEN
        else:
            return payout
        if after_peek:
            return payout

        cards_out = combine(player, dealer, withdrawn)
        p_dealer_bj = self.distribution.stand_probabilities(cards_out)[completing_rank]
        return (1.0 - p_dealer_bj) * payout

    def _stand_lookup(
        self,
        player: RankCounts,
        dealer: RankCounts,
        withdrawn: RankCounts,
        use_cache: bool,
        memo: _Memo,
    ) -> float:
        """Stand-after-peek value of a player hand reached by drawing."""
        if use_cache:
            return self.stand_cache.get_cached_value(player, dealer)
        if player not in memo.stand:
            memo.stand[player] = self._stand_value(player, dealer, withdrawn, True)
        return memo.stand[player]

    # ------------ Hit / double ------------

    def _hit(
        self,
        player: RankCounts,
        dealer: RankCounts,
        withdrawn: RankCounts,
        use_cache: bool,
        memo: _Memo,
    ) -> float:
        if player in memo.hit:
            return memo.hit[player]

        cards_out = combine(player, dealer, withdrawn)
        probabilities = self.distribution.hit_probabilities(
            cards_out, peek_excluded_rank(dealer)
        )

        ev = 0.0
        for rank in range(NUM_RANKS):
            if not self.distribution.can_draw(cards_out, rank):
                continue
            p = probabilities[rank]
            next_player = add_card(player, rank)
            value = hand_value(next_player)
            if value <= 11:
                # Standing on 11 or less is never better than drawing
                ev += p * self._hit(next_player, dealer, withdrawn, use_cache, memo)
            elif value <= 21:
                hit_ev = self._hit(next_player, dealer, withdrawn, use_cache, memo)
                stand_ev = self._stand_lookup(next_player, dealer, withdrawn, use_cache, memo)
                ev += p * max(hit_ev, stand_ev)
            else:
                ev -= p

        memo.hit[player] = ev
        return ev

    def _double(
        self,
        player: RankCounts,
        dealer: RankCounts,
        withdrawn: RankCounts,
        use_cache: bool,
        memo: _Memo,
    ) -> float:
        cards_out = combine(player, dealer, withdrawn)
        probabilities = self.distribution.hit_probabilities(
            cards_out, peek_excluded_rank(dealer)
        )

        ev = 0.0
        for rank in range(NUM_RANKS):
            if not self.distribution.can_draw(cards_out, rank):
                continue
            p = probabilities[rank]
            next_player = add_card(player, rank)
            if hand_value(next_player) <= 21:
                ev += 2.0 * p * self._stand_lookup(next_player, dealer, withdrawn, use_cache, memo)
            else:
                ev -= 2.0 * p
        return ev

    # ------------ Split (independence approximation) ------------

    def _split(
        self,
        state: GameState,
        splits_left: int,
        split_values: Sequence[float],
        use_cache: bool,
        memo: _Memo,
    ) -> float:
        pair = pair_rank(state.player)
        split_aces = pair == ACE
        single = add_card((0,) * NUM_RANKS, pair)
        excluded = peek_excluded_rank(state.dealer)

        cards_out = state.cards_out
        probabilities = self.distribution.hit_probabilities(cards_out, excluded)

        ev = 0.0
        for first in range(NUM_RANKS):
            if not self.distribution.can_draw(cards_out, first):
                continue
            hand1 = add_card(single, first)
            cards_out2 = add_card(cards_out, first)
            probabilities2 = self.distribution.hit_probabilities(cards_out2, excluded)

            for second in range(NUM_RANKS):
                if not self.distribution.can_draw(cards_out2, second):
                    continue
                hand2 = add_card(single, second)

                if splits_left >= 2 and first == pair and second == pair:
                    value = self._both_repaired(
                        hand1, hand2, state, split_aces, use_cache, splits_left, split_values, memo
                    )
                elif splits_left >= 1 and first == pair:
                    value = self._one_repaired(
                        hand1, hand2, state, split_aces, use_cache, splits_left, split_values, memo
                    )
                elif splits_left >= 1 and second == pair:
                    value = self._one_repaired(
                        hand2, hand1, state, split_aces, use_cache, splits_left, split_values, memo
                    )
                else:
                    value = self.expectation_pair_distinct(
                        hand1, hand2, state, split_aces, use_cache, memo
                    )
                ev += probabilities[first] * probabilities2[second] * value
        return ev

    def _both_repaired(
        self,
        hand1: RankCounts,
        hand2: RankCounts,
        state: GameState,
        split_aces: bool,
        use_cache: bool,
        splits_left: int,
        split_values: Sequence[float],
        memo: _Memo,
    ) -> float:
        keep_both = self.expectation_pair_distinct(hand1, hand2, state, split_aces, use_cache, memo)
        # Both hands are identical pairs, so which one is split again is irrelevant
        resplit_one = split_values[splits_left - 1] + self.expectation_after_normal_play(
            hand2, state, split_aces, use_cache, memo
        )
        resplit_both = 2.0 * split_values[splits_left - 2]
        return max(keep_both, resplit_one, resplit_both)

    def _one_repaired(
        self,
        paired_hand: RankCounts,
        other_hand: RankCounts,
        state: GameState,
        split_aces: bool,
        use_cache: bool,
        splits_left: int,
        split_values: Sequence[float],
        memo: _Memo,
    ) -> float:
        keep = self.expectation_pair_distinct(
            paired_hand, other_hand, state, split_aces, use_cache, memo
        )
        resplit = split_values[splits_left - 1] + self.expectation_after_normal_play(
            other_hand, state, split_aces, use_cache, memo
        )
        return max(keep, resplit)

    def expectation_pair_distinct(
        self,
        hand1: RankCounts,
        hand2: RankCounts,
        state: GameState,
        split_aces: bool,
        use_cache: bool,
        memo: Optional[_Memo] = None,
    ) -> float:
        """
        Sum of the two split hands' values, each played on its own.

        The hands are treated as independent: each is evaluated against the
        shoe seen from the original withdrawn cards only, which is what lets the
        stand cache serve both of them.
        """
        memo = memo if memo is not None else _Memo()
        return self.expectation_after_normal_play(
            hand1, state, split_aces, use_cache, memo
        ) + self.expectation_after_normal_play(hand2, state, split_aces, use_cache, memo)

    def expectation_after_normal_play(
        self,
        hand: RankCounts,
        state: GameState,
        split_aces: bool,
        use_cache: bool,
        memo: Optional[_Memo] = None,
    ) -> float:
        memo = memo if memo is not None else _Memo()
        stand_ev = self._stand_lookup(hand, state.dealer, state.withdrawn, use_cache, memo)
        if is_blackjack(hand):
            # Ace + ten after a split is a plain 21, not a natural
            stand_ev /= self.rules.blackjack_pays
        if split_aces:
            # Split aces receive exactly one more card
            return stand_ev

        candidates = [
            stand_ev,
            self._hit(hand, state.dealer, state.withdrawn, use_cache, memo),
        ]
        if self.rules.double_after_split:
            candidates.append(
                self._double(hand, state.dealer, state.withdrawn, use_cache, memo)
            )
        return max(candidates)

    # ------------ Validation ------------

    def _prepare(self, state: GameState, use_cached_values: Optional[bool]) -> bool:
        state.validate(self.rules)
        if use_cached_values is None:
            use_cached_values = self.stand_cache is not None
        if not use_cached_values:
            return False

        if self.stand_cache is None:
            raise CacheMiss("Cached stand values requested but no stand cache is configured")
        if not self.stand_cache.matches(self.rules, state.withdrawn):
            raise CacheMiss(
                f"Stand cache {self.stand_cache.namespace} was built for other rules or "
                f"withdrawn cards than {state}"
            )
        if card_count(state.dealer) != 1:
            raise InvalidHandState(
                "Cached stand values are keyed by a single dealer up-card; "
                f"dealer holds {card_count(state.dealer)} cards"
            )
        return True

    @staticmethod
    def _require_live_hand(state: GameState, action: str) -> None:
        if hand_value(state.player) > 21:
            raise InvalidHandState(f"Cannot {action} a busted hand: {state}")

"""
Tests for the expectation engine.

Regression values were computed independently in double precision for the
same rules and compositions. Cache-dependent tests use a heavily depleted
single deck so the full stand cache builds in well under a second.
"""

import unittest

from hand_mechanics import (
    ActionType,
    CacheMiss,
    GameState,
    InvalidHandState,
    TableRules,
    counts_from_cards,
    peek_excluded_rank,
)
from hand_mechanics.rules import NUM_RANKS
from odds_engine.expectation_engine import ExpectationEngine
from odds_engine.stand_cache import StandExpectationCache

# One deck with only A,A,5,5,6,6,7,7,T,T,T,T left in it
SMALL_SHOE_WITHDRAWN = (2, 4, 4, 4, 2, 2, 2, 4, 4, 12)
SINGLE_DECK = TableRules(num_decks=1)


def small_shoe_state(player, dealer):
    return GameState(
        counts_from_cards(player), counts_from_cards(dealer), SMALL_SHOE_WITHDRAWN
    )


class TestStandRegression(unittest.TestCase):
    """Stand values against known exact results."""

    def test_seven_seven_vs_eight_eight_decks(self):
        engine = ExpectationEngine(
            TableRules(num_decks=8, double_after_split=False, ace_resplits=False)
        )
        state = GameState.from_cards(["7", "7"], ["8"])
        self.assertAlmostEqual(
            engine.compute_expectation_stand(state, after_peek=True),
            -0.51446826025768944,
            places=9,
        )

    def test_soft_17_rule_cannot_matter_under_an_eight(self):
        s17 = ExpectationEngine(TableRules(num_decks=8, dealer_stands_soft_17=True))
        h17 = ExpectationEngine(TableRules(num_decks=8, dealer_stands_soft_17=False))
        state = GameState.from_cards(["7", "7"], ["8"])
        self.assertAlmostEqual(
            s17.compute_expectation_stand(state), h17.compute_expectation_stand(state), places=12
        )

    def test_twenty_vs_six_single_deck(self):
        engine = ExpectationEngine(SINGLE_DECK)
        state = GameState.from_cards(["K", "Q"], ["6"])
        self.assertAlmostEqual(
            engine.compute_expectation_stand(state), 0.69740278971476943, places=9
        )

    def test_peek_changes_stand_vs_ten(self):
        engine = ExpectationEngine(TableRules(num_decks=8))
        state = GameState.from_cards(["10", "6"], ["10"])
        self.assertAlmostEqual(
            engine.compute_expectation_stand(state, after_peek=True), -0.54082673616099797, places=9
        )
        self.assertAlmostEqual(
            engine.compute_expectation_stand(state, after_peek=False), -0.57640432561099320, places=9
        )


class TestStandSettlement(unittest.TestCase):

    def setUp(self):
        self.engine = ExpectationEngine(SINGLE_DECK)

    def test_blackjack_vs_small_up_card_pays_full(self):
        for up_card in ("2", "3", "4", "5", "6", "7", "8", "9"):
            with self.subTest(up_card=up_card):
                state = GameState.from_cards(["A", "K"], [up_card])
                self.assertEqual(self.engine.compute_expectation_stand(state), 1.5)

    def test_blackjack_vs_ten_before_peek(self):
        state = GameState.from_cards(["A", "K"], ["K"])
        # 49 cards left, 3 of them aces
        self.assertAlmostEqual(
            self.engine.compute_expectation_stand(state, after_peek=False), 1.5 * 46 / 49
        )
        self.assertEqual(self.engine.compute_expectation_stand(state, after_peek=True), 1.5)

    def test_blackjack_vs_dealer_blackjack_pushes(self):
        state = GameState.from_cards(["A", "K"], ["A", "Q"])
        self.assertEqual(self.engine.compute_expectation_stand(state), 0.0)

    def test_three_card_21_loses_to_dealer_blackjack(self):
        state = GameState.from_cards(["7", "7", "7"], ["A", "K"])
        self.assertEqual(self.engine.compute_expectation_stand(state), -1.0)

    def test_busted_hand_loses(self):
        state = GameState.from_cards(["K", "Q", "5"], ["6"])
        self.assertEqual(self.engine.compute_expectation_stand(state), -1.0)

    def test_dealer_standing_hand_settles_directly(self):
        state = GameState.from_cards(["K", "9"], ["K", "8"])
        self.assertEqual(self.engine.compute_expectation_stand(state), 1.0)
        state = GameState.from_cards(["K", "8"], ["K", "8"])
        self.assertEqual(self.engine.compute_expectation_stand(state), 0.0)


class TestPlayerActions(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.cache = StandExpectationCache(SINGLE_DECK, SMALL_SHOE_WITHDRAWN)
        cls.cached = ExpectationEngine(SINGLE_DECK, cls.cache)
        cls.direct = ExpectationEngine(SINGLE_DECK)

    def test_hit_agrees_with_and_without_cache(self):
        for player, dealer in ((["5", "5"], ["7"]), (["10", "6"], ["10"]), (["A", "5"], ["A"])):
            with self.subTest(player=player, dealer=dealer):
                state = small_shoe_state(player, dealer)
                self.assertAlmostEqual(
                    self.cached.compute_expectation_hit(state),
                    self.direct.compute_expectation_hit(state, use_cached_values=False),
                    places=12,
                )

    def test_double_agrees_with_and_without_cache(self):
        state = small_shoe_state(["5", "6"], ["7"])
        self.assertAlmostEqual(
            self.cached.compute_expectation_double(state),
            self.direct.compute_expectation_double(state),
            places=12,
        )

    def test_split_agrees_with_and_without_cache(self):
        state = small_shoe_state(["10", "10"], ["6"])
        self.assertAlmostEqual(
            self.cached.compute_expectation_split(state),
            self.direct.compute_expectation_split(state),
            places=12,
        )

    def test_double_is_bounded_by_twice_the_wager(self):
        state = small_shoe_state(["5", "6"], ["7"])
        self.assertLessEqual(abs(self.cached.compute_expectation_double(state)), 2.0)

    def test_compute_all_offers_available_actions(self):
        evs = self.cached.compute_all(small_shoe_state(["5", "5"], ["7"]))
        self.assertEqual(
            set(evs), {ActionType.STAND, ActionType.HIT, ActionType.DOUBLE, ActionType.SPLIT}
        )
        evs = self.cached.compute_all(small_shoe_state(["5", "6", "7"], ["6"]))
        self.assertEqual(set(evs), {ActionType.STAND, ActionType.HIT})
        evs = self.cached.compute_all(small_shoe_state(["A", "10"], ["5"]))
        self.assertEqual(evs, {ActionType.STAND: 1.5})

    def test_evaluate_picks_best_action(self):
        state = small_shoe_state(["5", "5"], ["7"])
        evs = self.cached.compute_all(state)
        ev, action = self.cached.evaluate(state)
        self.assertEqual(ev, max(evs.values()))
        self.assertEqual(evs[action], ev)

    def test_invalid_actions(self):
        with self.assertRaises(InvalidHandState):
            self.direct.compute_expectation_split(small_shoe_state(["5", "6"], ["7"]))
        with self.assertRaises(InvalidHandState):
            self.direct.compute_expectation_hit(small_shoe_state(["10", "10", "5"], ["7"]))
        with self.assertRaises(InvalidHandState):
            self.direct.compute_expectation_double(small_shoe_state(["5", "6", "A"], ["7"]))
        with self.assertRaises(ValueError):
            self.direct.compute_expectation_split(
                small_shoe_state(["10", "10"], ["6"]), splits_left=-1
            )

    def test_cache_serves_other_split_budgets(self):
        engine = ExpectationEngine(TableRules(num_decks=1, max_splits=1), self.cache)
        state = small_shoe_state(["10", "10"], ["6"])
        self.assertEqual(
            engine.compute_expectation_split(state),
            self.cached.compute_expectation_split(state, splits_left=1),
        )

    def test_cache_for_other_withdrawn_cards(self):
        state = GameState.from_cards(["5", "5"], ["7"])
        with self.assertRaises(CacheMiss):
            self.cached.compute_expectation_hit(state)

    def test_cache_requested_without_cache(self):
        with self.assertRaises(CacheMiss):
            self.direct.compute_expectation_hit(
                small_shoe_state(["5", "5"], ["7"]), use_cached_values=True
            )

    def test_cache_needs_single_dealer_card(self):
        with self.assertRaises(InvalidHandState):
            self.cached.compute_expectation_hit(small_shoe_state(["5", "5"], ["7", "6"]))


class TestSplit(unittest.TestCase):

    def setUp(self):
        self.engine = ExpectationEngine(SINGLE_DECK)

    def test_more_splits_never_hurt(self):
        # No 8 withdrawn, so hands can re-pair
        state = GameState(
            counts_from_cards(["8", "8"]), counts_from_cards(["6"]), (2, 4, 4, 4, 2, 2, 2, 0, 4, 10)
        )
        values = [
            self.engine.compute_expectation_split(state, splits_left=k) for k in range(4)
        ]
        for expected, value in zip(
            (0.5028897028897029, 0.6384836327693472, 0.6770812699520182), values
        ):
            self.assertAlmostEqual(value, expected, places=10)
        self.assertLess(values[0], values[1])
        self.assertLess(values[1], values[2])
        self.assertGreaterEqual(values[3], values[2] - 1e-12)

    def test_no_resplit_is_weighted_sum_of_hand_pairs(self):
        state = small_shoe_state(["7", "7"], ["5"])
        distribution = self.engine.distribution
        excluded = peek_excluded_rank(state.dealer)
        single = counts_from_cards(["7"])

        expected = 0.0
        probabilities = distribution.hit_probabilities(state.cards_out, excluded)
        for first in range(NUM_RANKS):
            if not distribution.can_draw(state.cards_out, first):
                continue
            cards_out2 = list(state.cards_out)
            cards_out2[first] += 1
            probabilities2 = distribution.hit_probabilities(cards_out2, excluded)
            for second in range(NUM_RANKS):
                if not distribution.can_draw(cards_out2, second):
                    continue
                hand1 = list(single)
                hand1[first] += 1
                hand2 = list(single)
                hand2[second] += 1
                expected += probabilities[first] * probabilities2[second] * (
                    self.engine.expectation_pair_distinct(
                        tuple(hand1), tuple(hand2), state, split_aces=False, use_cache=False
                    )
                )

        self.assertAlmostEqual(
            self.engine.compute_expectation_split(state, splits_left=0), expected, places=12
        )

    def test_aces_resplit_only_when_allowed(self):
        state = GameState.from_cards(["A", "A"], ["6"])
        no_rsa = ExpectationEngine(TableRules(num_decks=1, ace_resplits=False))
        rsa = ExpectationEngine(TableRules(num_decks=1, ace_resplits=True))
        no_resplit = no_rsa.compute_expectation_split(state, splits_left=0)
        self.assertEqual(no_rsa.compute_expectation_split(state, splits_left=2), no_resplit)
        self.assertGreater(rsa.compute_expectation_split(state, splits_left=2), no_resplit)

    def test_split_ace_ten_is_not_a_natural(self):
        state = small_shoe_state(["A", "A"], ["6"])
        ace_ten = counts_from_cards(["A", "10"])
        self.assertEqual(
            self.engine.expectation_after_normal_play(ace_ten, state, split_aces=True, use_cache=False),
            1.0,
        )


if __name__ == "__main__":
    unittest.main()

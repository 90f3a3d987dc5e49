"""
Tests for hand values, table rules, game states and draw probabilities.
"""

import unittest

from hand_mechanics import (
    CardDistribution,
    GameState,
    InvalidHandState,
    InvalidRules,
    TableRules,
    counts_from_cards,
    peek_excluded_rank,
)
from hand_mechanics.hand_value import hand_value, is_blackjack, is_pair, is_soft, pair_rank
from hand_mechanics.rules import ACE, TEN, RULES


def hand(*cards):
    return counts_from_cards(cards)


class TestHandValue(unittest.TestCase):
    """Totals, softness, naturals and pairs."""

    def test_single_ace_counts_eleven(self):
        self.assertEqual(hand_value(hand("A", "6")), 17)
        self.assertTrue(is_soft(hand("A", "6")))

    def test_only_one_ace_counts_eleven(self):
        self.assertEqual(hand_value(hand("A", "A", "A", "A")), 14)
        self.assertEqual(hand_value(hand("A", "A")), 12)

    def test_ace_falls_back_to_one(self):
        self.assertEqual(hand_value(hand("A", "6", "9")), 16)
        self.assertFalse(is_soft(hand("A", "6", "9")))

    def test_blackjack_needs_two_cards(self):
        self.assertTrue(is_blackjack(hand("A", "K")))
        self.assertFalse(is_blackjack(hand("A", "5", "5")))
        self.assertFalse(is_blackjack(hand("7", "7", "7")))

    def test_face_cards_pair_as_tens(self):
        self.assertTrue(is_pair(hand("J", "K")))
        self.assertEqual(pair_rank(hand("J", "K")), TEN)
        self.assertFalse(is_pair(hand("8", "8", "8")))

    def test_pair_rank_rejects_non_pair(self):
        with self.assertRaises(InvalidHandState):
            pair_rank(hand("8", "9"))

    def test_unknown_card_label(self):
        with self.assertRaises(InvalidHandState):
            hand("X")


class TestTableRules(unittest.TestCase):

    def test_defaults(self):
        self.assertEqual(RULES.num_decks, 8)
        self.assertTrue(RULES.dealer_stands_soft_17)
        self.assertEqual(RULES.shoe_size, 416)
        self.assertEqual(RULES.rank_capacity(TEN), 128)

    def test_invalid_rules_rejected(self):
        for kwargs in (
            {"num_decks": 0},
            {"num_decks": 14},
            {"blackjack_pays": 0.0},
            {"max_splits": -1},
        ):
            with self.subTest(**kwargs):
                with self.assertRaises(InvalidRules):
                    TableRules(**kwargs)

    def test_soft_17(self):
        s17 = TableRules(dealer_stands_soft_17=True)
        h17 = TableRules(dealer_stands_soft_17=False)
        self.assertFalse(s17.dealer_hits(17, True))
        self.assertTrue(h17.dealer_hits(17, True))
        self.assertFalse(h17.dealer_hits(17, False))
        self.assertTrue(s17.dealer_hits(16, False))

    def test_checksum_tracks_rules(self):
        self.assertEqual(TableRules().checksum(), RULES.checksum())
        self.assertNotEqual(TableRules(num_decks=6).checksum(), RULES.checksum())


class TestGameState(unittest.TestCase):

    def test_from_cards(self):
        state = GameState.from_cards(["7", "7"], ["Q"], ["5"])
        self.assertEqual(state.player[6], 2)
        self.assertEqual(state.dealer[TEN], 1)
        self.assertEqual(sum(state.cards_out), 4)

    def test_wrong_length(self):
        with self.assertRaises(InvalidHandState):
            GameState((1, 1), (0,) * 10)

    def test_negative_counts(self):
        with self.assertRaises(InvalidHandState):
            GameState((-1,) + (0,) * 9, hand("5"))

    def test_more_cards_than_shoe(self):
        state = GameState.from_cards(["A", "A", "A"], ["A"], ["A"])
        with self.assertRaises(InvalidHandState):
            state.validate(TableRules(num_decks=1))
        state.validate(TableRules(num_decks=2))

    def test_empty_dealer(self):
        with self.assertRaises(InvalidHandState):
            GameState.from_cards(["7", "7"], []).validate(RULES)


class TestCardDistribution(unittest.TestCase):

    def setUp(self):
        self.distribution = CardDistribution(1)
        self.cards_out = hand("A", "K", "5", "5", "9")

    def test_peek_exclusions(self):
        self.assertEqual(peek_excluded_rank(hand("K")), ACE)
        self.assertEqual(peek_excluded_rank(hand("A")), TEN)
        self.assertIsNone(peek_excluded_rank(hand("5")))
        self.assertIsNone(peek_excluded_rank(hand("A", "5")))

    def test_probabilities_sum_to_one(self):
        for excluded in (None, ACE, TEN):
            with self.subTest(excluded=excluded):
                self.assertAlmostEqual(
                    sum(self.distribution.stand_probabilities(self.cards_out, excluded)), 1.0
                )
                self.assertAlmostEqual(
                    sum(self.distribution.hit_probabilities(self.cards_out, excluded)), 1.0
                )

    def test_stand_exclusion_zeroes_rank(self):
        probabilities = self.distribution.stand_probabilities(self.cards_out, ACE)
        self.assertEqual(probabilities[ACE], 0.0)
        # 47 left, 3 of them aces
        self.assertAlmostEqual(probabilities[TEN], 15 / 44)

    def test_hit_exclusion_keeps_hole_card_in_shoe(self):
        probabilities = self.distribution.hit_probabilities(self.cards_out, ACE)
        self.assertAlmostEqual(probabilities[ACE], 3 / 46)
        self.assertAlmostEqual(probabilities[TEN], 15 * 43 / 46 / 44)

    def test_exhausted_shoe_gives_zeros(self):
        everything = tuple(self.distribution.capacity)
        self.assertEqual(sum(self.distribution.stand_probabilities(everything)), 0.0)
        self.assertEqual(sum(self.distribution.hit_probabilities(everything, TEN)), 0.0)

    def test_only_excluded_rank_left(self):
        # Only aces remain under a ten up-card
        cards_out = tuple(self.distribution.capacity[:ACE]) + (0,) + tuple(self.distribution.capacity[1:])
        self.assertEqual(sum(self.distribution.stand_probabilities(cards_out, ACE)), 0.0)
        self.assertEqual(sum(self.distribution.hit_probabilities(cards_out, ACE)), 0.0)


if __name__ == "__main__":
    unittest.main()

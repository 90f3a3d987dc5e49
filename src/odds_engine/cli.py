"""
CLI interface for exact blackjack expectations.

Implements the commands:
blackjack-odds evaluate --player 7,7 --dealer 8 --decks 8
blackjack-odds table --decks 1 --withdrawn 2,2,3,3 --output odds.parquet
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from hand_mechanics import ActionType, GameState, TableRules
from hand_mechanics.errors import StorageUnavailable
from hand_mechanics.hand_state import counts_from_cards
from hand_mechanics.hand_value import card_count
from hand_mechanics.rules import BLACKJACK_PAYOUT
from odds_engine.expectation_engine import ExpectationEngine
from odds_engine.odds_table import OddsTableBuilder
from odds_engine.stand_cache import StandExpectationCache
from odds_engine.stand_store import InMemoryStandValueStore, ParquetStandValueStore, StandValueStore

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Exact composition-dependent blackjack expectations"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--decks",
        type=int,
        default=8,
        help="Number of decks in the shoe (default: 8)"
    )
    common.add_argument(
        "--h17",
        action="store_true",
        help="Dealer hits soft 17 (default: stands)"
    )
    common.add_argument(
        "--das",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Allow doubling after a split (default: allowed)"
    )
    common.add_argument(
        "--resplit-aces",
        action="store_true",
        help="Allow re-splitting aces"
    )
    common.add_argument(
        "--blackjack-pays",
        type=float,
        default=BLACKJACK_PAYOUT,
        help=f"Payout of a player natural (default: {BLACKJACK_PAYOUT})"
    )
    common.add_argument(
        "--splits",
        type=int,
        default=2,
        help="Maximum number of splits per round, 2 means up to 4 hands (default: 2)"
    )
    common.add_argument(
        "--withdrawn",
        type=str,
        default="",
        help="Comma-separated cards already removed from the shoe (e.g. '5,5,K')"
    )
    common.add_argument(
        "--cache-dir",
        type=Path,
        help="Directory of persisted stand values (default: keep them in memory)"
    )
    common.add_argument(
        "--workers",
        type=int,
        help="Worker processes used to build the stand cache"
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    evaluate = subparsers.add_parser(
        "evaluate", parents=[common], help="Expected return of each action for one hand"
    )
    evaluate.add_argument(
        "--player",
        type=str,
        required=True,
        help="Comma-separated player cards (e.g. '7,7')"
    )
    evaluate.add_argument(
        "--dealer",
        type=str,
        required=True,
        help="Comma-separated dealer cards, usually just the up-card (e.g. '8')"
    )
    evaluate.add_argument(
        "--use-cache",
        action="store_true",
        help="Build the stand cache first and read stand values from it"
    )

    table = subparsers.add_parser(
        "table", parents=[common], help="Write the expected return of every hand to Parquet"
    )
    table.add_argument(
        "--output",
        type=Path,
        default=Path("odds_table.parquet"),
        help="Output Parquet file (default: odds_table.parquet)"
    )

    return parser.parse_args(argv)


def parse_card_list(cards: str) -> List[str]:
    """Parse a comma-separated card list. Empty entries are ignored."""
    return [card.strip() for card in cards.split(",") if card.strip()]


def rules_from_args(args: argparse.Namespace) -> TableRules:
    return TableRules(
        num_decks=args.decks,
        dealer_stands_soft_17=not args.h17,
        double_after_split=args.das,
        ace_resplits=args.resplit_aces,
        blackjack_pays=args.blackjack_pays,
        max_splits=args.splits,
    )


def open_store(cache_dir: Optional[Path]) -> StandValueStore:
    if cache_dir is None:
        return InMemoryStandValueStore()
    return ParquetStandValueStore(cache_dir)


def build_stand_cache(args: argparse.Namespace, rules: TableRules, withdrawn) -> StandExpectationCache:
    """Load or build the stand cache, falling back to memory when the store fails."""
    store = open_store(args.cache_dir)
    try:
        return StandExpectationCache(rules, withdrawn, store, workers=args.workers)
    except StorageUnavailable as e:
        logger.warning("Stand value store unavailable (%s); keeping values in memory", e)
        return StandExpectationCache(
            rules, withdrawn, InMemoryStandValueStore(), workers=args.workers
        )


def progress_callback(processed: int, total: int) -> None:
    """Print progress updates."""
    if processed % max(1, total // 20) == 0 or processed == total:
        percent = 100.0 * processed / total
        print(f"Progress: {processed}/{total} ({percent:.1f}%)")


def run_evaluate(args: argparse.Namespace, rules: TableRules) -> int:
    state = GameState.from_cards(
        parse_card_list(args.player),
        parse_card_list(args.dealer),
        parse_card_list(args.withdrawn),
    ).validate(rules)
    print(f"Evaluating {state}")

    if card_count(state.dealer) > 1:
        # Only standing is defined once the dealer holds more than the up-card
        engine = ExpectationEngine(rules)
        print(f"  stand : {engine.compute_expectation_stand(state, after_peek=False):+.6f}")
        return 0

    stand_cache = build_stand_cache(args, rules, state.withdrawn) if args.use_cache else None
    engine = ExpectationEngine(rules, stand_cache)

    start_time = time.time()
    evs = engine.compute_all(state, splits_left=args.splits)
    for action in ActionType:
        if action in evs:
            print(f"  {action.value:<6}: {evs[action]:+.6f}")
    best_action = max(evs, key=lambda a: evs[a])
    print(f"Best action: {best_action.value} ({evs[best_action]:+.6f})")

    if args.verbose:
        print(f"Computed in {time.time() - start_time:.2f} seconds")
    return 0


def run_table(args: argparse.Namespace, rules: TableRules) -> int:
    withdrawn = counts_from_cards(parse_card_list(args.withdrawn))
    print(f"Output: {args.output}")

    start_time = time.time()
    stand_cache = build_stand_cache(args, rules, withdrawn)
    print(f"Stand cache {stand_cache.namespace}: {len(stand_cache)} values")

    builder = OddsTableBuilder(rules, stand_cache, splits_left=args.splits)
    rows = builder.compute_rows(progress_callback if args.verbose else None)
    output_file = builder.write(args.output, rows)

    total_time = time.time() - start_time
    print(f"\nWrote {len(rows)} rows to {output_file} in {total_time:.2f} seconds")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    rules = rules_from_args(args)
    print(f"Blackjack odds ({rules.num_decks} decks, "
          f"{'S17' if rules.dealer_stands_soft_17 else 'H17'}, "
          f"{'DAS' if rules.double_after_split else 'no DAS'}, "
          f"blackjack pays {rules.blackjack_pays})")

    if args.command == "evaluate":
        return run_evaluate(args, rules)
    return run_table(args, rules)


def cli_entry_point():
    """Entry point for setuptools console script."""
    try:
        exit_code = main()
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}")
        if "--verbose" in sys.argv or "-v" in sys.argv:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    cli_entry_point()

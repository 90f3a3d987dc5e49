"""
Full odds table export.

Computes the expected return of every available action for every player hand
the shoe can deal against every dealer up-card, and writes them to a single
Parquet file with an exact schema:
    hand_key, dealer_up, c_A ... c_T, ev_stand, ev_hit, ev_double, ev_split
Actions that are unavailable for a hand are stored as NaN.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from hand_mechanics import ActionType
from hand_mechanics.errors import StorageUnavailable
from hand_mechanics.hand_state import GameState, RankCounts, add_card
from hand_mechanics.rules import NUM_RANKS, RANKS, TableRules
from odds_engine.expectation_engine import ExpectationEngine
from odds_engine.hand_encoder import HandEncoder
from odds_engine.hand_enumerator import hand_states
from odds_engine.stand_cache import StandExpectationCache
from odds_engine.stand_store import create_build_metadata, decode_metadata, encode_metadata

logger = logging.getLogger(__name__)

ACTION_COLUMNS: Tuple[str, ...] = tuple(action.column for action in ActionType)
COUNT_COLUMNS: Tuple[str, ...] = tuple(
    f"c_{rank}" if rank != "10" else "c_T" for rank in RANKS
)

SCHEMA = pa.schema(
    [pa.field("hand_key", pa.int64()), pa.field("dealer_up", pa.string())]
    + [pa.field(name, pa.int8()) for name in COUNT_COLUMNS]
    + [pa.field(name, pa.float64()) for name in ACTION_COLUMNS]
)


@dataclass
class OddsRow:
    """Expected returns of one (player hand, dealer up-card) situation."""
    hand: RankCounts
    dealer_up: int
    evs: Dict[ActionType, float]

    def get_action_ev(self, action: ActionType) -> Optional[float]:
        return self.evs.get(action)


class OddsTableBuilder:
    """Computes odds rows for one (rules, withdrawn cards) configuration."""

    def __init__(
        self,
        rules: TableRules,
        stand_cache: StandExpectationCache,
        splits_left: Optional[int] = None,
    ):
        self.rules = rules
        self.stand_cache = stand_cache
        self.withdrawn_cards = stand_cache.withdrawn_cards
        self.splits_left = rules.max_splits if splits_left is None else splits_left
        self.engine = ExpectationEngine(rules, stand_cache)
        self.encoder = HandEncoder(rules.num_decks)

    def compute_rows(
        self, progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> List[OddsRow]:
        states = list(hand_states(self.rules.num_decks, self.withdrawn_cards))
        logger.info("Computing odds for %d hand/up-card situations", len(states))

        rows = []
        for processed, (hand, dealer_up) in enumerate(states, 1):
            state = GameState(hand, add_card((0,) * NUM_RANKS, dealer_up), self.withdrawn_cards)
            evs = self.engine.compute_all(state, use_cached_values=True, splits_left=self.splits_left)
            rows.append(OddsRow(hand, dealer_up, evs))
            logger.debug("Hand %s vs %s: %s", hand, RANKS[dealer_up], evs)
            if progress_callback:
                progress_callback(processed, len(states))
        return rows

    def to_frame(self, rows: Sequence[OddsRow]) -> pd.DataFrame:
        data: Dict[str, list] = {"hand_key": [], "dealer_up": []}
        for name in COUNT_COLUMNS:
            data[name] = []
        for name in ACTION_COLUMNS:
            data[name] = []

        for row in rows:
            data["hand_key"].append(self.encoder.encode(row.hand, row.dealer_up))
            data["dealer_up"].append(RANKS[row.dealer_up])
            for name, count in zip(COUNT_COLUMNS, row.hand):
                data[name].append(count)
            for action in ActionType:
                ev = row.get_action_ev(action)
                data[action.column].append(np.nan if ev is None else ev)

        df = pd.DataFrame(data)
        df["hand_key"] = df["hand_key"].astype(np.int64)
        for name in COUNT_COLUMNS:
            df[name] = df[name].astype(np.int8)
        for name in ACTION_COLUMNS:
            df[name] = df[name].astype(np.float64)
        return df

    def write(self, file_path: Path, rows: Sequence[OddsRow]) -> Path:
        """Write odds rows to a Parquet file with exact schema and metadata."""
        file_path = Path(file_path)
        df = self.to_frame(rows)
        metadata = {
            "file_type": "odds_table",
            "rules": self.rules.to_dict(),
            "rules_checksum": self.rules.checksum(),
            "withdrawn_cards": list(self.withdrawn_cards),
            "splits_left": self.splits_left,
            "rank_order": list(RANKS),
            "stand_definition": "after dealer peek",
            "split_model": "independent hands",
            "build_info": create_build_metadata(),
        }
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            table = pa.Table.from_pandas(df, schema=SCHEMA, preserve_index=False)
            table = table.replace_schema_metadata(encode_metadata(metadata))
            pq.write_table(table, file_path, compression="snappy")
        except (OSError, pa.ArrowException) as e:
            raise StorageUnavailable(f"Cannot write odds table {file_path}: {e}") from e

        logger.info("Wrote %d odds rows to %s", len(df), file_path)
        return file_path


def read_odds_table(file_path: Path) -> Tuple[pd.DataFrame, Dict]:
    """Read an odds table file and its metadata."""
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Odds table not found: {file_path}")

    table = pq.read_table(file_path)
    df = table.to_pandas()
    metadata = decode_metadata(table.schema.metadata or {})
    return df, metadata

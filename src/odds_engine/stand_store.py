"""
Persistent stand-value stores.

A store keeps one map of HandKey -> stand expectation per namespace, where the
namespace identifies a (rules, withdrawn cards) configuration. Implementations:
- InMemoryStandValueStore: process-local dict, nothing persisted
- ParquetStandValueStore: one Parquet file per namespace with exact schema
  (hand_key int64, stand_ev float64) and JSON metadata
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from hand_mechanics.errors import StorageUnavailable

SCHEMA = pa.schema(
    [
        pa.field("hand_key", pa.int64()),
        pa.field("stand_ev", pa.float64()),
    ]
)


class StandValueStore(ABC):
    """Contract the stand expectation cache persists through."""

    @abstractmethod
    def exists(self, namespace: str) -> bool:
        """True once a namespace holds a complete set of values."""

    @abstractmethod
    def create_namespace(self, namespace: str, keys: Iterable[int]) -> None:
        """Register the keys of a namespace before its values are known."""

    @abstractmethod
    def bulk_write(self, namespace: str, values: Mapping[int, float]) -> None:
        """Store every value of a namespace, marking it complete."""

    @abstractmethod
    def bulk_read(self, namespace: str) -> Dict[int, float]:
        """Load every value of a complete namespace."""


class InMemoryStandValueStore(StandValueStore):
    """Stand values kept in process memory only."""

    def __init__(self):
        self._keys: Dict[str, frozenset] = {}
        self._values: Dict[str, Dict[int, float]] = {}

    def exists(self, namespace: str) -> bool:
        return namespace in self._values

    def create_namespace(self, namespace: str, keys: Iterable[int]) -> None:
        self._keys[namespace] = frozenset(keys)
        self._values.pop(namespace, None)

    def bulk_write(self, namespace: str, values: Mapping[int, float]) -> None:
        if namespace not in self._keys:
            raise StorageUnavailable(f"Namespace {namespace} was never created")
        missing = self._keys[namespace].difference(values)
        if missing:
            raise StorageUnavailable(
                f"Namespace {namespace} is missing {len(missing)} of its keys"
            )
        self._values[namespace] = dict(values)

    def bulk_read(self, namespace: str) -> Dict[int, float]:
        if namespace not in self._values:
            raise StorageUnavailable(f"Namespace {namespace} not found")
        return dict(self._values[namespace])


class ParquetStandValueStore(StandValueStore):
    """Stand values in `<directory>/<namespace>.parquet` files."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, namespace: str) -> Path:
        return self.directory / f"{namespace}.parquet"

    def exists(self, namespace: str) -> bool:
        file_path = self.path_for(namespace)
        if not file_path.exists():
            return False
        metadata = self._read_metadata(file_path)
        return metadata.get("complete") is True

    def create_namespace(self, namespace: str, keys: Iterable[int]) -> None:
        key_array = np.fromiter(keys, dtype=np.int64)
        df = pd.DataFrame(
            {
                "hand_key": key_array,
                "stand_ev": np.full(len(key_array), np.nan, dtype=np.float64),
            }
        )
        self._write(namespace, df, complete=False)

    def bulk_write(self, namespace: str, values: Mapping[int, float]) -> None:
        file_path = self.path_for(namespace)
        if not file_path.exists():
            raise StorageUnavailable(f"Namespace {namespace} was never created: {file_path}")

        df = self._read_frame(file_path)
        df["stand_ev"] = df["hand_key"].map(values).astype(np.float64)
        missing = int(df["stand_ev"].isna().sum())
        if missing:
            raise StorageUnavailable(
                f"Namespace {namespace} is missing values for {missing} of its keys"
            )
        self._write(namespace, df, complete=True)

    def bulk_read(self, namespace: str) -> Dict[int, float]:
        file_path = self.path_for(namespace)
        if not file_path.exists():
            raise StorageUnavailable(f"Stand value file not found: {file_path}")

        df = self._read_frame(file_path)
        if df["stand_ev"].isna().any():
            raise StorageUnavailable(f"Stand value file is incomplete: {file_path}")
        return dict(
            zip(df["hand_key"].astype(np.int64).tolist(), df["stand_ev"].astype(np.float64).tolist())
        )

    # ------------ Parquet I/O ------------

    def _write(self, namespace: str, df: pd.DataFrame, complete: bool) -> None:
        metadata = {
            "file_type": "stand_values",
            "namespace": namespace,
            "complete": complete,
            "rows": len(df),
            "build_info": create_build_metadata(),
        }
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            table = pa.Table.from_pandas(df, schema=SCHEMA, preserve_index=False)
            table = table.replace_schema_metadata(encode_metadata(metadata))
            pq.write_table(table, self.path_for(namespace), compression="snappy")
        except (OSError, pa.ArrowException) as e:
            raise StorageUnavailable(f"Cannot write stand values for {namespace}: {e}") from e

    def _read_frame(self, file_path: Path) -> pd.DataFrame:
        try:
            table = pq.read_table(file_path)
        except (OSError, pa.ArrowException) as e:
            raise StorageUnavailable(f"Cannot read stand value file {file_path}: {e}") from e

        missing_cols = [name for name in SCHEMA.names if name not in table.column_names]
        if missing_cols:
            raise StorageUnavailable(f"Missing columns {missing_cols} in {file_path}")
        return table.select(SCHEMA.names).to_pandas()

    def _read_metadata(self, file_path: Path) -> Dict[str, Any]:
        try:
            schema = pq.read_schema(file_path)
        except (OSError, pa.ArrowException) as e:
            raise StorageUnavailable(f"Cannot read stand value file {file_path}: {e}") from e
        return decode_metadata(schema.metadata or {})


def create_build_metadata() -> Dict[str, Any]:
    """Create build metadata for files."""
    return {
        "timestamp": datetime.now().isoformat(),
        "numpy_version": np.__version__,
        "pandas_version": pd.__version__,
        "pyarrow_version": pa.__version__,
    }


def encode_metadata(metadata: Dict[str, Any]) -> Dict[bytes, bytes]:
    return {key.encode(): json.dumps(value).encode() for key, value in metadata.items()}


def decode_metadata(raw: Dict[bytes, bytes]) -> Dict[str, Any]:
    metadata = {}
    for key, value in raw.items():
        name = key.decode(errors="replace")
        try:
            metadata[name] = json.loads(value.decode())
        except (UnicodeDecodeError, json.JSONDecodeError):
            metadata[name] = value.decode(errors="replace")
    return metadata

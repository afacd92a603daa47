"""Historical depth snapshot loading.

Expected flat schema (one row per snapshot, file order = replay order):
- `row_index` (optional; filled from row position when absent)
- `timestamp_us` (microseconds since epoch)
- `datetime` (optional, informational)
- `bid_price_1..10`, `bid_qty_1..10`, `ask_price_1..10`, `ask_qty_1..10`

Column names are matched case-insensitively. Rows are NOT validated here;
`DepthView.is_valid()` is the validity check and the backtest driver decides
whether to skip or abort.
"""

import os
from typing import List, NamedTuple, Sequence

import pandas as pd
import pytz

from .book import DepthView
from .contracts import DepthSnapshot, level_columns


def _read_frame(path):
    if not os.path.exists(path):
        raise IOError("snapshot file not found: %s" % path)
    lower = path.lower()
    if lower.endswith(".csv"):
        return pd.read_csv(path)
    if lower.endswith(".parquet"):
        return pd.read_parquet(path)
    raise ValueError("unsupported snapshot file type: %s" % path)


def normalize_snapshot_frame(df):
    """Rename columns to the canonical lower-case schema and check they exist."""
    if df is None or len(df) == 0:
        raise ValueError("empty snapshot dataframe")

    df = df.rename(columns={c: str(c).strip().lower() for c in df.columns})
    required = [c for c in level_columns() if c not in ("row_index", "datetime")]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError("snapshot data is missing columns: %s" % ", ".join(missing))

    if "row_index" not in df.columns:
        df = df.assign(row_index=range(len(df)))
    return df


def snapshots_from_frame(df) -> List[DepthSnapshot]:
    df = normalize_snapshot_frame(df)
    has_dt = "datetime" in df.columns
    out = []
    for row in df.to_dict("records"):
        if has_dt and pd.isna(row["datetime"]):
            row["datetime"] = None
        out.append(DepthSnapshot.from_row(row, row_index=int(row["row_index"])))
    return out


def load_snapshots(path, limit=None) -> List[DepthSnapshot]:
    """Load snapshots from a CSV or Parquet file, optionally the first `limit` rows.

    Parquet requires pyarrow (the `parquet` extra).
    """
    df = _read_frame(path)
    if limit is not None:
        df = df.head(int(limit))
    return snapshots_from_frame(df)


def snapshot_frame(snapshots: Sequence[DepthSnapshot]):
    """Top-of-book frame indexed by a UTC DatetimeIndex."""
    rows = []
    for snap in snapshots:
        book = DepthView(snap)
        rows.append({
            "row_index": snap.row_index,
            "timestamp_us": snap.timestamp_us,
            "best_bid": book.best_bid(),
            "best_ask": book.best_ask(),
            "spread": book.spread(),
            "mid": book.mid_price(),
            "imbalance": book.imbalance(),
            "valid": book.is_valid(),
        })
    df = pd.DataFrame(rows)
    if len(df) == 0:
        return df
    index = pd.to_datetime(df["timestamp_us"], unit="us").dt.tz_localize(pytz.UTC)
    df.index = pd.DatetimeIndex(index)
    return df


class SnapshotStats(NamedTuple):
    count: int
    start_time_us: int
    end_time_us: int
    duration_ms: int
    min_spread: float
    max_spread: float
    avg_spread: float
    min_price: float
    max_price: float

    @classmethod
    def from_snapshots(cls, snapshots):
        snapshots = list(snapshots)
        if not snapshots:
            raise ValueError("no snapshots to summarize")
        views = [DepthView(s) for s in snapshots]
        spreads = [v.spread() for v in views]
        start = snapshots[0].timestamp_us
        end = snapshots[-1].timestamp_us
        return cls(
            count=len(snapshots),
            start_time_us=start,
            end_time_us=end,
            duration_ms=(end - start) // 1000,
            min_spread=min(spreads),
            max_spread=max(spreads),
            avg_spread=sum(spreads) / float(len(spreads)),
            min_price=min(v.best_bid() for v in views),
            max_price=max(v.best_ask() for v in views),
        )

"""
Daily summary ledger - Parquet

One row per finalized day with the domain means of Rso, Rs and Kday,
partitioned by year:

    <ledger_dir>/year=<YYYY>/<YYYYMMDD>.parquet

Re-finalizing a day replaces its row.
"""
import logging
import os
import tempfile
from datetime import date
from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from ..config import LEDGER_DIR
from .models import DailyTotal
from .slots import day_key

logger = logging.getLogger(__name__)

SCHEMA = pa.schema([
    ('day', pa.date32()),
    ('rso_mean', pa.float64()),
    ('rs_mean', pa.float64()),
    ('kday_mean', pa.float64()),
    ('valid_pixels', pa.int64()),
    ('slots', pa.list_(pa.string()))
])


def ledger_path(day: date, ledger_dir=LEDGER_DIR) -> Path:
    return Path(ledger_dir) / f"year={day.year}" / f"{day_key(day)}.parquet"


def append_daily_summary(day: date, total: DailyTotal, ledger_dir=LEDGER_DIR) -> Path:
    """
    Write the summary row of a finalized day

    Args:
        day: Finalized day
        total: Its DailyTotal
        ledger_dir: Root of the partitioned ledger

    Returns:
        Path of the written Parquet file
    """
    stats = total.summary()
    batch = pa.RecordBatch.from_arrays(
        [
            pa.array([day], type=pa.date32()),
            pa.array([stats["rso_mean"]], type=pa.float64()),
            pa.array([stats["rs_mean"]], type=pa.float64()),
            pa.array([stats["kday_mean"]], type=pa.float64()),
            pa.array([stats["valid_pixels"]], type=pa.int64()),
            pa.array([list(total.slots)], type=pa.list_(pa.string()))
        ],
        schema=SCHEMA
    )

    parquet_file = ledger_path(day, ledger_dir)
    parquet_file.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=parquet_file.parent, prefix=".", suffix=".parquet")
    os.close(fd)
    try:
        writer = pq.ParquetWriter(tmp_name, SCHEMA, compression='snappy')
        writer.write_batch(batch)
        writer.close()
        os.replace(tmp_name, parquet_file)
    except Exception:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info(f"✓ Ledger row {day_key(day)}: Kday mean {stats['kday_mean']:.3f} -> {parquet_file}")
    return parquet_file


def read_daily_summaries(ledger_dir=LEDGER_DIR) -> pd.DataFrame:
    """All ledger rows as a DataFrame sorted by day"""
    files = sorted(Path(ledger_dir).glob("year=*/*.parquet"))
    if not files:
        return pd.DataFrame(columns=SCHEMA.names)

    df = pd.concat([pq.read_table(f).to_pandas() for f in files], ignore_index=True)
    return df.sort_values("day").reset_index(drop=True)

"""
Small helper to inspect the daily summary ledger.

The goal is to quickly verify that finalized days were recorded and
that their clear-sky index looks plausible.
"""
from pathlib import Path

from ..config import LEDGER_DIR
from ..solar.daily_parquet import read_daily_summaries


def inspect_daily(ledger_dir=LEDGER_DIR) -> None:
    """
    Print basic information about the ledger.

    This shows the number of finalized days, the span they cover and
    simple statistics of the daily clear-sky index.
    """
    path = Path(ledger_dir)
    print(f"\nInspecting {path}")

    if not path.exists():
        print("  Not found!")
        return

    df = read_daily_summaries(path)
    if df.empty:
        print("  No finalized days.")
        return

    print(f"  Days: {len(df)}")
    print(f"  From {df['day'].iloc[0]} to {df['day'].iloc[-1]}")

    kday = df["kday_mean"].dropna()
    if len(kday) > 0:
        print(f"  Kday (min/mean/max): {kday.min():.3f}/{kday.mean():.3f}/{kday.max():.3f}")
    else:
        print("  No valid Kday data")

    last = df.iloc[-1]
    print(f"  Last day slots: {len(last['slots'])}")


def main() -> None:
    """Inspect the default ledger."""
    inspect_daily()


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Daily Solar Insolation - GOES visible imagery
Integrates the day's snapshots into cloud corrected insolation and
finalizes the daily total at the first image after sunset.

Safe to run repeatedly during the day: every intermediate grid is
cached, a rerun only computes what is new.
"""
import argparse
import logging
import sys
import time
from pathlib import Path

from ..config import (
    DEFAULT_INTERVAL,
    DEFAULT_PATTERN,
    LEDGER_DIR,
    LOOKBACK_DAYS,
    SNAPSHOT_DIR,
    WORK_DIR
)
from ..data.artifacts import RasterArtifactCache
from ..data.snapshots import SnapshotStore
from .clear_sky import ClearSkyOracleError, HeliosatOracle
from .daily_parquet import append_daily_summary
from .finalize import DailyFinalizer
from .integration import DailyIntegrator
from .slots import Slot, day_key, expected_slot_keys, validate_day

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


def process_day(day, oracle, snapshots, cache, force=False, save=False,
                pattern=DEFAULT_PATTERN, interval=DEFAULT_INTERVAL,
                lookback_days=LOOKBACK_DAYS, prefetch_workers=1, ledger_dir=None):
    """
    Run the daily integration once

    Args:
        day: Day to process
        oracle: Clear-sky oracle
        snapshots: Snapshot store
        cache: Artifact cache
        force: Recompute artifacts even if cached
        save: Keep intermediate grids after finalization
        pattern: Snapshot name pattern
        interval: Minutes between expected images
        lookback_days: Prior days in the albedo floor window
        prefetch_workers: Threads evaluating the clear-sky model ahead of the loop
        ledger_dir: Where to append the daily summary row, None to skip

    Returns:
        FinalizeResult
    """
    integrator = DailyIntegrator(
        day, oracle, snapshots, cache,
        lookback_days=lookback_days,
        force=force
    )
    finalizer = DailyFinalizer(
        integrator,
        pattern=pattern,
        interval=interval,
        prefetch_workers=prefetch_workers
    )
    result = finalizer.run()

    if result.finalized:
        if ledger_dir is not None:
            append_daily_summary(day, result.total, ledger_dir)
        if not save:
            cache.purge(day)
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(description="Runs standard daily insolation calculations")
    parser.add_argument("--day", type=str, required=True, help="Day to process (YYYYMMDD)")
    parser.add_argument("-f", "--force", action="store_true",
                        help="Recompute every grid even if it exists")
    parser.add_argument("-s", "--save", action="store_true", help="Keep intermediate grids")
    parser.add_argument("-c", "--cleanup", action="store_true",
                        help="Remove intermediate grids (no processing)")
    parser.add_argument("--list-slots", action="store_true",
                        help="Print the expected image names for the day and exit")
    parser.add_argument("--pattern", type=str, default=DEFAULT_PATTERN,
                        help=f"Replace pattern '{DEFAULT_PATTERN}' for testing only")
    parser.add_argument("--interval", type=int, default=DEFAULT_INTERVAL,
                        help="Image interval in minutes")
    parser.add_argument("--lookback-days", type=int, default=LOOKBACK_DAYS,
                        help="Prior days used for the albedo floor")
    parser.add_argument("--prefetch-workers", type=int, default=1,
                        help="Threads evaluating clear-sky irradiance ahead of the loop")
    parser.add_argument("--snapshot-dir", type=Path, default=SNAPSHOT_DIR)
    parser.add_argument("--work-dir", type=Path, default=WORK_DIR)
    parser.add_argument("--ledger-dir", type=Path, default=LEDGER_DIR)
    args = parser.parse_args(argv)

    try:
        day = validate_day(args.day)
    except ValueError as e:
        logger.error(str(e))
        return 1

    logger.info("=" * 60)
    logger.info(f"Daily Solar Insolation - {day_key(day)}")
    logger.info("=" * 60)

    snapshots = SnapshotStore(args.snapshot_dir)
    cache = RasterArtifactCache(args.work_dir)

    if args.cleanup:
        cache.purge(day)
        return 0

    oracle = HeliosatOracle()
    start_time = time.time()
    try:
        if args.list_slots:
            integrator = DailyIntegrator(day, oracle, snapshots, cache, force=args.force)
            window = integrator.day_window()
            keys = expected_slot_keys(window.sunrise, window.sunset, args.interval)
            print(" ".join(Slot.from_key(k).snapshot_name for k in keys))
            return 0

        keys = snapshots.list_snapshots(day, args.pattern)
        if keys:
            cache.meta = snapshots.profile(day, keys[0])

        result = process_day(
            day, oracle, snapshots, cache,
            force=args.force,
            save=args.save,
            pattern=args.pattern,
            interval=args.interval,
            lookback_days=args.lookback_days,
            prefetch_workers=args.prefetch_workers,
            ledger_dir=args.ledger_dir
        )
    except ClearSkyOracleError as e:
        logger.error(f"Clear-sky model unavailable: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid geometry for {day_key(day)}: {e}")
        return 1
    except (OSError, LookupError) as e:
        logger.error(f"Cannot read inputs for {day_key(day)}: {e}")
        return 1

    duration = time.time() - start_time
    logger.info("=" * 60)
    if result.finalized:
        stats = result.total.summary()
        logger.info(f"✓ {day_key(day)} finalized in {duration:.2f}s")
        logger.info(f"  Rso mean: {stats['rso_mean']:.2f} MJ/m^2 day")
        logger.info(f"  Rs mean:  {stats['rs_mean']:.2f} MJ/m^2 day")
        logger.info(f"  K mean:   {stats['kday_mean']:.3f}")
        logger.info(f"  Using: {','.join(result.slots)}")
    else:
        logger.info(f"{day_key(day)} pending ({result.state.value}) after {duration:.2f}s")
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())

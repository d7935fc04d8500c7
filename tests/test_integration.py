"""
Tests for the incremental integrator and its memoization.
"""
from datetime import timedelta

import numpy as np
import pytest

from daily_solar.data.artifacts import ArtifactKind, MemoryArtifactCache, RasterArtifactCache
from daily_solar.solar.integration import (
    DailyIntegrator,
    accumulate_insolation,
    first_insolation,
)

from conftest import DAY, SHAPE


def _integrator(oracle, snapshots, cache=None, **kwargs):
    return DailyIntegrator(DAY, oracle, snapshots, cache or MemoryArtifactCache(), **kwargs)


class TestFormulas:
    """Trapezoidal accumulation."""

    def test_first_slot(self):
        gi = np.array([[100.0, 200.0]])
        k = np.array([[0.5, 1.0]])
        assert first_insolation(gi, k).tolist() == [[50.0, 200.0]]

    def test_accumulate_uses_mean_index(self):
        g = accumulate_insolation(
            g_prev=np.array([[50.0]]),
            k_prev=np.array([[0.5]]),
            gi_prev=np.array([[100.0]]),
            k=np.array([[1.0]]),
            gi=np.array([[300.0]]),
        )
        assert g[0, 0] == pytest.approx(50.0 + 0.75 * 200.0)


class TestDailyIntegrator:
    """Memoized per-slot artifacts."""

    def test_first_slot_is_gi_times_k(self, oracle, memory_snapshots):
        rng = np.random.default_rng(1)
        for offset in range(3):
            memory_snapshots.add(DAY - timedelta(days=offset), "0900", rng.uniform(50, 300, SHAPE))
        integrator = _integrator(oracle, memory_snapshots)

        g = integrator.integrate("0900")
        np.testing.assert_array_equal(g, integrator.clear_sky("0900") * integrator.clear_sky_index("0900"))

    def test_second_slot_accumulates(self, oracle, memory_snapshots):
        memory_snapshots.add(DAY, "0900", np.full(SHAPE, 100.0))
        memory_snapshots.add(DAY, "1100", np.full(SHAPE, 100.0))
        integrator = _integrator(oracle, memory_snapshots)

        g1 = integrator.integrate("0900")
        g2 = integrator.integrate("1100", "0900")
        # No history: P equals the image, K is 1 everywhere
        np.testing.assert_allclose(g1, 300.0)
        np.testing.assert_allclose(g2, 500.0)

    def test_previous_must_be_integrated(self, oracle, memory_snapshots):
        memory_snapshots.add(DAY, "0900", np.full(SHAPE, 100.0))
        memory_snapshots.add(DAY, "1100", np.full(SHAPE, 100.0))
        integrator = _integrator(oracle, memory_snapshots)
        with pytest.raises(LookupError):
            integrator.integrate("1100", "0900")

    def test_clear_sky_is_monotonic(self, oracle, memory_snapshots):
        integrator = _integrator(oracle, memory_snapshots)
        keys = ["0700", "0900", "1100", "1300", "1500", "1700", "1900"]
        values = [integrator.clear_sky(k)[0, 0] for k in keys]
        assert values == sorted(values)
        assert values[0] == pytest.approx(100.0)

    def test_albedo_floor_lookback_window(self, oracle, memory_snapshots):
        memory_snapshots.add(DAY, "0900", np.full(SHAPE, 80.0))
        memory_snapshots.add(DAY - timedelta(days=14), "0900", np.full(SHAPE, 30.0))
        memory_snapshots.add(DAY - timedelta(days=15), "0900", np.full(SHAPE, 10.0))
        memory_snapshots.add(DAY - timedelta(days=3), "0920", np.full(SHAPE, 5.0))
        integrator = _integrator(oracle, memory_snapshots)

        np.testing.assert_array_equal(integrator.albedo_floor("0900"), np.full(SHAPE, 30.0))

    def test_albedo_floor_shorter_lookback(self, oracle, memory_snapshots):
        memory_snapshots.add(DAY, "0900", np.full(SHAPE, 80.0))
        memory_snapshots.add(DAY - timedelta(days=14), "0900", np.full(SHAPE, 30.0))
        integrator = _integrator(oracle, memory_snapshots, lookback_days=7)

        np.testing.assert_array_equal(integrator.albedo_floor("0900"), np.full(SHAPE, 80.0))

    def test_missing_snapshot(self, oracle, memory_snapshots):
        integrator = _integrator(oracle, memory_snapshots)
        with pytest.raises(FileNotFoundError):
            integrator.albedo_floor("0900")

    def test_degenerate_history_gives_clear_index(self, oracle, memory_snapshots):
        grid = np.arange(16, dtype=float).reshape(SHAPE) * 10.0
        memory_snapshots.add(DAY, "0900", grid)
        integrator = _integrator(oracle, memory_snapshots)

        k = integrator.clear_sky_index("0900")
        assert np.all(k == 1.0)

    def test_reuses_cached_artifacts(self, oracle, memory_snapshots):
        memory_snapshots.add(DAY, "0900", np.full(SHAPE, 100.0))
        cache = MemoryArtifactCache()
        integrator = _integrator(oracle, memory_snapshots, cache)

        first = integrator.integrate("0900")
        calls = len(oracle.calls)
        second = integrator.integrate("0900")

        assert len(oracle.calls) == calls == 1
        assert first.tobytes() == second.tobytes()

    def test_force_recomputes_once_per_run(self, oracle, memory_snapshots):
        memory_snapshots.add(DAY, "0900", np.full(SHAPE, 100.0))
        cache = MemoryArtifactCache()
        _integrator(oracle, memory_snapshots, cache).integrate("0900")
        assert len(oracle.calls) == 1

        forced = _integrator(oracle, memory_snapshots, cache, force=True)
        forced.integrate("0900")
        forced.integrate("0900")
        forced.clear_sky("0900")
        assert len(oracle.calls) == 2

    def test_force_overwrites_stale_value(self, oracle, memory_snapshots):
        memory_snapshots.add(DAY, "0900", np.full(SHAPE, 100.0))
        cache = MemoryArtifactCache()
        cache.put(DAY, "0900", ArtifactKind.GI, np.full(SHAPE, -1.0))

        assert _integrator(oracle, memory_snapshots, cache).clear_sky("0900")[0, 0] == -1.0
        assert _integrator(oracle, memory_snapshots, cache, force=True).clear_sky("0900")[0, 0] == pytest.approx(300.0)

    def test_day_window_asked_once(self, oracle, memory_snapshots):
        cache = MemoryArtifactCache()
        _integrator(oracle, memory_snapshots, cache).day_window()
        window = _integrator(oracle, memory_snapshots, cache).day_window()
        assert oracle.window_calls == 1
        assert (window.sunrise, window.sunset) == (360, 1080)

    def test_negative_lookback(self, oracle, memory_snapshots):
        with pytest.raises(ValueError):
            _integrator(oracle, memory_snapshots, lookback_days=-1)


class TestRasterIdempotence:
    """Repeated integration leaves the stored G untouched."""

    def test_g_file_is_byte_identical(self, tmp_path, oracle, meta, snapshot_store, write_snapshot):
        rng = np.random.default_rng(3)
        for offset in range(4):
            write_snapshot(snapshot_store, DAY - timedelta(days=offset), "0900", rng.uniform(50, 300, SHAPE))
        cache = RasterArtifactCache(tmp_path / "work", meta)

        _integrator(oracle, snapshot_store, cache).integrate("0900")
        g_path = cache.grid_path(DAY, "0900", ArtifactKind.G)
        before = g_path.read_bytes()
        mtime = g_path.stat().st_mtime_ns

        _integrator(oracle, snapshot_store, cache).integrate("0900")
        assert g_path.read_bytes() == before
        assert g_path.stat().st_mtime_ns == mtime
        assert len(oracle.calls) == 1

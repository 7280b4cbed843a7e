#!/usr/bin/env python3
"""参数扫描驱动测试"""

import threading
from unittest.mock import patch

import numpy as np
import pytest

from photonicbandsim.core.errors import EigenSolveError, InvalidConfigurationError
from photonicbandsim.core.lattice import build_lattice
from photonicbandsim.core.parameters import RangeSpec, SweepParameters
from photonicbandsim.pwem import eigensolver
from photonicbandsim.pwem.sweep import SampleFailure, SweepDriver, SweepReport, run_sweep


@pytest.mark.physics
class TestReferenceScenario:
    """正方晶格 na=1, nb=1.6, r=0.35, No1=2, Nr=10"""

    def test_kz_zero_band_structure(self, reference_params):
        """kz = 0 时能带按列升序、非负，且不存在完全带隙

        N 个纵向零模与 Γ 点的物理零频模使得低频端无法开隙，而该折射率对比下
        面内 TE/TM 能带相互重叠；第一个带隙要到 kz > 0 才出现。
        """
        result = SweepDriver(reference_params).run()

        assert result.omega.shape == (1, 1, 75, 32)
        assert result.path.key_points == (0, 9, 18, 31)
        w = result.band_structure(0, 0)
        assert np.all(np.isfinite(w))
        assert np.all(w >= 0)
        assert np.all(np.diff(w, axis=0) >= 0)
        assert result.report.completed_samples == 32
        assert not result.report.failures

        assert result.num_gaps[0, 0] == 0
        bottoms, tops = result.gaps(0, 0)
        assert bottoms.size == 0 and tops.size == 0
        assert not np.any(result.min_bands)

    def test_fundamental_gap_at_finite_kz(self):
        """kz>0 时零频纵模与第一条物理能带之间出现带隙，上界在 0.3~0.5"""
        params = SweepParameters.from_ranges(
            1.0,
            1.6,
            RangeSpec(0.35, 0.35, 1),
            RangeSpec(0.5, 0.5, 1),
            brillouin_density=10,
            order=2,
        )
        result = SweepDriver(params).run()
        assert result.num_gaps[0, 0] >= 1
        bottoms, tops = result.gaps(0, 0)
        assert bottoms[0] < 1e-3
        assert 0.5 / 1.6 - 1e-9 <= tops[0] <= 0.5 + 1e-9
        assert result.min_bands[0, 0, 0] == bottoms[0]
        assert result.max_bands[0, 0, 0] == tops[0]

    def test_overlapping_cylinders_solved(self):
        """r = 0.56 > 0.5（f < 1）仍被接受，默认求解方式不应整体失败"""
        params = SweepParameters.from_ranges(
            1.0,
            1.6,
            RangeSpec(0.56, 0.56, 1),
            RangeSpec(0.5, 0.5, 1),
            brillouin_density=4,
            order=3,
        )
        assert params.eigensolver == "eigh"
        result = SweepDriver(params).run()
        assert result.report.failures == []
        assert result.report.completed_samples == result.path.num_points
        assert np.all(np.isfinite(result.omega))


@pytest.mark.unit
class TestSweepDriver:
    """扫描驱动器的形状、并行、取消与失败处理"""

    def test_output_shapes(self, small_params):
        result = SweepDriver(small_params).run()
        assert result.omega.shape == (2, 2, 27, 12)
        assert result.min_bands.shape == (27, 2, 2)
        assert result.max_bands.shape == (27, 2, 2)
        assert result.num_gaps.shape == (2, 2)
        assert result.report.total_samples == 48
        assert result.report.completed_samples == 48
        assert not np.any(np.isnan(result.omega))
        assert result.geometry_name == "Square Lattice"
        assert np.allclose(result.fill_fractions, np.pi * np.array([0.3, 0.4]) ** 2)

    def test_unused_gap_slots_are_zero(self, small_params):
        result = SweepDriver(small_params).run()
        for kz_index in range(2):
            for r_index in range(2):
                n = result.num_gaps[kz_index, r_index]
                assert not np.any(result.min_bands[n:, kz_index, r_index])
                assert not np.any(result.max_bands[n:, kz_index, r_index])

    def test_parallel_matches_serial(self, small_params):
        serial = SweepDriver(small_params).run()
        parallel = SweepDriver(small_params, max_workers=3).run()
        assert np.allclose(parallel.omega, serial.omega, atol=1e-10)
        assert np.array_equal(parallel.num_gaps, serial.num_gaps)
        assert np.allclose(parallel.min_bands, serial.min_bands, atol=1e-10)
        assert np.allclose(parallel.max_bands, serial.max_bands, atol=1e-10)

    def test_slice_callback(self, small_params):
        calls = []

        def callback(r_index, kz_index, omega_slice, bottoms, tops):
            calls.append((r_index, kz_index, omega_slice.shape, bottoms.size))

        result = SweepDriver(small_params, slice_callback=callback).run()
        assert sorted(c[:2] for c in calls) == [(0, 0), (0, 1), (1, 0), (1, 1)]
        for r_index, kz_index, shape, n in calls:
            assert shape == (27, 12)
            assert n == result.num_gaps[kz_index, r_index]

    def test_keep_omega_false(self, small_params):
        full = SweepDriver(small_params).run()
        lean = SweepDriver(small_params, keep_omega=False).run()
        assert lean.omega is None
        assert np.array_equal(lean.num_gaps, full.num_gaps)
        assert np.allclose(lean.min_bands, full.min_bands)
        with pytest.raises(ValueError):
            lean.band_structure(0, 0)

    def test_band_structure_read_only(self, small_params):
        result = SweepDriver(small_params).run()
        view = result.band_structure(0, 1)
        with pytest.raises(ValueError):
            view[0, 0] = 1.0

    @pytest.mark.parametrize("workers", [0, -1, 2.5])
    def test_invalid_worker_override(self, small_params, workers):
        """显式传入的线程数同样需要校验"""
        with pytest.raises(InvalidConfigurationError) as exc_info:
            SweepDriver(small_params, max_workers=workers)
        assert exc_info.value.parameter == "pwem.max_workers"

    def test_explicit_lattice_and_run_sweep(self, small_params):
        lattice = build_lattice("square")
        a = SweepDriver(small_params, lattice=lattice).run()
        b = run_sweep(small_params)
        assert np.allclose(a.omega, b.omega)


@pytest.mark.unit
class TestFailureHandling:
    """单点求解失败的局部恢复"""

    def test_failed_sample_marked_nan(self, small_params):
        real_solve = eigensolver.solve_frequencies
        calls = {"n": 0}

        def flaky(kg, eps_blk, method="eigh"):
            calls["n"] += 1
            if calls["n"] == 3:
                raise EigenSolveError("模拟的 LAPACK 不收敛")
            return real_solve(kg, eps_blk, method=method)

        with patch("photonicbandsim.pwem.sweep.solve_frequencies", side_effect=flaky):
            result = SweepDriver(small_params).run()

        report = result.report
        assert report.failed_indices == [(0, 0, 2)]
        assert "LAPACK" in report.failures[0].message
        assert report.completed_samples == report.total_samples
        assert np.all(np.isnan(result.omega[0, 0, :, 2]))
        assert np.all(np.isfinite(result.omega[0, 0, :, 3]))
        assert np.all(np.isfinite(result.omega[1]))
        assert "失败 1" in report.summary()

    def test_all_samples_failed_gives_no_gaps(self, small_params):
        with patch(
            "photonicbandsim.pwem.sweep.solve_frequencies",
            side_effect=EigenSolveError("boom"),
        ):
            result = SweepDriver(small_params).run()
        assert len(result.report.failures) == 48
        assert not np.any(result.num_gaps)
        assert np.all(np.isnan(result.omega))

    def test_report_serialization(self):
        report = SweepReport(
            total_samples=10,
            completed_samples=4,
            failures=[SampleFailure(0, 1, 2, "x")],
            elapsed=1.5,
            cancelled=True,
        )
        d = report.as_dict()
        assert d["failures"][0] == {"r_index": 0, "kz_index": 1, "k_index": 2, "message": "x"}
        assert d["cancelled"] is True
        assert "已取消" in report.summary()


@pytest.mark.unit
class TestCancellation:
    """协作式取消"""

    def test_cancel_before_start(self, small_params):
        event = threading.Event()
        event.set()
        result = SweepDriver(small_params, cancel_event=event).run()
        assert result.report.cancelled
        assert result.report.completed_samples == 0
        assert np.all(np.isnan(result.omega))

    def test_cancel_after_first_slice_serial(self, small_params):
        driver = SweepDriver(small_params)

        def stop(*_):
            driver.cancel()

        driver.slice_callback = stop
        result = driver.run()
        assert result.report.cancelled
        assert result.report.completed_samples == 12
        assert np.all(np.isfinite(result.omega[0, 0]))
        assert np.all(np.isnan(result.omega[1]))

    def test_cancel_parallel(self, small_params):
        event = threading.Event()
        result = SweepDriver(
            small_params,
            max_workers=2,
            cancel_event=event,
            slice_callback=lambda *_: event.set(),
        ).run()
        assert result.report.cancelled
        assert result.report.completed_samples < result.report.total_samples
        assert np.all(np.isnan(result.omega[1]))

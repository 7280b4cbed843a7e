#!/usr/bin/env python3
"""
参数扫描驱动模块

在 (半径 × kz × 布里渊路径点) 上执行平面波展开计算：

1. 对每个半径计算介电系数矩阵及其块对角复制（在该半径内只读共享）；
2. 对每个 (kz, k) 采样点组装 k+G 分量并求解广义本征问题；
3. 某个 (r, kz) 切片的全部路径点完成后，提取该切片的带隙。

各采样点相互独立。``max_workers > 1`` 时使用线程池并行求解（LAPACK 调用期间
释放 GIL），所有结果写入都在主线程完成，不同 (r, kz) 切片互不重叠，无需加锁。

单个采样点求解失败时，该点频率保持 NaN 并记入报告，扫描继续。
取消通过 :class:`threading.Event` 协作完成，只在采样点之间检查。
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

import numpy as np

from ..core.errors import EigenSolveError, InvalidConfigurationError
from ..core.lattice import BrillouinPath, Lattice, build_lattice
from ..core.parameters import SweepParameters
from .bandgap import find_band_gaps
from .dielectric import block_dielectric_matrix, dielectric_matrix
from .eigensolver import solve_frequencies
from .wavevector import wavevector_matrices

logger = logging.getLogger(__name__)

# (r_index, kz_index, omega_slice[band, k], bottoms, tops)
SliceCallback = Callable[[int, int, np.ndarray, np.ndarray, np.ndarray], None]

# 截断阶数超过该值时逐块输出路径点进度
_PROGRESS_ORDER = 5
_PROGRESS_EVERY = 5


@dataclass(frozen=True)
class SampleFailure:
    """单个失败采样点的索引与原因。"""

    r_index: int
    kz_index: int
    k_index: int
    message: str


@dataclass
class SweepReport:
    """扫描汇总：采样总数、完成数、失败列表、耗时与是否被取消。"""

    total_samples: int
    completed_samples: int = 0
    failures: list[SampleFailure] = field(default_factory=list)
    elapsed: float = 0.0
    cancelled: bool = False

    @property
    def failed_indices(self) -> list[tuple[int, int, int]]:
        return [(f.r_index, f.kz_index, f.k_index) for f in self.failures]

    def summary(self) -> str:
        text = (
            f"采样点 {self.completed_samples}/{self.total_samples}，"
            f"失败 {len(self.failures)}，耗时 {self.elapsed:.2f} s"
        )
        if self.failures:
            shown = ", ".join(str(i) for i in self.failed_indices[:10])
            more = " ..." if len(self.failures) > 10 else ""
            text += f"，失败索引 (r, kz, k): {shown}{more}"
        if self.cancelled:
            text += "（已取消）"
        return text

    def as_dict(self) -> dict:
        return {
            "total_samples": self.total_samples,
            "completed_samples": self.completed_samples,
            "failures": [
                {
                    "r_index": f.r_index,
                    "kz_index": f.kz_index,
                    "k_index": f.k_index,
                    "message": f.message,
                }
                for f in self.failures
            ],
            "elapsed": self.elapsed,
            "cancelled": self.cancelled,
        }


@dataclass
class SweepResult:
    """
    扫描输出。

    Attributes
    ----------
    omega : numpy.ndarray or None
        频率张量 ``[radius, kz, band, k]``，未完成或失败的采样点为 NaN；
        ``keep_omega=False`` 时为 ``None``。
    min_bands, max_bands : numpy.ndarray
        带隙下界/上界 ``[gap, kz, radius]``，未使用的槽位为 0。
    num_gaps : numpy.ndarray
        每个 (kz, radius) 检测到的带隙个数。
    """

    params: SweepParameters
    path: BrillouinPath
    b1: np.ndarray
    b2: np.ndarray
    fill_fractions: np.ndarray
    geometry_name: str
    omega: np.ndarray | None
    min_bands: np.ndarray
    max_bands: np.ndarray
    num_gaps: np.ndarray
    report: SweepReport

    @property
    def radii(self) -> np.ndarray:
        return self.params.radii

    @property
    def kzs(self) -> np.ndarray:
        return self.params.kzs

    @property
    def num_bands(self) -> int:
        return self.params.num_bands

    def band_structure(self, r_index: int, kz_index: int) -> np.ndarray:
        """返回 ``omega[r, kz]``（形状 ``(band, k)``）的只读视图。"""
        if self.omega is None:
            raise ValueError("扫描未保留频率张量（keep_omega=False）")
        view = self.omega[r_index, kz_index]
        view.flags.writeable = False
        return view

    def gaps(self, r_index: int, kz_index: int) -> tuple[np.ndarray, np.ndarray]:
        """返回该 (r, kz) 的带隙 ``(bottoms, tops)``。"""
        n = int(self.num_gaps[kz_index, r_index])
        return (
            self.min_bands[:n, kz_index, r_index].copy(),
            self.max_bands[:n, kz_index, r_index].copy(),
        )


class SweepDriver:
    """
    (半径 × kz × 布里渊点) 扫描驱动器。

    Parameters
    ----------
    params : SweepParameters
        扫描参数，运行前会再次校验。
    lattice : Lattice, optional
        晶格几何；缺省按 ``params.lattice_kind`` 构建。
    max_workers : int, optional
        覆盖 ``params.max_workers``，须为 >= 1 的整数。
    cancel_event : threading.Event, optional
        置位后在下一个采样点之前停止，返回部分结果。
    slice_callback : callable, optional
        每完成一个 (r, kz) 切片调用一次，可用于流式写盘。
    keep_omega : bool
        是否在内存中保留完整的频率张量。

    Examples
    --------
    >>> params = SweepParameters.from_ranges(
    ...     1.0, 1.6, RangeSpec(0.35, 0.35, 1), RangeSpec(0.0, 0.0, 1),
    ...     order=2, brillouin_density=10)
    >>> result = SweepDriver(params).run()
    >>> result.omega.shape
    (1, 1, 75, 32)
    """

    def __init__(
        self,
        params: SweepParameters,
        lattice: Lattice | None = None,
        max_workers: int | None = None,
        cancel_event: threading.Event | None = None,
        slice_callback: SliceCallback | None = None,
        keep_omega: bool = True,
    ) -> None:
        params.validate()
        self.params = params
        self.lattice = lattice or build_lattice(params.lattice_kind)
        if max_workers is None:
            max_workers = params.max_workers
        if int(max_workers) != max_workers or max_workers < 1:
            raise InvalidConfigurationError(
                "pwem.max_workers", f"需为 >= 1 的整数，得到 {max_workers!r}"
            )
        self.max_workers = int(max_workers)
        self.cancel_event = cancel_event or threading.Event()
        self.slice_callback = slice_callback
        self.keep_omega = keep_omega

    def cancel(self) -> None:
        self.cancel_event.set()

    # ---------------------------- 主流程 ----------------------------
    def run(self) -> SweepResult:
        p = self.params
        disc = self.lattice.discretize(p.brillouin_density, p.radii)
        path = disc.path
        nr, nkz, nb, npts = p.radii.size, p.kzs.size, p.num_bands, path.num_points

        omega = np.full((nr, nkz, nb, npts), np.nan) if self.keep_omega else None
        min_bands = np.zeros((nb, nkz, nr))
        max_bands = np.zeros((nb, nkz, nr))
        num_gaps = np.zeros((nkz, nr), dtype=int)
        report = SweepReport(total_samples=nr * nkz * npts)

        self._disc = disc
        self._omega = omega
        self._min_bands = min_bands
        self._max_bands = max_bands
        self._num_gaps = num_gaps
        self._report = report

        logger.info(
            f"{disc.geometry_name}: 半径 {nr} 个 × kz {nkz} 个 × 路径点 {npts} 个，"
            f"平面波 N={p.num_plane_waves}，能带数 {nb}，线程数 {self.max_workers}"
        )
        t0 = time.perf_counter()
        try:
            if self.max_workers == 1:
                self._run_serial()
            else:
                with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                    self._run_parallel(executor)
        finally:
            report.elapsed = time.perf_counter() - t0
            report.cancelled = self.cancel_event.is_set()

        logger.info(report.summary())
        return SweepResult(
            params=p,
            path=path,
            b1=disc.b1,
            b2=disc.b2,
            fill_fractions=disc.fill_fractions,
            geometry_name=disc.geometry_name,
            omega=omega,
            min_bands=min_bands,
            max_bands=max_bands,
            num_gaps=num_gaps,
            report=report,
        )

    # ---------------------------- 内部实现 ----------------------------
    def _prepare_radius(self, r_index: int) -> np.ndarray:
        p = self.params
        r = float(p.radii[r_index])
        logger.info(f"r = {r:.4f}:")
        epsi = dielectric_matrix(
            r,
            p.na,
            p.nb,
            self._disc.b1,
            self._disc.b2,
            p.n1,
            p.n2,
            float(self._disc.fill_fractions[r_index]),
        )
        return block_dielectric_matrix(epsi)

    def _slice_buffer(self, r_index: int) -> np.ndarray:
        if self._omega is not None:
            return self._omega[r_index]
        p = self.params
        return np.full((p.kzs.size, p.num_bands, self._disc.path.num_points), np.nan)

    def _solve_sample(
        self, kz: float, k_index: int, eps_blk: np.ndarray
    ) -> tuple[np.ndarray | None, str | None]:
        p = self.params
        kg = wavevector_matrices(
            self._disc.path.kx[k_index],
            self._disc.path.ky[k_index],
            kz,
            self._disc.b1,
            self._disc.b2,
            p.n1,
            p.n2,
        )
        try:
            return solve_frequencies(kg, eps_blk, method=p.eigensolver), None
        except EigenSolveError as exc:
            return None, str(exc)

    def _record(
        self,
        buf: np.ndarray,
        valid: np.ndarray,
        r_index: int,
        kz_index: int,
        k_index: int,
        values: np.ndarray | None,
        error: str | None,
    ) -> None:
        self._report.completed_samples += 1
        if values is None:
            failure = SampleFailure(r_index, kz_index, k_index, error or "")
            self._report.failures.append(failure)
            logger.warning(
                f"采样点 (r={r_index}, kz={kz_index}, k={k_index}) 求解失败，已标记为 NaN: {error}"
            )
            return
        buf[kz_index, :, k_index] = values
        valid[kz_index, k_index] = True

    def _finalize_slice(
        self, buf: np.ndarray, valid: np.ndarray, r_index: int, kz_index: int
    ) -> None:
        cols = valid[kz_index]
        omega_slice = buf[kz_index]
        if np.any(cols):
            bottoms, tops = find_band_gaps(
                omega_slice[:, cols], self.params.band_gap_tolerance
            )
        else:
            bottoms, tops = np.empty(0), np.empty(0)

        n = bottoms.size
        self._min_bands[:n, kz_index, r_index] = bottoms
        self._max_bands[:n, kz_index, r_index] = tops
        self._num_gaps[kz_index, r_index] = n
        for i, (lo, hi) in enumerate(zip(bottoms, tops), start=1):
            logger.info(f"\t\tBandgap {i}: {lo:.6g}, {hi:.6g}")

        if self.slice_callback is not None:
            self.slice_callback(r_index, kz_index, omega_slice, bottoms, tops)

    def _run_serial(self) -> None:
        p = self.params
        npts = self._disc.path.num_points
        progress = p.order > _PROGRESS_ORDER
        for r_index in range(p.radii.size):
            if self.cancel_event.is_set():
                return
            eps_blk = self._prepare_radius(r_index)
            buf = self._slice_buffer(r_index)
            valid = np.zeros((p.kzs.size, npts), dtype=bool)
            for kz_index, kz in enumerate(p.kzs):
                logger.debug(f"\tkz = {kz:.4f}:")
                last = 0
                for j in range(npts):
                    if self.cancel_event.is_set():
                        return
                    values, error = self._solve_sample(float(kz), j, eps_blk)
                    self._record(buf, valid, r_index, kz_index, j, values, error)
                    if progress and ((j + 1) % _PROGRESS_EVERY == 0 or j == npts - 1):
                        logger.info(f"\t\t已计算路径点 k[{last + 1} - {j + 1}]")
                        last = j + 1
                self._finalize_slice(buf, valid, r_index, kz_index)

    def _run_parallel(self, executor: ThreadPoolExecutor) -> None:
        p = self.params
        npts = self._disc.path.num_points

        def task(kz: float, k_index: int, eps_blk: np.ndarray):
            if self.cancel_event.is_set():
                return None
            return self._solve_sample(kz, k_index, eps_blk)

        for r_index in range(p.radii.size):
            if self.cancel_event.is_set():
                return
            eps_blk = self._prepare_radius(r_index)
            buf = self._slice_buffer(r_index)
            valid = np.zeros((p.kzs.size, npts), dtype=bool)
            remaining = np.full(p.kzs.size, npts, dtype=int)

            pending: dict[Future, tuple[int, int]] = {}
            for kz_index, kz in enumerate(p.kzs):
                for j in range(npts):
                    fut = executor.submit(task, float(kz), j, eps_blk)
                    pending[fut] = (kz_index, j)

            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for fut in done:
                    kz_index, j = pending.pop(fut)
                    if fut.cancelled():
                        continue
                    outcome = fut.result()
                    if outcome is None:
                        continue
                    values, error = outcome
                    self._record(buf, valid, r_index, kz_index, j, values, error)
                    remaining[kz_index] -= 1
                    if remaining[kz_index] == 0:
                        self._finalize_slice(buf, valid, r_index, kz_index)
                if self.cancel_event.is_set():
                    for fut in pending:
                        fut.cancel()


def run_sweep(params: SweepParameters, **kwargs) -> SweepResult:
    """``SweepDriver(params, **kwargs).run()`` 的便捷入口。"""
    return SweepDriver(params, **kwargs).run()

#!/usr/bin/env python3
"""
扫描结果的 HDF5 存储

文件布局::

    /meta      属性：几何名称、晶格、折射率、截断阶数、容差、创建时间
    /axes      radii, kzs, fill_fractions, kx, ky, key_points, labels, b1, b2
    /data      omega[radius, kz, band, k]（按切片分块、gzip 压缩、NaN 填充）
               min_bands, max_bands[gap, kz, radius], num_gaps[kz, radius]
    /report    属性：采样总数、完成数、耗时、是否取消；失败索引与原因

:class:`BandStructureWriter` 支持按 (r, kz) 切片增量写入，可直接作为
:class:`~photonicbandsim.pwem.sweep.SweepDriver` 的 ``slice_callback``，
避免在内存中保留完整频率张量。
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import h5py
import numpy as np

from .. import __version__
from ..core.lattice import BrillouinPath, LatticeDiscretization, LatticeKind
from ..core.parameters import MaterialIndices, SweepParameters
from ..pwem.sweep import SampleFailure, SweepReport, SweepResult

logger = logging.getLogger(__name__)

_STR_DTYPE = h5py.string_dtype(encoding="utf-8")


def _write_header(
    h5: h5py.File,
    params: SweepParameters,
    path: BrillouinPath,
    b1: np.ndarray,
    b2: np.ndarray,
    fill_fractions: np.ndarray,
    geometry_name: str,
    with_omega: bool,
    compression: str | None,
) -> None:
    meta = h5.require_group("meta")
    meta.attrs["version"] = __version__
    meta.attrs["created"] = datetime.now(timezone.utc).isoformat()
    meta.attrs["geometry_name"] = geometry_name
    meta.attrs["lattice"] = LatticeKind.parse(params.lattice_kind).value
    meta.attrs["na"] = float(params.na)
    meta.attrs["nb"] = float(params.nb)
    meta.attrs["order"] = int(params.order)
    meta.attrs["brillouin_density"] = int(params.brillouin_density)
    meta.attrs["band_gap_tolerance"] = float(params.band_gap_tolerance)
    meta.attrs["eigensolver"] = params.eigensolver

    axes = h5.require_group("axes")
    axes.create_dataset("radii", data=np.asarray(params.radii, dtype=float))
    axes.create_dataset("kzs", data=np.asarray(params.kzs, dtype=float))
    axes.create_dataset("fill_fractions", data=np.asarray(fill_fractions, dtype=float))
    axes.create_dataset("kx", data=path.kx)
    axes.create_dataset("ky", data=path.ky)
    axes.create_dataset("key_points", data=np.asarray(path.key_points, dtype=int))
    axes.create_dataset("labels", data=np.array(path.labels, dtype=_STR_DTYPE))
    axes.create_dataset("b1", data=np.asarray(b1, dtype=float))
    axes.create_dataset("b2", data=np.asarray(b2, dtype=float))

    nr, nkz, nb, npts = params.radii.size, params.kzs.size, params.num_bands, path.num_points
    data = h5.require_group("data")
    if with_omega:
        data.create_dataset(
            "omega",
            shape=(nr, nkz, nb, npts),
            dtype="f8",
            chunks=(1, 1, nb, npts),
            compression=compression,
            fillvalue=np.nan,
        )
    data.create_dataset("min_bands", shape=(nb, nkz, nr), dtype="f8", fillvalue=0.0)
    data.create_dataset("max_bands", shape=(nb, nkz, nr), dtype="f8", fillvalue=0.0)
    data.create_dataset("num_gaps", shape=(nkz, nr), dtype="i8", fillvalue=0)


def _write_report(h5: h5py.File, report: SweepReport) -> None:
    grp = h5.require_group("report")
    grp.attrs["total_samples"] = int(report.total_samples)
    grp.attrs["completed_samples"] = int(report.completed_samples)
    grp.attrs["elapsed"] = float(report.elapsed)
    grp.attrs["cancelled"] = bool(report.cancelled)
    for name in ("failure_indices", "failure_messages"):
        if name in grp:
            del grp[name]
    idx = np.array(report.failed_indices, dtype=int).reshape(-1, 3)
    grp.create_dataset("failure_indices", data=idx)
    grp.create_dataset(
        "failure_messages",
        data=np.array([f.message for f in report.failures], dtype=_STR_DTYPE),
    )


def save_sweep_result(
    result: SweepResult, path: str | Path, compression: str | None = "gzip"
) -> Path:
    """
    将扫描结果写入 HDF5 文件（覆盖已有文件）。

    Returns
    -------
    pathlib.Path
        写入的文件路径。
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with h5py.File(path, "w") as h5:
        _write_header(
            h5,
            result.params,
            result.path,
            result.b1,
            result.b2,
            result.fill_fractions,
            result.geometry_name,
            with_omega=result.omega is not None,
            compression=compression,
        )
        data = h5["data"]
        if result.omega is not None:
            data["omega"][...] = result.omega
        data["min_bands"][...] = result.min_bands
        data["max_bands"][...] = result.max_bands
        data["num_gaps"][...] = result.num_gaps
        _write_report(h5, result.report)
    logger.info(f"扫描结果已保存: {path}")
    return path


def load_sweep_result(path: str | Path) -> SweepResult:
    """从 HDF5 文件读取扫描结果。"""
    path = Path(path)
    with h5py.File(path, "r") as h5:
        meta = h5["meta"].attrs
        axes = h5["axes"]
        data = h5["data"]

        params = SweepParameters(
            materials=MaterialIndices(float(meta["na"]), float(meta["nb"])),
            radii=axes["radii"][...],
            kzs=axes["kzs"][...],
            lattice_kind=LatticeKind.parse(str(meta["lattice"])),
            brillouin_density=int(meta["brillouin_density"]),
            order=int(meta["order"]),
            band_gap_tolerance=float(meta["band_gap_tolerance"]),
            eigensolver=str(meta["eigensolver"]),
        )
        bz_path = BrillouinPath(
            kx=axes["kx"][...],
            ky=axes["ky"][...],
            key_points=tuple(int(i) for i in axes["key_points"][...]),
            labels=tuple(axes["labels"].asstr()[...]),
        )
        omega = data["omega"][...] if "omega" in data else None

        rep = h5["report"]
        failures = [
            SampleFailure(int(r), int(k), int(j), str(msg))
            for (r, k, j), msg in zip(
                rep["failure_indices"][...], rep["failure_messages"].asstr()[...]
            )
        ]
        report = SweepReport(
            total_samples=int(rep.attrs["total_samples"]),
            completed_samples=int(rep.attrs["completed_samples"]),
            failures=failures,
            elapsed=float(rep.attrs["elapsed"]),
            cancelled=bool(rep.attrs["cancelled"]),
        )

        return SweepResult(
            params=params,
            path=bz_path,
            b1=axes["b1"][...],
            b2=axes["b2"][...],
            fill_fractions=axes["fill_fractions"][...],
            geometry_name=str(meta["geometry_name"]),
            omega=omega,
            min_bands=data["min_bands"][...],
            max_bands=data["max_bands"][...],
            num_gaps=data["num_gaps"][...],
            report=report,
        )


class BandStructureWriter:
    """
    按 (r, kz) 切片增量写入的 HDF5 写入器。

    Parameters
    ----------
    filename : str or Path
        输出文件（覆盖）。
    params : SweepParameters
        扫描参数。
    discretization : LatticeDiscretization
        与扫描使用的相同的晶格离散化结果。
    compression : str, optional
        omega 数据集的压缩算法。

    Examples
    --------
    >>> disc = build_lattice(params.lattice_kind).discretize(
    ...     params.brillouin_density, params.radii)
    >>> with BandStructureWriter("bands.h5", params, disc) as writer:
    ...     result = SweepDriver(params, slice_callback=writer.write_slice,
    ...                          keep_omega=False).run()
    ...     writer.write_report(result.report)
    """

    def __init__(
        self,
        filename: str | Path,
        params: SweepParameters,
        discretization: LatticeDiscretization,
        compression: str | None = "gzip",
    ) -> None:
        self.filename = Path(filename)
        self.filename.parent.mkdir(parents=True, exist_ok=True)
        self.params = params
        self.file = h5py.File(self.filename, "w")
        _write_header(
            self.file,
            params,
            discretization.path,
            discretization.b1,
            discretization.b2,
            discretization.fill_fractions,
            discretization.geometry_name,
            with_omega=True,
            compression=compression,
        )
        self.slices_written = 0

    def write_slice(
        self,
        r_index: int,
        kz_index: int,
        omega_slice: np.ndarray,
        bottoms: np.ndarray,
        tops: np.ndarray,
    ) -> None:
        """写入一个 (r, kz) 切片的频率与带隙。"""
        data = self.file["data"]
        data["omega"][r_index, kz_index] = omega_slice
        n = len(bottoms)
        if n:
            data["min_bands"][:n, kz_index, r_index] = bottoms
            data["max_bands"][:n, kz_index, r_index] = tops
        data["num_gaps"][kz_index, r_index] = n
        self.slices_written += 1

    def write_report(self, report: SweepReport) -> None:
        _write_report(self.file, report)

    def close(self) -> None:
        if self.file is not None:
            if "report" not in self.file:
                _write_report(self.file, SweepReport(total_samples=0))
            self.file.close()
            self.file = None
            logger.info(f"已写入 {self.slices_written} 个切片: {self.filename}")

    def __enter__(self) -> BandStructureWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

#!/usr/bin/env python3
"""
正方晶格空气孔光子晶体的能带与带隙示例

na=1（空气孔）、nb=1.6、r=0.35a，截断阶数 No1=2（N=25 个平面波），
在 kz = 0 与 kz = 0.5 两个面外波矢下计算 Γ→X→M→Γ 路径的能带，
打印带隙并对 kz 扫描做有效角估计。

运行::

    python examples/square_lattice_band_gaps.py
"""

import logging

import numpy as np

from photonicbandsim.core.parameters import RangeSpec, SweepParameters
from photonicbandsim.pwem import SweepDriver, estimate_effective_angles
from photonicbandsim.utils.logging_setup import setup_logging


def main() -> None:
    setup_logging(level=logging.INFO)
    params = SweepParameters.from_ranges(
        na=1.0,
        nb=1.6,
        radius=RangeSpec(0.35, 0.35, 1),
        kz=RangeSpec(0.0, 0.5, 2),
        lattice_kind="square",
        brillouin_density=10,
        order=2,
        max_workers=2,
    )
    result = SweepDriver(params).run()

    labels = " ".join(
        f"{lab}@{idx}" for lab, idx in zip(result.path.labels, result.path.key_points)
    )
    print(f"{result.geometry_name}, 路径点 {result.path.num_points} 个: {labels}")
    for kz_index, kz in enumerate(result.kzs):
        bottoms, tops = result.gaps(0, kz_index)
        print(f"kz = {kz:.3f}: 共 {bottoms.size} 个带隙")
        for lo, hi in zip(bottoms, tops):
            print(f"    [{lo:.4f}, {hi:.4f}]  宽度 {hi - lo:.4f}")

    est = estimate_effective_angles(
        result.min_bands[:, :, 0],
        result.max_bands[:, :, 0],
        result.kzs,
        float(result.fill_fractions[0]),
        params.na,
        params.nb,
    )
    print(f"n_rms = {est.n_rms:.4f}")
    print("第一个带隙下界的估计极角 θ_eff (deg):", np.round(est.theta_min[0], 2))


if __name__ == "__main__":
    main()

"""Effective Angle 场景流水线

读取 band_sweep 场景保存的 ``results.h5``，对指定半径估计带隙边界的有效传播角，
保存 ``effective_angles.csv`` 与 ``effective_angles.json``。

配置示例::

    scenario: effective_angle
    effective_angle:
      input: runs/square_demo_20250101_120000/results.h5
      radius_index: 0
      cladding_index: 1.5
"""

from __future__ import annotations

import csv
import json
import logging
import os

import numpy as np

from ...pwem.effective_angle import (
    DEFAULT_CLADDING_INDEX,
    EffectiveAngleEstimate,
    estimate_effective_angles,
)
from ...utils.storage import load_sweep_result


def _nan_to_none(values) -> list:
    return [None if not np.isfinite(v) else float(v) for v in np.ravel(values)]


def run_effective_angle_pipeline(cfg, outdir: str) -> EffectiveAngleEstimate:
    """
    运行有效角估计流水线。

    Parameters
    ----------
    cfg : ConfigManager
        CLI侧配置管理器。
    outdir : str
        输出目录。

    Returns
    -------
    EffectiveAngleEstimate
    """
    log = logging.getLogger(__name__)
    src = cfg.get("effective_angle.input", None)
    if not src:
        raise ValueError("未提供扫描结果文件，请设置 effective_angle.input")
    result = load_sweep_result(src)

    r_index = cfg.get_int("effective_angle.radius_index", 0)
    if not 0 <= r_index < result.radii.size:
        raise ValueError(f"radius_index={r_index} 超出范围 [0, {result.radii.size})")
    clad = cfg.get_float("effective_angle.cladding_index", DEFAULT_CLADDING_INDEX)

    est = estimate_effective_angles(
        result.min_bands[:, :, r_index],
        result.max_bands[:, :, r_index],
        result.kzs,
        float(result.fill_fractions[r_index]),
        result.params.na,
        result.params.nb,
        cladding_index=clad,
    )

    os.makedirs(outdir, exist_ok=True)
    csv_path = os.path.join(outdir, "effective_angles.csv")
    lo = result.min_bands[:, :, r_index]
    hi = result.max_bands[:, :, r_index]
    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(
            ["kz_index", "kz", "gap", "bound", "frequency", "alpha_deg", "theta_eff_deg", "regime"]
        )
        for kz_index, kz in enumerate(result.kzs):
            regime = "small_kz" if est.small_kz[kz_index] else "large_kz"
            n = int(result.num_gaps[kz_index, r_index])
            for g in range(n):
                for bound, freq, alpha in (
                    ("lower", lo[g, kz_index], est.alpha_min[g, kz_index]),
                    ("upper", hi[g, kz_index], est.alpha_max[g, kz_index]),
                ):
                    if not np.isfinite(alpha):
                        continue
                    writer.writerow(
                        [kz_index, f"{kz:.6g}", g, bound, f"{freq:.8g}",
                         f"{alpha:.6g}", f"{90.0 - alpha:.6g}", regime]
                    )

    json_path = os.path.join(outdir, "effective_angles.json")
    summary = {
        "input": str(src),
        "radius_index": r_index,
        "radius": float(result.radii[r_index]),
        "fill_fraction": float(result.fill_fractions[r_index]),
        "n_rms": est.n_rms,
        "division_index": est.division_index,
        "critical_angles_deg": {k: (None if not np.isfinite(v) else v) for k, v in est.critical.items()},
        "omega_l": _nan_to_none(est.omega_l),
        "cladding_angle_deg": _nan_to_none(est.cladding_angle),
    }
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(summary, f, ensure_ascii=False, indent=2)

    log.info(
        f"r = {result.radii[r_index]:.4f}: n_rms = {est.n_rms:.4f}, "
        f"近似分界 kz 索引 = {est.division_index}"
    )
    log.info(f"输出文件: {csv_path}, {json_path}")
    return est

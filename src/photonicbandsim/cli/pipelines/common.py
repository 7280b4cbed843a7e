"""CLI 场景通用工具

从 :class:`~photonicbandsim.core.config.ConfigManager` 解析扫描参数，
以及带隙表格/摘要等结果文件的写出，供各场景流水线复用。
"""

from __future__ import annotations

import csv
import json
import os

import numpy as np

from ...core.errors import InvalidConfigurationError
from ...core.lattice import LatticeKind
from ...core.parameters import (
    DEFAULT_BAND_GAP_TOLERANCE,
    MaterialIndices,
    RangeSpec,
    SweepParameters,
)
from ...pwem.sweep import SweepResult

# 三角晶格 Γ-M 方向的参考尺度 1/cos(30°)
KZ_SCALE_G = 1.0 / np.cos(np.deg2rad(30.0))

DEFAULTS = {
    "material": {"na": 1.0, "nb": 1.6},
    "lattice": {"type": "triangular", "brillouin_density": 20},
    "radius": {"min": 0.30, "max": 0.50, "num": 40},
    "kz": {"min": 0.0, "max": 6.0 * KZ_SCALE_G, "num": 200},
    "pwem": {
        "order": 4,
        "band_gap_tolerance": DEFAULT_BAND_GAP_TOLERANCE,
        "eigensolver": "eigh",
        "max_workers": 1,
    },
}


def _axis_values(cfg, key: str) -> np.ndarray:
    """读取 ``<key>.values`` 显式列表，或 ``<key>.min/max/num`` 区间。"""
    explicit = cfg.get(f"{key}.values", None)
    if explicit is not None:
        try:
            return np.atleast_1d(np.asarray(explicit, dtype=float))
        except (TypeError, ValueError) as exc:
            raise InvalidConfigurationError(f"{key}.values", "需为数值列表") from exc
    d = DEFAULTS[key]
    spec = RangeSpec(
        min=cfg.get_float(f"{key}.min", d["min"]),
        max=cfg.get_float(f"{key}.max", d["max"]),
        num=cfg.get_int(f"{key}.num", d["num"]),
    )
    spec.validate(key)
    return spec.values()


def build_sweep_parameters(cfg) -> SweepParameters:
    """
    由配置构建并校验扫描参数。

    Parameters
    ----------
    cfg : ConfigManager
        CLI侧配置管理器。

    Returns
    -------
    SweepParameters
    """
    params = SweepParameters(
        materials=MaterialIndices(
            na=cfg.get_float("material.na", DEFAULTS["material"]["na"]),
            nb=cfg.get_float("material.nb", DEFAULTS["material"]["nb"]),
        ),
        radii=_axis_values(cfg, "radius"),
        kzs=_axis_values(cfg, "kz"),
        lattice_kind=LatticeKind.parse(
            cfg.get("lattice.type", DEFAULTS["lattice"]["type"])
        ),
        brillouin_density=cfg.get_int(
            "lattice.brillouin_density", DEFAULTS["lattice"]["brillouin_density"]
        ),
        order=cfg.get_int("pwem.order", DEFAULTS["pwem"]["order"]),
        band_gap_tolerance=cfg.get_float(
            "pwem.band_gap_tolerance", DEFAULTS["pwem"]["band_gap_tolerance"]
        ),
        eigensolver=str(cfg.get("pwem.eigensolver", DEFAULTS["pwem"]["eigensolver"])),
        max_workers=cfg.get_int("pwem.max_workers", DEFAULTS["pwem"]["max_workers"]),
    )
    params.validate()
    return params


def write_band_gap_csv(result: SweepResult, path: str) -> str:
    """把全部 (r, kz) 的带隙展开成表格。返回文件路径。"""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["r_index", "r", "kz_index", "kz", "gap", "bottom", "top"])
        for r_index, r in enumerate(result.radii):
            for kz_index, kz in enumerate(result.kzs):
                bottoms, tops = result.gaps(r_index, kz_index)
                for g, (lo, hi) in enumerate(zip(bottoms, tops)):
                    writer.writerow(
                        [r_index, f"{r:.6g}", kz_index, f"{kz:.6g}", g, f"{lo:.8g}", f"{hi:.8g}"]
                    )
    return path


def write_summary_json(result: SweepResult, path: str) -> str:
    """写出参数、路径元数据与扫描报告。"""
    summary = {
        "geometry": result.geometry_name,
        "parameters": result.params.as_dict(),
        "brillouin_path": {
            "num_points": result.path.num_points,
            "key_points": list(result.path.key_points),
            "labels": list(result.path.labels),
        },
        "fill_fractions": [float(f) for f in result.fill_fractions],
        "num_gaps": result.num_gaps.tolist(),
        "report": result.report.as_dict(),
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(summary, f, ensure_ascii=False, indent=2)
    return path

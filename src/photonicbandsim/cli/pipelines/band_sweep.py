"""Band Sweep 场景流水线

从YAML配置读取材料、晶格与扫描区间，执行 (半径 × kz × 布里渊点) 的平面波展开
扫描，并保存：

- ``results.h5``：频率张量、带隙边界与路径元数据
- ``band_gaps.csv``：逐 (r, kz) 展开的带隙表
- ``summary.json``：参数、路径与扫描报告

配置示例（examples/modern_yaml/band_sweep.yaml）::

    scenario: band_sweep
    material: { na: 1.0, nb: 1.6 }
    lattice: { type: square, brillouin_density: 10 }
    radius: { min: 0.35, max: 0.35, num: 1 }
    kz: { min: 0.0, max: 0.0, num: 1 }
    pwem: { order: 2 }
    run: { name: square_demo }
"""

from __future__ import annotations

import logging
import os

from ...core.lattice import build_lattice
from ...pwem.sweep import SweepDriver, SweepResult
from ...utils.storage import BandStructureWriter, save_sweep_result
from .common import build_sweep_parameters, write_band_gap_csv, write_summary_json


def run_band_sweep_pipeline(cfg, outdir: str) -> SweepResult:
    """
    运行能带扫描流水线。

    Parameters
    ----------
    cfg : ConfigManager
        CLI侧配置管理器。
    outdir : str
        输出目录。

    Returns
    -------
    SweepResult
        扫描结果；``output.stream`` 为真时频率张量直接写入HDF5，
        结果对象中 ``omega`` 可能为 ``None``。
    """
    log = logging.getLogger(__name__)
    params = build_sweep_parameters(cfg)
    os.makedirs(outdir, exist_ok=True)
    h5_path = os.path.join(outdir, "results.h5")

    stream = bool(cfg.get("output.stream", False))
    keep_omega = bool(cfg.get("output.keep_omega", not stream))

    if stream:
        lattice = build_lattice(params.lattice_kind)
        disc = lattice.discretize(params.brillouin_density, params.radii)
        with BandStructureWriter(h5_path, params, disc) as writer:
            result = SweepDriver(
                params,
                lattice=lattice,
                slice_callback=writer.write_slice,
                keep_omega=keep_omega,
            ).run()
            writer.write_report(result.report)
    else:
        result = SweepDriver(params, keep_omega=keep_omega).run()
        save_sweep_result(result, h5_path)

    csv_path = write_band_gap_csv(result, os.path.join(outdir, "band_gaps.csv"))
    json_path = write_summary_json(result, os.path.join(outdir, "summary.json"))
    log.info(f"输出文件: {h5_path}, {csv_path}, {json_path}")
    if result.report.failures:
        log.warning(f"共有 {len(result.report.failures)} 个采样点求解失败，详见 summary.json")
    return result

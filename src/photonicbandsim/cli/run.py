#!/usr/bin/env python3
"""YAML 场景入口（CLI）

使用示例::

    python -m photonicbandsim.cli.run -c examples/modern_yaml/band_sweep.yaml

说明
----
- 本入口只负责 YAML 解析与场景调度；具体实现见 ``pipelines/*`` 模块。
"""

from __future__ import annotations

import argparse
import logging

from photonicbandsim.core.config import ConfigManager
from photonicbandsim.utils.logging_setup import setup_logging

from .pipelines.band_sweep import run_band_sweep_pipeline
from .pipelines.effective_angle import run_effective_angle_pipeline


def main(argv: list[str] | None = None) -> int:
    """解析 YAML 并调度对应场景。"""
    ap = argparse.ArgumentParser(description="PhotonicBandSim: YAML 驱动运行入口")
    ap.add_argument("-c", "--config", required=True, help="YAML配置文件路径")
    args = ap.parse_args(argv)

    cfg = ConfigManager(files=[args.config])

    scenario = str(cfg.get("scenario", "band_sweep")).lower()
    name = cfg.get("run.name", scenario)
    outdir = cfg.make_output_dir(name)
    setup_logging(outdir, level=cfg.get("logging.level", logging.INFO))
    cfg.snapshot(outdir, scenario=scenario)
    log = logging.getLogger(__name__)
    log.info(f"场景: {scenario} | 输出目录: {outdir}")

    if scenario in ("band_sweep", "sweep", "pwem"):
        run_band_sweep_pipeline(cfg, outdir)
    elif scenario in ("effective_angle", "alpha_eff"):
        run_effective_angle_pipeline(cfg, outdir)
    else:
        raise ValueError(f"未知场景类型 scenario: {scenario}")

    log.info(f"完成。输出目录: {outdir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""平面波展开（PWEM）计算模块

功能组件
--------
介电系数：
- :func:`~photonicbandsim.pwem.dielectric.dielectric_matrix`

k+G 分量与本征求解：
- :func:`~photonicbandsim.pwem.wavevector.wavevector_matrices`
- :func:`~photonicbandsim.pwem.eigensolver.solve_frequencies`

带隙与扫描：
- :func:`~photonicbandsim.pwem.bandgap.find_band_gaps`
- :class:`~photonicbandsim.pwem.sweep.SweepDriver`

后处理：
- :func:`~photonicbandsim.pwem.effective_angle.estimate_effective_angles`
"""

from .bandgap import band_extrema, find_band_gaps, gaps_from_extrema
from .dielectric import block_dielectric_matrix, dielectric_matrix
from .effective_angle import (
    EffectiveAngleEstimate,
    critical_angles,
    division_line,
    estimate_effective_angles,
    rms_index,
)
from .eigensolver import cross_product_operator, solve_frequencies
from .sweep import SampleFailure, SweepDriver, SweepReport, SweepResult, run_sweep
from .wavevector import WavevectorMatrices, wavevector_matrices

__all__ = [
    # 介电系数
    "dielectric_matrix",
    "block_dielectric_matrix",
    # k+G 与本征求解
    "WavevectorMatrices",
    "wavevector_matrices",
    "cross_product_operator",
    "solve_frequencies",
    # 带隙
    "band_extrema",
    "gaps_from_extrema",
    "find_band_gaps",
    # 扫描
    "SweepDriver",
    "SweepResult",
    "SweepReport",
    "SampleFailure",
    "run_sweep",
    # 后处理
    "EffectiveAngleEstimate",
    "estimate_effective_angles",
    "critical_angles",
    "division_line",
    "rms_index",
]

#!/usr/bin/env python3
r"""
有效传播角估计模块

把某一半径下的带隙边界 ``(minBands, maxBands)`` 与面外波矢 ``kz`` 转换为
估计的传播极角（Sondergaard 1998 的包层近似）。

记 :math:`n_{rms} = \sqrt{f n_a^2 + (1-f) n_b^2}`，
:math:`\omega_L(k_z)` 为第一个带隙的上界（``maxBands[0, kz]``）。

- 小 kz 区（:math:`k_z/\omega_L < n_{rms}`，或该比值无定义）：
  :math:`\alpha = \arcsin\left(k_z / (n_{rms}\,\omega)\right)`
- 大 kz 区：
  :math:`\alpha = \arcsin\left(\omega_L / \omega\right)`

估计极角 :math:`\theta_{eff} = 90° - \alpha`。反正弦参数超出 [-1, 1] 或
带隙槽位为空（0）时结果为 NaN。

所有频率单位为 :math:`a/\lambda_0`，kz 单位为 2π/a，角度单位为度。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)

# 常用包层材料折射率（PMMA）
DEFAULT_CLADDING_INDEX = 1.5


def rms_index(fill_fraction: float, na: float, nb: float) -> float:
    """面积加权的均方根折射率 :math:`n_{rms}`。"""
    return float(np.sqrt(fill_fraction * na**2 + (1.0 - fill_fraction) * nb**2))


def _arcsin_deg(x) -> np.ndarray:
    x = np.asarray(x, dtype=float)
    out = np.full(x.shape, np.nan)
    ok = np.isfinite(x) & (np.abs(x) <= 1.0)
    out[ok] = np.degrees(np.arcsin(x[ok]))
    return out


def critical_angles(
    na: float, nb: float, n_rms: float, cladding_index: float = DEFAULT_CLADDING_INDEX
) -> dict[str, float]:
    """
    渐近临界角（度）。

    Returns
    -------
    dict
        ``{"inclusion": asin(na/nb), "rms": asin(n_rms/nb),
        "cladding": asin(n_clad/nb)}``，比值大于 1 时为 NaN。
    """
    ratios = np.array([na / nb, n_rms / nb, cladding_index / nb])
    inc, rms, clad = _arcsin_deg(ratios)
    return {"inclusion": float(inc), "rms": float(rms), "cladding": float(clad)}


@dataclass(frozen=True)
class EffectiveAngleEstimate:
    """
    单个半径的有效角估计结果。

    Attributes
    ----------
    alpha_min, alpha_max : numpy.ndarray
        带隙下界/上界对应的 α（度），形状 ``(gap, kz)``。
    small_kz : numpy.ndarray
        每个 kz 是否处于小 kz 近似区。
    division_index : int or None
        第一个不满足小 kz 条件的 kz 索引。
    omega_l : numpy.ndarray
        第一个带隙上界 ω_L（缺失为 NaN）。
    cladding_angle : numpy.ndarray
        包层有效折射率对应的极角 ``90 - asin(n_eff/nb)``（度）。
    """

    n_rms: float
    kzs: np.ndarray
    omega_l: np.ndarray
    small_kz: np.ndarray
    division_index: int | None
    alpha_min: np.ndarray
    alpha_max: np.ndarray
    cladding_angle: np.ndarray
    critical: dict[str, float]

    @property
    def theta_min(self) -> np.ndarray:
        """带隙下界对应的估计传播极角 θ_eff（度）。"""
        return 90.0 - self.alpha_min

    @property
    def theta_max(self) -> np.ndarray:
        return 90.0 - self.alpha_max


def estimate_effective_angles(
    min_bands,
    max_bands,
    kzs,
    fill_fraction: float,
    na: float,
    nb: float,
    cladding_index: float = DEFAULT_CLADDING_INDEX,
) -> EffectiveAngleEstimate:
    """
    对某一半径估计所有带隙边界的有效传播角。

    Parameters
    ----------
    min_bands, max_bands : array_like
        带隙下界/上界，形状 ``(gap, kz)``（即 ``minBands[:, :, r]``），0 表示空槽位。
    kzs : array_like
        kz 序列。
    fill_fraction : float
        该半径的填充率。
    na, nb : float
        圆柱与背景折射率。
    cladding_index : float
        包层参考折射率，用于第三个临界角。

    Returns
    -------
    EffectiveAngleEstimate
    """
    lo = np.asarray(min_bands, dtype=float)
    hi = np.asarray(max_bands, dtype=float)
    kzs = np.asarray(kzs, dtype=float)
    if lo.shape != hi.shape or lo.ndim != 2 or lo.shape[1] != kzs.size:
        raise ValueError(
            f"带隙数组形状需为 (gap, {kzs.size}) 且一致，得到 {lo.shape} 与 {hi.shape}"
        )

    n_rms = rms_index(fill_fraction, na, nb)
    # 空槽位 (0) 记为缺失：第一个带隙缺失时 ω_L 为 NaN，归入小 kz 区，
    # 不按 kz/0 = inf 归入大 kz 区（那样会得到 α = 0）
    lo = np.where(lo > 0, lo, np.nan)
    hi = np.where(hi > 0, hi, np.nan)
    omega_l = hi[0] if hi.shape[0] else np.full(kzs.size, np.nan)

    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = kzs / omega_l
    small = np.isnan(ratio) | (ratio < n_rms)
    not_small = np.flatnonzero(~small)
    division_index = int(not_small[0]) if not_small.size else None

    def alpha(w: np.ndarray) -> np.ndarray:
        with np.errstate(divide="ignore", invalid="ignore"):
            arg_small = kzs[None, :] / (n_rms * w)
            arg_large = omega_l[None, :] / w
        return np.where(small[None, :], _arcsin_deg(arg_small), _arcsin_deg(arg_large))

    n_eff = np.where(small, n_rms, ratio)
    cladding_angle = 90.0 - _arcsin_deg(n_eff / nb)

    est = EffectiveAngleEstimate(
        n_rms=n_rms,
        kzs=kzs,
        omega_l=omega_l,
        small_kz=small,
        division_index=division_index,
        alpha_min=alpha(lo),
        alpha_max=alpha(hi),
        cladding_angle=cladding_angle,
        critical=critical_angles(na, nb, n_rms, cladding_index),
    )
    logger.debug(
        f"n_rms={n_rms:.4f}, 近似分界 kz 索引={division_index}, "
        f"有效估计点 {int(np.count_nonzero(np.isfinite(est.alpha_min)))}"
    )
    return est


def division_line(kz_division: float, n_rms: float, omegas) -> np.ndarray:
    """
    小/大 kz 近似分界线：在频率网格上给出 ``asin((kz_div/n_rms)/ω)``（度）。
    """
    w = np.asarray(omegas, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return _arcsin_deg((kz_division / n_rms) / w)

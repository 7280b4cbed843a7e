"""带隙提取

对一个 (r, kz) 切片的频率矩阵 ``omega[band, k]``，求每条能带在整条布里渊路径上的
最小值与最大值；若第 i 条带的最大值加容差仍小于第 i+1 条带的最小值，则两带之间
存在带隙，下界为 ``max_i``，上界为 ``min_{i+1}``。

每个采样点的频率已升序排列，能带的最大值随带序单调不减，因此提取出的带隙
互不重叠且按频率递增排列。能带真正简并或交叉处的容差判据只是近似。
"""

from __future__ import annotations

import numpy as np

from ..core.errors import BandGapInconsistencyError


def band_extrema(omega) -> tuple[np.ndarray, np.ndarray]:
    """
    每条能带沿布里渊路径的 (最小值, 最大值)。

    Parameters
    ----------
    omega : array_like
        形状 ``(num_bands, num_points)`` 的实数频率矩阵。

    Returns
    -------
    tuple of numpy.ndarray
        ``mins`` 与 ``maxs``，长度均为 ``num_bands``。
    """
    w = np.real(np.asarray(omega))
    if w.ndim != 2:
        raise BandGapInconsistencyError(f"频率矩阵应为二维 (band, k)，得到形状 {w.shape}")
    if w.shape[1] == 0:
        raise BandGapInconsistencyError("频率矩阵没有任何布里渊区采样点")
    return w.min(axis=1), w.max(axis=1)


def gaps_from_extrema(
    mins, maxs, tolerance: float = 0.01
) -> tuple[np.ndarray, np.ndarray]:
    """
    根据能带极值给出带隙上下界。

    Parameters
    ----------
    mins, maxs : array_like
        每条能带的最小值与最大值，长度必须一致。
    tolerance : float
        绝对频率容差。

    Returns
    -------
    tuple of numpy.ndarray
        ``(bottoms_of_gaps, tops_of_gaps)``，没有带隙时为空数组。
    """
    mins = np.asarray(mins, dtype=float)
    maxs = np.asarray(maxs, dtype=float)
    if mins.ndim != 1 or maxs.ndim != 1:
        raise BandGapInconsistencyError("能带极值必须为一维数组")
    if mins.shape != maxs.shape:
        raise BandGapInconsistencyError(
            f"最小值/最大值长度不一致: {mins.shape[0]} vs {maxs.shape[0]}"
        )

    bottoms = maxs[:-1]
    tops = mins[1:]
    gaps = bottoms + tolerance < tops
    return bottoms[gaps].copy(), tops[gaps].copy()


def find_band_gaps(omega, tolerance: float = 0.01) -> tuple[np.ndarray, np.ndarray]:
    """
    从频率矩阵提取全部带隙。

    Examples
    --------
    >>> w = np.array([[0.1, 0.2], [0.5, 0.6], [0.605, 0.7]])
    >>> find_band_gaps(w, 0.01)
    (array([0.2]), array([0.5]))
    """
    mins, maxs = band_extrema(omega)
    return gaps_from_extrema(mins, maxs, tolerance)

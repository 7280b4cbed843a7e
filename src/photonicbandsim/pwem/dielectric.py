#!/usr/bin/env python3
r"""
介电函数傅里叶系数模块

对圆形截面的圆柱（半径 ``r``，折射率 ``na``）嵌于背景（折射率 ``nb``）
中的二维光子晶体，解析计算介电函数 :math:`\varepsilon(\mathbf{r})` 在截断
倒格子上的傅里叶系数矩阵 :math:`\varepsilon(\mathbf{G}-\mathbf{G}')`。

对差矢量 :math:`\Delta\mathbf{G} = (l-n)\mathbf{b}_1 + (m-p)\mathbf{b}_2`，
记 :math:`x = 2\pi|\Delta\mathbf{G}|`：

.. math::

    \varepsilon(\Delta\mathbf{G}) =
    \begin{cases}
        f n_a^2 + (1-f) n_b^2, & \Delta\mathbf{G} = 0 \\
        2 f (n_a^2 - n_b^2) \dfrac{J_1(x r)}{x r}, & \text{otherwise}
    \end{cases}

平面波线性索引
--------------
多重指标 ``(l, m)``（0 起始，``l < N1``，``m < N2``）压缩为
``u = l * N2 + m``；行与列采用同一规则，与 :mod:`.wavevector` 一致。

系数只依赖差矢量的模，因此矩阵严格对称（逐位相等）。
"""

from __future__ import annotations

import numpy as np
from scipy.linalg import block_diag
from scipy.special import j1


def plane_wave_indices(n1: int, n2: int) -> tuple[np.ndarray, np.ndarray]:
    """
    返回按线性索引 ``u = l*N2 + m`` 排列的多重指标 ``(l, m)``。

    Returns
    -------
    tuple of numpy.ndarray
        长度为 ``N1*N2`` 的 ``l`` 与 ``m`` 整数数组。
    """
    l_idx = np.repeat(np.arange(n1), n2)
    m_idx = np.tile(np.arange(n2), n1)
    return l_idx, m_idx


def dielectric_matrix(
    r: float,
    na: float,
    nb: float,
    b1,
    b2,
    n1: int,
    n2: int,
    f: float,
) -> np.ndarray:
    """
    计算介电函数傅里叶系数矩阵 ``epsi``。

    Parameters
    ----------
    r : float
        归一化圆柱半径 r/a。
    na, nb : float
        圆柱与背景折射率。
    b1, b2 : array_like
        归一化倒格子基矢（单位 2π/a）。
    n1, n2 : int
        两个方向上的谐波数（奇数，``2*No+1``）。
    f : float
        填充率。

    Returns
    -------
    numpy.ndarray
        形状 ``(N, N)`` 的实对称矩阵，``N = n1*n2``。
    """
    b1 = np.asarray(b1, dtype=float)
    b2 = np.asarray(b2, dtype=float)
    l_idx, m_idx = plane_wave_indices(n1, n2)

    dl = l_idx[:, None] - l_idx[None, :]
    dm = m_idx[:, None] - m_idx[None, :]
    ggx = dl * b1[0] + dm * b2[0]
    ggy = dl * b1[1] + dm * b2[1]
    gg = np.sqrt(ggx**2 + ggy**2)

    zero = (dl == 0) & (dm == 0)
    x = 2.0 * np.pi * gg * r
    # 对角位置先填 1，避免 0/0
    x_safe = np.where(zero, 1.0, x)

    epsi = 2.0 * f * (na**2 - nb**2) * j1(x_safe) / x_safe
    epsi[zero] = f * na**2 + (1.0 - f) * nb**2
    return epsi


def block_dielectric_matrix(epsi: np.ndarray) -> np.ndarray:
    """三个场分量共用的块对角矩阵 ``blkdiag(epsi, epsi, epsi)``。"""
    return block_diag(epsi, epsi, epsi)


def max_asymmetry(epsi: np.ndarray) -> float:
    """``max|epsi - epsi^T|``，用于自检。"""
    return float(np.max(np.abs(epsi - epsi.T))) if epsi.size else 0.0

"""k+G 波矢分量

对给定的 Bloch 波矢 ``(kx, ky)`` 与面外分量 ``kz``，计算每个平面波的
``kx + Gx``、``ky + Gy`` 与 ``kz``。三个矩阵都是对角阵，这里只保存对角元；
需要矩阵形式时调用 :meth:`WavevectorMatrices.as_sparse`。

平面波排列与 :func:`photonicbandsim.pwem.dielectric.plane_wave_indices` 一致。
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp

from .dielectric import plane_wave_indices


@dataclass(frozen=True)
class WavevectorMatrices:
    """对角矩阵 kGx、kGy、kGz 的对角元（长度 N）。"""

    kgx: np.ndarray
    kgy: np.ndarray
    kgz: np.ndarray

    @property
    def size(self) -> int:
        return int(self.kgx.shape[0])

    def as_sparse(self) -> tuple[sp.dia_matrix, sp.dia_matrix, sp.dia_matrix]:
        return sp.diags(self.kgx), sp.diags(self.kgy), sp.diags(self.kgz)


def wavevector_matrices(
    kx: float, ky: float, kz: float, b1, b2, n1: int, n2: int
) -> WavevectorMatrices:
    """
    计算 k+G 分量。

    对角元为 ``kx + (l-No1)*b1_x + (m-No2)*b2_x``（y 分量同理），
    z 分量恒为 ``kz``，其中 ``No1 = (N1-1)/2``，``No2 = (N2-1)/2``。

    Parameters
    ----------
    kx, ky : float
        布里渊路径上的面内 Bloch 波矢（单位 2π/a）。
    kz : float
        面外波矢（单位 2π/a）。
    b1, b2 : array_like
        归一化倒格子基矢。
    n1, n2 : int
        两个方向上的谐波数。

    Returns
    -------
    WavevectorMatrices
    """
    b1 = np.asarray(b1, dtype=float)
    b2 = np.asarray(b2, dtype=float)
    no1 = (n1 - 1) // 2
    no2 = (n2 - 1) // 2
    l_idx, m_idx = plane_wave_indices(n1, n2)
    gl = l_idx - no1
    gm = m_idx - no2
    kgx = kx + gl * b1[0] + gm * b2[0]
    kgy = ky + gl * b1[1] + gm * b2[1]
    kgz = np.full(n1 * n2, float(kz))
    return WavevectorMatrices(kgx=kgx, kgy=kgy, kgz=kgz)

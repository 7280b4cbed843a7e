#!/usr/bin/env python3
r"""
全矢量平面波本征求解模块

由 k+G 分量构造叉乘算符

.. math::

    K_\times = \begin{pmatrix}
        0 & -k_z & k_y \\
        k_z & 0 & -k_x \\
        -k_y & k_x & 0
    \end{pmatrix}

（每个元素为 ``N×N`` 对角块），令 :math:`A = K_\times K_\times`，求解广义本征问题

.. math::

    A\,v = -\omega^2\,\varepsilon_{blk}\,v

其中 :math:`\varepsilon_{blk}` 为介电系数矩阵的三重块对角复制。

``A`` 奇异（纵场分量对应零本征值），因此必须使用稠密广义本征求解器，
不能用迭代法求最小本征值。

求解方式
--------
- ``"eigh"``：:math:`-A = K_\times^T K_\times` 对称半正定，
  :math:`\varepsilon_{blk}` 对称正定，使用 :func:`scipy.linalg.eigh`；
  圆柱重叠（r > 0.5）时截断介电矩阵可能不再正定，此时改用 QZ 分解；
- ``"eig"``：一般 QZ 分解 :func:`scipy.linalg.eigvals`，取 :math:`-D` 的实部。

两种方式都把负值截断为 0 后再开方，输出 ``3N`` 个升序非负频率
（单位 :math:`\omega a / 2\pi c`）。
"""

from __future__ import annotations

import logging

import numpy as np
from scipy import linalg

from ..core.errors import EigenSolveError
from .wavevector import WavevectorMatrices

logger = logging.getLogger(__name__)


def cross_product_operator(kg: WavevectorMatrices) -> np.ndarray:
    """构造 ``3N×3N`` 的块反对称叉乘算符 ``KCross``（稠密）。"""
    n = kg.size
    kx = np.diag(kg.kgx)
    ky = np.diag(kg.kgy)
    kz = np.diag(kg.kgz)
    zs = np.zeros((n, n))
    return np.block(
        [
            [zs, -kz, ky],
            [kz, zs, -kx],
            [-ky, kx, zs],
        ]
    )


def operator_matrix(kg: WavevectorMatrices) -> np.ndarray:
    """``A = KCross · KCross``。"""
    kcross = cross_product_operator(kg)
    return kcross @ kcross


def solve_frequencies(
    kg: WavevectorMatrices, eps_blk: np.ndarray, method: str = "eigh"
) -> np.ndarray:
    """
    求解单个采样点的本征频率。

    Parameters
    ----------
    kg : WavevectorMatrices
        当前 (kx, ky, kz) 的 k+G 分量。
    eps_blk : numpy.ndarray
        ``3N×3N`` 块对角介电矩阵。
    method : {"eigh", "eig"}
        求解方式。

    Returns
    -------
    numpy.ndarray
        长度 ``3N`` 的升序非负实数频率。

    Raises
    ------
    EigenSolveError
        输入含非有限值、LAPACK 不收敛、本征值个数不符或含非有限值。
    """
    a = operator_matrix(kg)
    n3 = a.shape[0]
    if eps_blk.shape != (n3, n3):
        raise EigenSolveError(
            f"介电块矩阵形状 {eps_blk.shape} 与算符 {a.shape} 不匹配"
        )
    if not np.all(np.isfinite(eps_blk)):
        raise EigenSolveError("介电块矩阵含非有限值")

    try:
        if method == "eigh":
            neg_a = -0.5 * (a + a.T)
            try:
                lam = linalg.eigh(neg_a, eps_blk, eigvals_only=True)
            except linalg.LinAlgError as exc:
                logger.debug(f"eigh 失败（介电矩阵非正定），改用 QZ 分解: {exc}")
                lam = np.real(-linalg.eigvals(a, eps_blk))
        elif method == "eig":
            lam = np.real(-linalg.eigvals(a, eps_blk))
        else:
            raise ValueError(f"未知求解方式: {method}")
    except linalg.LinAlgError as exc:
        raise EigenSolveError(f"广义本征问题求解失败: {exc}") from exc

    lam = np.asarray(lam, dtype=float)
    if lam.shape != (n3,):
        raise EigenSolveError(f"期望 {n3} 个本征值，得到 {lam.shape}")
    if not np.all(np.isfinite(lam)):
        bad = int(np.count_nonzero(~np.isfinite(lam)))
        raise EigenSolveError(f"{bad} 个本征值不是有限数")

    lam = np.sort(lam)
    return np.sqrt(np.clip(lam, 0.0, None))

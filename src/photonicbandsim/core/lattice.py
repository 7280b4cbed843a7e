#!/usr/bin/env python3
r"""
晶格几何与不可约布里渊区离散化模块

为二维光子晶体提供晶格原胞矢量、倒格子基矢、填充率以及不可约布里渊区
边界（周长）上的 Bloch 波矢采样路径。

支持的晶格类型：

- 正方晶格：路径 Γ→X→M→Γ，填充率 :math:`f = \pi r^2`
- 三角晶格：路径 Γ→M→K→Γ，填充率 :math:`f = (2\pi/\sqrt{3}) r^2`

约定
----
- 长度以晶格常数 ``a`` 归一化，半径 ``r`` 即 ``r/a``；
- 倒格子基矢以 ``2π/a`` 归一化，满足 :math:`b_i \cdot a_j = \delta_{ij}`。

基本使用：
    >>> geom = build_lattice("square")
    >>> path = geom.brillouin_path(10)
    >>> path.labels
    ('Γ', 'X', 'M', 'Γ')
    >>> path.key_points
    (0, 9, 18, 31)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .errors import GeometryDegenerateError, InvalidConfigurationError

GAMMA_LABEL = "Γ"


class LatticeKind(str, Enum):
    """晶格对称性类型。"""

    SQUARE = "square"
    TRIANGULAR = "triangular"

    @classmethod
    def parse(cls, value: LatticeKind | str) -> LatticeKind:
        """按字符串解析晶格类型（大小写不敏感，支持常见别名）。"""
        if isinstance(value, LatticeKind):
            return value
        key = str(value).strip().lower()
        aliases = {
            "square": cls.SQUARE,
            "sqr": cls.SQUARE,
            "triangular": cls.TRIANGULAR,
            "tri": cls.TRIANGULAR,
            "hexagonal": cls.TRIANGULAR,
        }
        if key not in aliases:
            raise InvalidConfigurationError("lattice.type", f"未知晶格类型 {value!r}")
        return aliases[key]


@dataclass(frozen=True)
class BrillouinPath:
    """
    不可约布里渊区边界上的有序采样路径。

    Attributes
    ----------
    kx, ky : numpy.ndarray
        Bloch 波矢分量（单位 2π/a），长度为 ``num_points``。
    key_points : tuple[int, ...]
        高对称点在路径中的索引（0 起始），首尾均为 Γ。
    labels : tuple[str, ...]
        高对称点标签，与 ``key_points`` 一一对应。
    """

    kx: np.ndarray
    ky: np.ndarray
    key_points: tuple[int, ...]
    labels: tuple[str, ...]

    @property
    def num_points(self) -> int:
        return int(self.kx.shape[0])

    @property
    def points(self) -> np.ndarray:
        """形状 ``(num_points, 2)`` 的波矢数组。"""
        return np.column_stack([self.kx, self.ky])

    def __iter__(self):
        return iter(zip(self.kx.tolist(), self.ky.tolist()))


@dataclass(frozen=True)
class LatticeDiscretization:
    """
    一次晶格离散化的全部输出。

    Attributes
    ----------
    path : BrillouinPath
        布里渊区路径。
    b1, b2 : numpy.ndarray
        归一化倒格子基矢。
    fill_fractions : numpy.ndarray
        与输入半径一一对应的填充率。
    geometry_name : str
        几何名称，如 ``"Square Lattice"``。
    """

    path: BrillouinPath
    b1: np.ndarray
    b2: np.ndarray
    fill_fractions: np.ndarray
    geometry_name: str


def _round_half_up(x: float) -> int:
    return int(np.floor(x + 0.5))


class Lattice(ABC):
    """
    二维 Bravais 晶格的几何描述（抽象基类）。

    子类只需给出实空间原胞矢量与高对称点序列，倒格子基矢、
    填充率与布里渊路径均由基类统一计算。
    """

    kind: LatticeKind
    name: str

    def __init__(self) -> None:
        a1, a2 = self.primitive_vectors()
        real = np.array([a1, a2], dtype=float)
        # 行向量 b_i 满足 b_i·a_j = δ_ij
        recip = np.linalg.inv(real).T
        self._a1, self._a2 = real[0], real[1]
        self._b1, self._b2 = recip[0].copy(), recip[1].copy()
        self._cell_area = float(abs(np.linalg.det(real)))

    # ---------------------------- 子类接口 ----------------------------
    @abstractmethod
    def primitive_vectors(self) -> tuple[np.ndarray, np.ndarray]:
        """实空间原胞矢量 (a1, a2)，以晶格常数归一化。"""

    @abstractmethod
    def symmetry_points(self) -> list[tuple[str, np.ndarray]]:
        """路径经过的高对称点（含首尾 Γ）。"""

    # ---------------------------- 公共接口 ----------------------------
    @property
    def reciprocal_vectors(self) -> tuple[np.ndarray, np.ndarray]:
        return self._b1.copy(), self._b2.copy()

    @property
    def cell_area(self) -> float:
        return self._cell_area

    def fill_fraction(self, radius) -> np.ndarray:
        """
        圆柱截面积与原胞面积之比。

        Parameters
        ----------
        radius : float or array_like
            归一化半径 r/a。

        Returns
        -------
        numpy.ndarray
            填充率 :math:`\\pi r^2 / A_{cell}`。
        """
        r = np.asarray(radius, dtype=float)
        return np.pi * r**2 / self._cell_area

    def max_fill_radius(self) -> float:
        """填充率达到 1 时的半径。"""
        return float(np.sqrt(self._cell_area / np.pi))

    def brillouin_path(self, density: int) -> BrillouinPath:
        """
        生成不可约布里渊区边界路径。

        第一条边取 ``density`` 个点，其余各边的点数按边长比例缩放
        （四舍五入）；每条边线性插值后拼接，并去除相邻两边在高对称点处
        重复的采样点。

        Parameters
        ----------
        density : int
            第一条边上的采样点数 ``Nr``。

        Returns
        -------
        BrillouinPath

        Raises
        ------
        InvalidConfigurationError
            ``density`` 不是正整数。
        GeometryDegenerateError
            存在零长度边，或某条边采样点少于 2 个。
        """
        if int(density) != density or density <= 0:
            raise InvalidConfigurationError(
                "lattice.brillouin_density", f"需为正整数，得到 {density!r}"
            )
        density = int(density)

        sym = self.symmetry_points()
        labels = tuple(label for label, _ in sym)
        pts = [np.asarray(p, dtype=float) for _, p in sym]

        lengths = [float(np.linalg.norm(q - p)) for p, q in zip(pts[:-1], pts[1:])]
        for i, length in enumerate(lengths):
            if length == 0.0:
                raise GeometryDegenerateError(
                    f"{self.name}: 线段 {labels[i]}→{labels[i + 1]} 长度为零"
                )

        counts = [density] + [
            _round_half_up(density * length / lengths[0]) for length in lengths[1:]
        ]
        for i, n in enumerate(counts):
            if n < 2:
                raise GeometryDegenerateError(
                    f"{self.name}: 线段 {labels[i]}→{labels[i + 1]} 仅有 {n} 个采样点，"
                    f"请增大 brillouin_density（当前 {density}）"
                )

        segments = []
        for i, (p, q, n) in enumerate(zip(pts[:-1], pts[1:], counts)):
            seg = np.linspace(p, q, n)
            # 去掉与上一段末点重复的高对称点
            segments.append(seg if i == 0 else seg[1:])
        beta = np.concatenate(segments, axis=0)

        key_points = [0]
        for n in counts:
            key_points.append(key_points[-1] + n - 1)

        return BrillouinPath(
            kx=beta[:, 0].copy(),
            ky=beta[:, 1].copy(),
            key_points=tuple(key_points),
            labels=labels,
        )

    def discretize(self, density: int, radii) -> LatticeDiscretization:
        """一次性给出路径、倒格子基矢、填充率与几何名称。"""
        path = self.brillouin_path(density)
        b1, b2 = self.reciprocal_vectors
        return LatticeDiscretization(
            path=path,
            b1=b1,
            b2=b2,
            fill_fractions=np.atleast_1d(self.fill_fraction(radii)),
            geometry_name=self.name,
        )


class SquareLattice(Lattice):
    """正方晶格，路径 Γ→X→M→Γ。"""

    kind = LatticeKind.SQUARE
    name = "Square Lattice"

    def primitive_vectors(self):
        return np.array([1.0, 0.0]), np.array([0.0, 1.0])

    def symmetry_points(self):
        b1, b2 = self._b1, self._b2
        gamma = np.zeros(2)
        x = 0.5 * b1
        m = 0.5 * b1 + 0.5 * b2
        return [(GAMMA_LABEL, gamma), ("X", x), ("M", m), (GAMMA_LABEL, gamma)]


class TriangularLattice(Lattice):
    """三角晶格，路径 Γ→M→K→Γ。"""

    kind = LatticeKind.TRIANGULAR
    name = "Triangular Lattice"

    def primitive_vectors(self):
        s = np.sqrt(3.0) / 2.0
        return np.array([s, -0.5]), np.array([s, 0.5])

    def symmetry_points(self):
        gamma = np.zeros(2)
        m = np.array([-0.5 / np.sqrt(3.0), 0.5])
        k = np.array([0.0, 2.0 / 3.0])
        return [(GAMMA_LABEL, gamma), ("M", m), ("K", k), (GAMMA_LABEL, gamma)]


_LATTICES: dict[LatticeKind, type[Lattice]] = {
    LatticeKind.SQUARE: SquareLattice,
    LatticeKind.TRIANGULAR: TriangularLattice,
}


def build_lattice(kind: LatticeKind | str) -> Lattice:
    """按类型创建晶格几何实例。"""
    return _LATTICES[LatticeKind.parse(kind)]()

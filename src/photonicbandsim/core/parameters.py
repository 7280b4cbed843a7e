"""扫描参数与校验

把 YAML 或调用方提供的原始数值整理为不可变的参数对象，并在扫描开始前
一次性完成全部校验（快速失败）。错误信息中会给出出错的参数名。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .errors import InvalidConfigurationError
from .lattice import LatticeKind, build_lattice

logger = logging.getLogger(__name__)

EIGENSOLVER_METHODS = ("eigh", "eig")
DEFAULT_BAND_GAP_TOLERANCE = 0.01
# 相邻圆柱在 r = a/2 处相切
MAX_NON_OVERLAPPING_RADIUS = 0.5


@dataclass(frozen=True)
class RangeSpec:
    """等间距闭区间 ``linspace(min, max, num)``。"""

    min: float
    max: float
    num: int

    def validate(self, name: str = "range") -> None:
        if int(self.num) != self.num or self.num < 1:
            raise InvalidConfigurationError(f"{name}.num", f"需为正整数，得到 {self.num!r}")
        if not (np.isfinite(self.min) and np.isfinite(self.max)):
            raise InvalidConfigurationError(name, "区间端点必须为有限数")
        if self.num > 1 and self.min >= self.max:
            raise InvalidConfigurationError(
                name, f"要求 min < max，得到 min={self.min}, max={self.max}"
            )
        if self.num == 1 and self.max < self.min:
            raise InvalidConfigurationError(name, "要求 max >= min")

    def values(self) -> np.ndarray:
        if self.num == 1:
            return np.array([float(self.min)])
        return np.linspace(float(self.min), float(self.max), int(self.num))


@dataclass(frozen=True)
class MaterialIndices:
    """
    材料折射率。

    Attributes
    ----------
    na : float
        圆柱（孔）折射率。
    nb : float
        背景介质折射率。
    """

    na: float
    nb: float

    def validate(self) -> None:
        for name, value in (("material.na", self.na), ("material.nb", self.nb)):
            if not np.isfinite(value) or value <= 0:
                raise InvalidConfigurationError(name, f"折射率需为正数，得到 {value!r}")

    def average_permittivity(self, fill_fraction):
        """面积加权平均介电常数 :math:`f n_a^2 + (1-f) n_b^2`。"""
        f = np.asarray(fill_fraction, dtype=float)
        return f * self.na**2 + (1.0 - f) * self.nb**2


@dataclass(frozen=True, eq=False)
class SweepParameters:
    """
    一次 (半径 × kz × 布里渊点) 扫描的完整输入。

    Parameters
    ----------
    materials : MaterialIndices
        折射率 ``na``（圆柱）与 ``nb``（背景）。
    radii : numpy.ndarray
        归一化半径序列。
    kzs : numpy.ndarray
        面外波矢序列（单位 2π/a）。
    lattice_kind : LatticeKind
        晶格类型。
    brillouin_density : int
        布里渊路径第一条边的采样点数 ``Nr``。
    order : int
        空间谐波截断阶数 ``No1``，``N1 = N2 = 2*No1 + 1``。
    band_gap_tolerance : float
        带隙判定的绝对频率容差。
    eigensolver : str
        ``"eigh"``（对称正定广义问题）或 ``"eig"``（一般 QZ 分解）。
    max_workers : int
        并行求解的线程数，1 表示串行。
    """

    materials: MaterialIndices
    radii: np.ndarray
    kzs: np.ndarray
    lattice_kind: LatticeKind = LatticeKind.SQUARE
    brillouin_density: int = 20
    order: int = 4
    band_gap_tolerance: float = DEFAULT_BAND_GAP_TOLERANCE
    eigensolver: str = "eigh"
    max_workers: int = 1

    @classmethod
    def from_ranges(
        cls,
        na: float,
        nb: float,
        radius: RangeSpec,
        kz: RangeSpec,
        **kwargs,
    ) -> SweepParameters:
        """由区间描述构建参数并立即校验。"""
        radius.validate("radius")
        kz.validate("kz")
        params = cls(
            materials=MaterialIndices(float(na), float(nb)),
            radii=radius.values(),
            kzs=kz.values(),
            **kwargs,
        )
        params.validate()
        return params

    # ---------------------------- 派生量 ----------------------------
    @property
    def na(self) -> float:
        return self.materials.na

    @property
    def nb(self) -> float:
        return self.materials.nb

    @property
    def n1(self) -> int:
        return 2 * int(self.order) + 1

    @property
    def n2(self) -> int:
        return self.n1

    @property
    def num_plane_waves(self) -> int:
        return self.n1 * self.n2

    @property
    def num_bands(self) -> int:
        return 3 * self.num_plane_waves

    # ---------------------------- 校验 ----------------------------
    def validate(self) -> None:
        """
        校验全部参数，出错时抛出 :class:`InvalidConfigurationError`。

        半径超过 0.5（相邻圆柱重叠）只记录警告；填充率 >= 1 视为非法。
        """
        self.materials.validate()
        kind = LatticeKind.parse(self.lattice_kind)
        if kind is not self.lattice_kind:
            object.__setattr__(self, "lattice_kind", kind)

        radii = np.atleast_1d(np.asarray(self.radii, dtype=float))
        kzs = np.atleast_1d(np.asarray(self.kzs, dtype=float))
        object.__setattr__(self, "radii", radii)
        object.__setattr__(self, "kzs", kzs)

        if radii.ndim != 1 or radii.size == 0:
            raise InvalidConfigurationError("radius", "半径序列不能为空")
        if kzs.ndim != 1 or kzs.size == 0:
            raise InvalidConfigurationError("kz", "kz 序列不能为空")
        if not np.all(np.isfinite(radii)) or np.any(radii <= 0):
            raise InvalidConfigurationError("radius", "半径必须为正的有限数")
        if not np.all(np.isfinite(kzs)):
            raise InvalidConfigurationError("kz", "kz 必须为有限数")

        lattice = build_lattice(kind)
        fill = lattice.fill_fraction(radii)
        if np.any(fill >= 1.0):
            raise InvalidConfigurationError(
                "radius",
                f"{lattice.name} 填充率需 < 1（半径上限约 {lattice.max_fill_radius():.4f}），"
                f"最大半径 {radii.max():.4f} 对应 f={fill.max():.4f}",
            )
        if np.any(radii > MAX_NON_OVERLAPPING_RADIUS):
            logger.warning(
                "半径 %.4f 超过 %.1f，相邻圆柱将重叠，解析傅里叶系数不再精确（介电矩阵非正定时改用 QZ 求解）。",
                float(radii.max()),
                MAX_NON_OVERLAPPING_RADIUS,
            )

        if int(self.brillouin_density) != self.brillouin_density or self.brillouin_density <= 0:
            raise InvalidConfigurationError(
                "lattice.brillouin_density", f"需为正整数，得到 {self.brillouin_density!r}"
            )
        if int(self.order) != self.order or self.order < 0:
            raise InvalidConfigurationError(
                "pwem.order", f"截断阶数需为非负整数，得到 {self.order!r}"
            )
        if self.num_plane_waves <= 0:
            raise InvalidConfigurationError("pwem.order", "平面波数 N1*N2 为零")
        if not np.isfinite(self.band_gap_tolerance) or self.band_gap_tolerance < 0:
            raise InvalidConfigurationError(
                "pwem.band_gap_tolerance", f"需为非负数，得到 {self.band_gap_tolerance!r}"
            )
        if self.eigensolver not in EIGENSOLVER_METHODS:
            raise InvalidConfigurationError(
                "pwem.eigensolver", f"可选 {EIGENSOLVER_METHODS}，得到 {self.eigensolver!r}"
            )
        if int(self.max_workers) != self.max_workers or self.max_workers < 1:
            raise InvalidConfigurationError(
                "pwem.max_workers", f"需为 >= 1 的整数，得到 {self.max_workers!r}"
            )

    def as_dict(self) -> dict:
        """可序列化的参数字典（用于快照与 HDF5 元数据）。"""
        return {
            "na": float(self.na),
            "nb": float(self.nb),
            "radii": [float(r) for r in self.radii],
            "kzs": [float(k) for k in self.kzs],
            "lattice": LatticeKind.parse(self.lattice_kind).value,
            "brillouin_density": int(self.brillouin_density),
            "order": int(self.order),
            "band_gap_tolerance": float(self.band_gap_tolerance),
            "eigensolver": self.eigensolver,
            "max_workers": int(self.max_workers),
        }

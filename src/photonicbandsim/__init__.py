"""
PhotonicBandSim - 二维光子晶体能带模拟器

基于平面波展开法（PWEM）计算二维光子晶体（介质背景中的无限长圆柱）
在面外波矢 kz 与孔半径扫描下的能带结构、带隙边界与有效传播角估计。
"""

__version__ = "1.0.0"

from . import core, pwem, utils

__all__ = ["core", "pwem", "utils"]

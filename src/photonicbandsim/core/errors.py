"""异常定义

计算流程中的错误分为四类：

- 配置错误：扫描开始前检测，立即终止；
- 几何退化：晶格/布里渊路径构建失败，立即终止；
- 本征求解失败：单个采样点失败，由扫描驱动局部恢复（NaN 标记）；
- 带隙数据不一致：极值数组形状错误，属于上游输出契约缺陷，立即终止。
"""

from __future__ import annotations


class PhotonicBandError(Exception):
    """本项目所有异常的基类。"""


class InvalidConfigurationError(PhotonicBandError, ValueError):
    """配置参数非法。

    Parameters
    ----------
    parameter : str
        出错的参数名。
    message : str
        错误描述。
    """

    def __init__(self, parameter: str, message: str) -> None:
        self.parameter = parameter
        super().__init__(f"参数 {parameter} 非法: {message}")


class GeometryDegenerateError(PhotonicBandError, ValueError):
    """布里渊区路径退化（零长度线段或采样点不足）。"""


class EigenSolveError(PhotonicBandError, RuntimeError):
    """单个 (r, kz, k) 采样点的广义本征问题求解失败。"""


class BandGapInconsistencyError(PhotonicBandError, ValueError):
    """能带极值数组格式错误。"""

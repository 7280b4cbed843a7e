"""
核心模块 - 配置管理、参数校验、晶格几何与异常定义
"""

__all__ = [
    "ConfigManager",
    "RangeSpec",
    "SweepParameters",
    "LatticeKind",
    "Lattice",
    "BrillouinPath",
    "build_lattice",
]


# 延迟导入避免循环依赖
def __getattr__(name):
    if name == "ConfigManager":
        from .config import ConfigManager
        return ConfigManager
    elif name in ("RangeSpec", "SweepParameters"):
        from . import parameters
        return getattr(parameters, name)
    elif name in ("LatticeKind", "Lattice", "BrillouinPath", "build_lattice"):
        from . import lattice
        return getattr(lattice, name)
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

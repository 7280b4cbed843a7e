"""
工具模块 - 日志配置与 HDF5 结果存储
"""

__all__ = [
    "setup_logging",
    "save_sweep_result",
    "load_sweep_result",
    "BandStructureWriter",
]


# 延迟导入避免在未使用存储时加载 h5py
def __getattr__(name):
    if name == "setup_logging":
        from .logging_setup import setup_logging
        return setup_logging
    elif name in ("save_sweep_result", "load_sweep_result", "BandStructureWriter"):
        from . import storage
        return getattr(storage, name)
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

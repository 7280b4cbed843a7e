"""
pytest配置文件 - 提供全局fixtures和测试配置
"""

import numpy as np
import pytest

from photonicbandsim.core.lattice import build_lattice
from photonicbandsim.core.parameters import RangeSpec, SweepParameters


@pytest.fixture
def square_lattice():
    """正方晶格几何"""
    return build_lattice("square")


@pytest.fixture
def triangular_lattice():
    """三角晶格几何"""
    return build_lattice("triangular")


@pytest.fixture
def small_params():
    """小规模扫描参数：N=9 个平面波、12 个路径点，运行很快"""
    return SweepParameters.from_ranges(
        na=1.0,
        nb=1.6,
        radius=RangeSpec(0.30, 0.40, 2),
        kz=RangeSpec(0.0, 0.5, 2),
        lattice_kind="square",
        brillouin_density=4,
        order=1,
    )


@pytest.fixture
def reference_params():
    """端到端场景：正方晶格 r=0.35, No1=2 (N=25), Nr=10, kz=0"""
    return SweepParameters.from_ranges(
        na=1.0,
        nb=1.6,
        radius=RangeSpec(0.35, 0.35, 1),
        kz=RangeSpec(0.0, 0.0, 1),
        lattice_kind="square",
        brillouin_density=10,
        order=2,
    )


# 全局测试配置
def pytest_configure(config):
    """注册自定义标记"""
    config.addinivalue_line("markers", "unit: 单元测试")
    config.addinivalue_line("markers", "physics: 物理正确性测试")
    config.addinivalue_line("markers", "slow: 耗时较长的测试")


def pytest_runtest_setup(item):
    """每个测试前的设置"""
    np.random.seed(42)

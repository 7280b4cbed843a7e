#!/usr/bin/env python3
"""介电函数傅里叶系数矩阵测试"""

import numpy as np
import pytest
from scipy.special import j1

from photonicbandsim.pwem.dielectric import (
    block_dielectric_matrix,
    dielectric_matrix,
    max_asymmetry,
    plane_wave_indices,
)


@pytest.fixture
def square_epsi(square_lattice):
    b1, b2 = square_lattice.reciprocal_vectors
    r = 0.35
    f = float(square_lattice.fill_fraction(r))
    return dielectric_matrix(r, 1.0, 1.6, b1, b2, 5, 5, f), f


@pytest.mark.unit
class TestPlaneWaveIndices:
    def test_linear_order(self):
        """u = l*N2 + m"""
        l_idx, m_idx = plane_wave_indices(3, 4)
        assert l_idx.size == 12
        u = l_idx * 4 + m_idx
        assert np.array_equal(u, np.arange(12))


@pytest.mark.unit
class TestDielectricMatrix:
    """ε(G-G') 矩阵"""

    def test_shape(self, square_epsi):
        epsi, _ = square_epsi
        assert epsi.shape == (25, 25)

    def test_exact_symmetry(self, square_epsi):
        """矩阵逐位对称"""
        epsi, _ = square_epsi
        assert np.array_equal(epsi, epsi.T)
        assert max_asymmetry(epsi) == 0.0

    def test_diagonal_is_average_permittivity(self, square_epsi):
        epsi, f = square_epsi
        expected = f * 1.0**2 + (1 - f) * 1.6**2
        assert np.allclose(np.diag(epsi), expected, rtol=0, atol=1e-14)

    def test_off_diagonal_formula(self, square_lattice):
        """(l,m)=(0,0) 与 (1,0) 之间 |ΔG| = |b1| = 1"""
        b1, b2 = square_lattice.reciprocal_vectors
        r, na, nb = 0.3, 1.0, 1.6
        f = float(square_lattice.fill_fraction(r))
        epsi = dielectric_matrix(r, na, nb, b1, b2, 3, 3, f)
        x = 2 * np.pi * 1.0 * r
        expected = 2 * f * (na**2 - nb**2) * j1(x) / x
        # u(0,0)=0, u(1,0)=3
        assert epsi[0, 3] == pytest.approx(expected, rel=1e-12)
        assert epsi[3, 0] == pytest.approx(expected, rel=1e-12)

    def test_depends_only_on_difference(self, triangular_lattice):
        """ε 只依赖 ΔG：(0,0)-(1,1) 与 (1,1)-(2,2) 相同"""
        b1, b2 = triangular_lattice.reciprocal_vectors
        f = float(triangular_lattice.fill_fraction(0.4))
        epsi = dielectric_matrix(0.4, 1.0, 1.45, b1, b2, 3, 3, f)
        assert epsi[0, 4] == epsi[4, 8]

    def test_idempotent(self, square_lattice):
        """同样输入重复计算结果逐位一致"""
        b1, b2 = square_lattice.reciprocal_vectors
        a = dielectric_matrix(0.35, 1.0, 1.6, b1, b2, 5, 5, 0.38)
        b = dielectric_matrix(0.35, 1.0, 1.6, b1, b2, 5, 5, 0.38)
        assert np.array_equal(a, b)

    def test_homogeneous_medium_is_diagonal(self, square_lattice):
        """na = nb 时所有非对角系数为零"""
        b1, b2 = square_lattice.reciprocal_vectors
        epsi = dielectric_matrix(0.3, 1.5, 1.5, b1, b2, 5, 5, 0.28)
        off = epsi - np.diag(np.diag(epsi))
        assert not np.any(off)
        assert np.allclose(np.diag(epsi), 2.25)

    @pytest.mark.physics
    def test_positive_definite(self, square_epsi):
        """截断矩阵的本征值落在 [na², nb²] 内"""
        epsi, _ = square_epsi
        eig = np.linalg.eigvalsh(epsi)
        assert eig.min() > 1.0 - 1e-9
        assert eig.max() < 1.6**2 + 1e-9

    def test_block_diagonal(self, square_epsi):
        epsi, _ = square_epsi
        blk = block_dielectric_matrix(epsi)
        assert blk.shape == (75, 75)
        assert np.array_equal(blk[25:50, 25:50], epsi)
        assert not np.any(blk[:25, 25:])

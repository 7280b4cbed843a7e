#!/usr/bin/env python3
"""全矢量广义本征求解测试"""

import numpy as np
import pytest

from photonicbandsim.core.errors import EigenSolveError
from photonicbandsim.pwem.dielectric import block_dielectric_matrix, dielectric_matrix
from photonicbandsim.pwem.eigensolver import (
    cross_product_operator,
    operator_matrix,
    solve_frequencies,
)
from photonicbandsim.pwem.wavevector import wavevector_matrices


@pytest.fixture
def square_problem(square_lattice):
    """正方晶格 r=0.35, na=1, nb=1.6, No1=2 的介电块矩阵"""
    b1, b2 = square_lattice.reciprocal_vectors
    r = 0.35
    f = float(square_lattice.fill_fraction(r))
    epsi = dielectric_matrix(r, 1.0, 1.6, b1, b2, 5, 5, f)
    return b1, b2, block_dielectric_matrix(epsi)


@pytest.mark.unit
class TestOperator:
    def test_cross_product_antisymmetric(self, square_lattice):
        b1, b2 = square_lattice.reciprocal_vectors
        kg = wavevector_matrices(0.2, 0.1, 0.4, b1, b2, 3, 3)
        kc = cross_product_operator(kg)
        assert kc.shape == (27, 27)
        assert np.array_equal(kc, -kc.T)

    def test_operator_negative_semidefinite(self, square_lattice):
        b1, b2 = square_lattice.reciprocal_vectors
        kg = wavevector_matrices(0.2, 0.1, 0.4, b1, b2, 3, 3)
        a = operator_matrix(kg)
        lam = np.linalg.eigvalsh(0.5 * (a + a.T))
        assert lam.max() < 1e-10

    def test_cross_product_action(self, square_lattice):
        """KCross 对单个平面波的作用等于 (k+G) × h"""
        b1, b2 = square_lattice.reciprocal_vectors
        kg = wavevector_matrices(0.2, 0.1, 0.4, b1, b2, 1, 1)
        kc = cross_product_operator(kg)
        h = np.array([0.3, -1.0, 2.0])
        k = np.array([kg.kgx[0], kg.kgy[0], kg.kgz[0]])
        assert np.allclose(kc @ h, np.cross(k, h))


@pytest.mark.physics
class TestSolveFrequencies:
    """本征频率"""

    def test_count_sorted_nonnegative(self, square_problem):
        b1, b2, eps_blk = square_problem
        kg = wavevector_matrices(0.25, 0.1, 0.0, b1, b2, 5, 5)
        w = solve_frequencies(kg, eps_blk)
        assert w.shape == (75,)
        assert np.all(np.isfinite(w))
        assert np.all(w >= 0)
        assert np.all(np.diff(w) >= 0)

    def test_homogeneous_medium_analytic(self, square_lattice):
        """均匀介质：N 个纵向零模 + 每个 |k+G|/n 二重简并"""
        b1, b2 = square_lattice.reciprocal_vectors
        n = 1.5
        epsi = dielectric_matrix(0.3, n, n, b1, b2, 3, 3, 0.28)
        kg = wavevector_matrices(0.3, 0.2, 0.4, b1, b2, 3, 3)
        w = solve_frequencies(kg, block_dielectric_matrix(epsi))

        d = np.sqrt(kg.kgx**2 + kg.kgy**2 + kg.kgz**2) / n
        expected = np.sort(np.concatenate([np.zeros(9), d, d]))
        assert np.allclose(w, expected, atol=1e-6)

    def test_gamma_point_zero_modes(self, square_problem):
        """Γ 点且 kz=0：N 个纵向零模外再加 2 个物理零频模"""
        b1, b2, eps_blk = square_problem
        kg = wavevector_matrices(0.0, 0.0, 0.0, b1, b2, 5, 5)
        w = solve_frequencies(kg, eps_blk)
        assert np.all(w[:27] < 1e-5)
        assert w[27] > 0.1

    def test_out_of_plane_gap_bounds(self, square_problem):
        """kz>0：首个物理频率位于 [kz/nb, |k+G|min/na] 之间"""
        b1, b2, eps_blk = square_problem
        kz = 0.5
        kg = wavevector_matrices(0.0, 0.0, kz, b1, b2, 5, 5)
        w = solve_frequencies(kg, eps_blk)
        assert np.all(w[:25] < 1e-5)
        assert kz / 1.6 - 1e-9 <= w[25] <= kz / 1.0 + 1e-9

    def test_eig_matches_eigh(self, square_problem):
        """一般 QZ 分解与对称求解一致"""
        b1, b2, eps_blk = square_problem
        kg = wavevector_matrices(0.3, 0.15, 0.6, b1, b2, 5, 5)
        w_eigh = solve_frequencies(kg, eps_blk, method="eigh")
        w_eig = solve_frequencies(kg, eps_blk, method="eig")
        assert np.allclose(w_eig, w_eigh, atol=1e-5)

    def test_shape_mismatch_raises(self, square_problem, square_lattice):
        b1, b2, eps_blk = square_problem
        kg = wavevector_matrices(0.0, 0.0, 0.0, b1, b2, 3, 3)
        with pytest.raises(EigenSolveError, match="不匹配"):
            solve_frequencies(kg, eps_blk)

    def test_unknown_method(self, square_problem):
        b1, b2, eps_blk = square_problem
        kg = wavevector_matrices(0.1, 0.0, 0.0, b1, b2, 5, 5)
        with pytest.raises(ValueError, match="未知求解方式"):
            solve_frequencies(kg, eps_blk, method="arpack")

    def test_non_finite_dielectric_raises(self, square_problem):
        b1, b2, eps_blk = square_problem
        kg = wavevector_matrices(0.1, 0.0, 0.2, b1, b2, 5, 5)
        bad = eps_blk.copy()
        bad[3, 3] = np.nan
        with pytest.raises(EigenSolveError, match="非有限值"):
            solve_frequencies(kg, bad)

    def test_overlapping_cylinders_fall_back_to_qz(self, square_lattice):
        """r > 0.5 时介电矩阵非正定，eigh 退回 QZ 分解，结果与 eig 一致"""
        b1, b2 = square_lattice.reciprocal_vectors
        r = 0.56
        f = float(square_lattice.fill_fraction(r))
        epsi = dielectric_matrix(r, 1.0, 1.6, b1, b2, 7, 7, f)
        assert np.linalg.eigvalsh(epsi).min() < 0
        eps_blk = block_dielectric_matrix(epsi)
        kg = wavevector_matrices(np.linspace(0.0, 0.5, 4)[1], 0.0, 0.5, b1, b2, 7, 7)

        w_eigh = solve_frequencies(kg, eps_blk, method="eigh")
        w_eig = solve_frequencies(kg, eps_blk, method="eig")
        assert w_eigh.shape == (147,)
        assert np.allclose(w_eigh, w_eig, atol=1e-8)

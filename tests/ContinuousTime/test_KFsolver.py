"""
Tests for the stationary distribution solvers.
"""

import unittest
import warnings

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import MatrixRankWarning

from HACT.ContinuousTime.HJBsolver import solve_HJB_implicit
from HACT.ContinuousTime.HuggettModel import init_huggett, init_huggett_3
from HACT.ContinuousTime.KFsolver import (
    income_shares,
    marginal_asset_density,
    mass_at_constraint,
    solve_KF,
    solve_KF_death,
    solve_KF_iterate,
    stationary_distribution,
)
from HACT.core import DidNotConverge
from HACT.parameters import IncomeFluctuationParameters


class testStationaryDistribution(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.params = IncomeFluctuationParameters.from_dict(dict(init_huggett, aCount=100))
        cls.hjb = solve_HJB_implicit(cls.params, 0.03)
        cls.g = solve_KF(cls.hjb.A, cls.params.da, cls.params.aCount)

    def test_normalization(self):
        self.assertEqual(self.g.shape, (100, 2))
        self.assertAlmostEqual(np.sum(self.g) * self.params.da, 1.0, places=8)
        self.assertTrue(np.all(self.g >= -1e-12))

    def test_stationary(self):
        residual = self.hjb.A.T @ self.g.reshape(-1, order="F")
        self.assertLess(np.max(np.abs(residual)), 1e-8 * np.max(self.g))

    def test_income_shares(self):
        # with exit rates 0.02 and 0.03, 60 percent of time is spent in the low state
        shares = income_shares(self.g, self.params.da)
        np.testing.assert_allclose(shares, [0.6, 0.4], atol=1e-8)

    def test_marginals(self):
        density = marginal_asset_density(self.g)
        self.assertEqual(density.shape, (100,))
        self.assertAlmostEqual(np.sum(density) * self.params.da, 1.0, places=8)
        mass = mass_at_constraint(self.g, self.params.da)
        self.assertGreater(mass, 0.0)
        self.assertLess(mass, 1.0)

    def test_fix_value_and_row_do_not_matter(self):
        # high income at the borrowing limit always carries mass
        g = solve_KF(
            self.hjb.A, self.params.da, self.params.aCount, i_fix=100, fix_value=3.0
        )
        np.testing.assert_allclose(g, self.g, rtol=1e-6, atol=1e-10)

    def test_death(self):
        g = solve_KF_death(self.hjb.A, self.params.da, self.params.aCount)
        np.testing.assert_allclose(g, self.g, rtol=1e-5, atol=1e-8)

    def test_iterate(self):
        g = solve_KF_iterate(self.hjb.A, self.params.da, self.params.aCount)
        self.assertAlmostEqual(np.sum(g) * self.params.da, 1.0, places=8)
        np.testing.assert_allclose(g, self.g, rtol=1e-3, atol=1e-4)

    def test_dispatch(self):
        g = stationary_distribution(self.hjb.A, self.params, method="death", delta=1e-9)
        np.testing.assert_allclose(g, self.g, rtol=1e-4, atol=1e-7)
        g = stationary_distribution(self.hjb.A, self.params)
        np.testing.assert_array_equal(g, self.g)
        with self.assertRaises(ValueError):
            stationary_distribution(self.hjb.A, self.params, method="eigen")


class testManyStates(unittest.TestCase):
    def test_three_states(self):
        params = IncomeFluctuationParameters.from_dict(dict(init_huggett_3, aCount=100))
        hjb = solve_HJB_implicit(params, 0.03)
        g = stationary_distribution(hjb.A, params)
        self.assertEqual(g.shape, (100, 3))
        self.assertAlmostEqual(np.sum(g) * params.da, 1.0, places=8)
        self.assertTrue(np.all(g >= -1e-12))


class testDegenerateGenerators(unittest.TestCase):
    def setUp(self):
        self.aCount = 5
        self.da = 0.25
        self.A = sp.csr_matrix((10, 10))

    def test_singular(self):
        # nothing moves, so every distribution is stationary
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", MatrixRankWarning)
            with self.assertRaises(np.linalg.LinAlgError):
                solve_KF(self.A, self.da, self.aCount)

    def test_death_returns_newborns(self):
        g = solve_KF_death(self.A, self.da, self.aCount)
        np.testing.assert_allclose(g, np.full((5, 2), 1.0 / (10 * self.da)))

    def test_bad_arguments(self):
        self.assertRaises(ValueError, solve_KF, self.A, self.da, 3)
        self.assertRaises(ValueError, solve_KF, self.A, self.da, self.aCount, i_fix=10)
        self.assertRaises(ValueError, solve_KF_death, self.A, self.da, self.aCount, delta=0.0)

    def test_iterate_needs_a_time_step(self):
        with self.assertRaises(ValueError):
            solve_KF_iterate(self.A, self.da, self.aCount)
        with self.assertRaises(ValueError):
            solve_KF_iterate(self.A, self.da, self.aCount, Delta=0.0)

    def test_iterate_maxit(self):
        # two states that swap mass, started away from the stationary point
        A = sp.csr_matrix(np.array([[-1.0, 1.0], [1.0, -1.0]]))
        with self.assertRaises(DidNotConverge):
            solve_KF_iterate(A, 1.0, 1, g0=np.array([[1.0, 0.0]]), maxit=3)
        g = solve_KF_iterate(A, 1.0, 1, g0=np.array([[1.0, 0.0]]))
        np.testing.assert_allclose(g, [[0.5, 0.5]], atol=1e-10)

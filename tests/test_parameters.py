"""
Tests for the primitives of the income fluctuation problem.
"""

import unittest

import numpy as np

from HACT.core import InvalidModelConfiguration
from HACT.ContinuousTime.HuggettModel import init_huggett, init_huggett_3
from HACT.parameters import IncomeFluctuationParameters, make_two_state_generator


class testTwoStateGenerator(unittest.TestCase):
    def test_expansion(self):
        generator = make_two_state_generator([0.02, 0.03])
        np.testing.assert_array_equal(
            generator, np.array([[-0.02, 0.02], [0.03, -0.03]])
        )


class testIncomeFluctuationParameters(unittest.TestCase):
    def setUp(self):
        self.params = IncomeFluctuationParameters.from_dict(init_huggett)

    def test_from_dict(self):
        self.assertEqual(self.params.CRRA, 2.0)
        self.assertEqual(self.params.aCount, 500)
        self.assertEqual(self.params.zCount, 2)
        self.assertAlmostEqual(self.params.da, 1.6 / 499)
        np.testing.assert_array_equal(
            self.params.generator, np.array([[-0.02, 0.02], [0.03, -0.03]])
        )

    def test_grid(self):
        aGrid = self.params.asset_grid()
        self.assertEqual(aGrid.size, 500)
        self.assertEqual(aGrid[0], -0.1)
        self.assertAlmostEqual(aGrid[-1], 1.5)

    def test_state_space(self):
        aMesh, zMesh = self.params.state_space()
        self.assertEqual(aMesh.shape, (500, 2))
        np.testing.assert_array_equal(aMesh[:, 1], self.params.asset_grid())
        np.testing.assert_array_equal(zMesh[7, :], [0.1, 0.2])

    def test_immutable(self):
        with self.assertRaises(AttributeError):
            self.params.CRRA = 3.0
        with self.assertRaises(ValueError):
            self.params.IncomeStates[0] = 0.5

    def test_round_trip_dict(self):
        other = IncomeFluctuationParameters.from_dict(self.params.to_dict())
        self.assertEqual(self.params, other)

    def test_defaults_match_init_dict(self):
        self.assertEqual(IncomeFluctuationParameters(), self.params)
        self.assertEqual(IncomeFluctuationParameters().aMax, init_huggett["aMax"])

    def test_hash_agrees_with_eq(self):
        other = IncomeFluctuationParameters.from_dict(dict(init_huggett))
        self.assertEqual(self.params, other)
        self.assertEqual(hash(self.params), hash(other))
        self.assertEqual(len({self.params, other}), 1)
        cache = {self.params: "solved"}
        self.assertEqual(cache[other], "solved")
        self.assertEqual(len({self.params, IncomeFluctuationParameters(CRRA=3.0)}), 2)

    def test_full_generator(self):
        params = IncomeFluctuationParameters.from_dict(init_huggett_3)
        self.assertEqual(params.zCount, 3)
        np.testing.assert_allclose(params.generator.sum(axis=1), 0.0, atol=1e-15)
        self.assertTrue(params.is_irreducible())

    def test_no_switching(self):
        params = IncomeFluctuationParameters(IncomeStates=[0.1, 0.2], SwitchRates=None)
        np.testing.assert_array_equal(params.generator, np.zeros((2, 2)))
        self.assertFalse(params.is_irreducible())

    def test_single_state(self):
        params = IncomeFluctuationParameters(IncomeStates=[0.1], SwitchRates=[[0.0]])
        self.assertEqual(params.zCount, 1)
        self.assertTrue(params.is_irreducible())


class testValidation(unittest.TestCase):
    def check_invalid(self, **kwds):
        with self.assertRaises(InvalidModelConfiguration):
            IncomeFluctuationParameters(**kwds)

    def test_grid(self):
        self.check_invalid(aCount=1)
        self.check_invalid(aMin=1.0, aMax=1.0)
        self.check_invalid(aMin=1.0, aMax=0.0)

    def test_preferences(self):
        self.check_invalid(CRRA=0.0)
        self.check_invalid(DiscRate=-0.01)

    def test_income(self):
        self.check_invalid(IncomeStates=[])
        self.check_invalid(IncomeStates=[0.1, np.nan])

    def test_generator(self):
        # rows must sum to zero
        self.check_invalid(SwitchRates=[[-0.02, 0.03], [0.03, -0.03]])
        # off-diagonals must be non-negative
        self.check_invalid(SwitchRates=[[0.02, -0.02], [0.03, -0.03]])
        # wrong shape
        self.check_invalid(SwitchRates=np.zeros((3, 3)))
        # exit intensities only with two states
        self.check_invalid(IncomeStates=[0.1, 0.15, 0.2], SwitchRates=[0.02, 0.03, 0.04])

    def test_invalid_is_value_error(self):
        with self.assertRaises(ValueError):
            IncomeFluctuationParameters(aCount=0)


class testBorrowingLimit(unittest.TestCase):
    def test_natural_limit(self):
        params = IncomeFluctuationParameters(aMin=-0.1)
        params.check_borrowing_limit(0.03)
        # 0.1 - 0.03 * 10 < 0
        params = IncomeFluctuationParameters(aMin=-10.0)
        self.assertRaises(InvalidModelConfiguration, params.check_borrowing_limit, 0.03)

    def test_negative_rate(self):
        # with r < 0 the top of the grid binds
        params = IncomeFluctuationParameters(aMin=0.0, aMax=20.0)
        self.assertRaises(InvalidModelConfiguration, params.check_borrowing_limit, -0.01)

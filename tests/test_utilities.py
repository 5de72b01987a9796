"""
This file tests some of the helper functions in HACT.utilities
"""

import unittest

import numpy as np

from HACT.utilities import (
    make_state_dataset,
    make_state_frame,
    make_uniform_grid,
    stack_states,
    unstack_states,
)


class testMakeUniformGrid(unittest.TestCase):
    def test_endpoints(self):
        grid = make_uniform_grid(-0.1, 1.0, 12)
        self.assertEqual(grid.size, 12)
        self.assertEqual(grid[0], -0.1)
        self.assertEqual(grid[-1], 1.0)
        np.testing.assert_allclose(np.diff(grid), 0.1)

    def test_too_few_points(self):
        self.assertRaises(ValueError, make_uniform_grid, 0.0, 1.0, 1)


class testStacking(unittest.TestCase):
    def setUp(self):
        self.arr = np.arange(6.0).reshape((3, 2))

    def test_asset_index_fastest(self):
        # column j occupies block j
        np.testing.assert_array_equal(
            stack_states(self.arr), np.array([0.0, 2.0, 4.0, 1.0, 3.0, 5.0])
        )

    def test_unstack(self):
        vec = stack_states(self.arr)
        np.testing.assert_array_equal(unstack_states(vec, 3, 2), self.arr)


class testExport(unittest.TestCase):
    def setUp(self):
        self.aGrid = np.array([0.0, 0.5, 1.0])
        self.zGrid = np.array([0.1, 0.2])
        self.v = np.arange(6.0).reshape((3, 2))

    def test_frame(self):
        df = make_state_frame(self.aGrid, self.zGrid, v=self.v, g=None)
        self.assertEqual(list(df.columns), ["a", "z", "v"])
        self.assertEqual(len(df), 6)
        row = df[(df["a"] == 0.5) & (df["z"] == 0.2)]
        self.assertEqual(row["v"].item(), 3.0)

    def test_frame_shape_mismatch(self):
        with self.assertRaises(ValueError):
            make_state_frame(self.aGrid, self.zGrid, v=self.v.T)

    def test_dataset(self):
        ds = make_state_dataset(self.aGrid, self.zGrid, v=self.v)
        self.assertEqual(dict(ds.sizes), {"a": 3, "z": 2})
        self.assertEqual(float(ds["v"].sel(a=1.0, z=0.1)), 4.0)

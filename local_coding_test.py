#!/usr/bin/python3
"""
Tests the local coordinate coding
"""

# Copyright (C) 2026
# Lukas Bader, Dietlind Zühlke

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

import unittest
import numpy as np
from errors import ConfigurationError, LocalCodingError
from local_coding import find_neighbors, local_coordinate_matrix, local_coordinates

__author__ = 'Lukas Bader, Dietlind Zühlke'
__copyright__ = 'Copyright 2026, Lukas Bader, Dietlind Zühlke'
__license__ = 'GPLv3'
__version__ = '1.0.0'
__maintainer__ = 'Lukas Bader'
__email__ = 'lukas.bader@pferd.com'


class TestLocalCoding(unittest.TestCase):

    def setUp(self):
        rng = np.random.default_rng(0)
        self.anchors = rng.normal(size=(12, 3))
        self.X = rng.normal(size=(40, 3))

    def test_find_neighbors(self):
        anchors = np.array([[0., 0.], [1., 0.], [-1., 0.], [5., 5.]])
        # anchors 1 and 2 are equally far from the origin
        np.testing.assert_array_equal(find_neighbors(np.zeros(2), anchors, 3), [0, 1, 2])
        np.testing.assert_array_equal(find_neighbors(np.array([4., 4.]), anchors, 1), [3])

    def test_rows_sum_to_one(self):
        C = local_coordinate_matrix(self.X, self.anchors, 4, 1E-4)
        self.assertEqual(C.shape, (40, 12))
        np.testing.assert_allclose(np.sum(C, axis=1), np.ones(40), atol=1E-6)
        np.testing.assert_array_equal(np.count_nonzero(C, axis=1), np.full(40, 4))

    def test_support_is_nearest(self):
        x = self.X[0]
        coeff = local_coordinates(x, self.anchors, 5, 1E-4)
        nearest = np.argsort(np.sum(np.square(self.anchors - x), axis=1))[:5]
        self.assertEqual(set(np.nonzero(coeff)[0]), set(nearest))

    def test_barycentric(self):
        # a point inside a triangle of anchors is reproduced by its
        # barycentric coordinates
        anchors = np.array([[0., 0.], [4., 0.], [0., 4.], [20., 20.]])
        bary = np.array([0.2, 0.5, 0.3])
        x = bary.dot(anchors[:3])
        coeff = local_coordinates(x, anchors, 3, 1E-8)
        np.testing.assert_allclose(coeff[:3], bary, atol=1E-4)
        self.assertEqual(coeff[3], 0.)

    def test_all_anchors_as_neighbors(self):
        C = local_coordinate_matrix(self.X, self.anchors, 12, 1E-3)
        np.testing.assert_allclose(np.sum(C, axis=1), np.ones(40), atol=1E-6)
        self.assertTrue(np.all(C != 0.))

    def test_duplicate_anchors(self):
        anchors = np.array([[1., 1.], [1., 1.], [2., 0.]])
        coeff = local_coordinates(np.zeros(2), anchors, 3, 1E-4)
        self.assertTrue(np.all(np.isfinite(coeff)))
        self.assertAlmostEqual(np.sum(coeff), 1.)
        # duplicated anchors share their weight
        self.assertAlmostEqual(coeff[0], coeff[1])

    def test_singular(self):
        anchors = np.array([[1., 1.], [3., 3.]])
        with self.assertRaises(LocalCodingError):
            local_coordinates(np.array([1., 1.]), anchors, 1, 1E-4)

    def test_singular_row_index(self):
        anchors = np.array([[1., 1.], [3., 3.]])
        X = np.array([[0., 0.], [3., 3.]])
        with self.assertRaises(LocalCodingError) as ctx:
            local_coordinate_matrix(X, anchors, 1, 1E-4)
        self.assertEqual(ctx.exception.index, 1)

    def test_configuration_errors(self):
        with self.assertRaises(ConfigurationError):
            local_coordinates(self.X[0], self.anchors, 13, 1E-4)
        with self.assertRaises(ConfigurationError):
            local_coordinates(self.X[0], self.anchors, 0, 1E-4)
        with self.assertRaises(ConfigurationError):
            local_coordinate_matrix(self.X[:, :2], self.anchors, 4, 1E-4)


if __name__ == '__main__':
    unittest.main()

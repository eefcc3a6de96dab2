#!/usr/bin/python3
"""
Tests the random recursive support vector classifier
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
import warnings
import numpy as np
from sklearn.base import clone
from sklearn.exceptions import ConvergenceWarning
from errors import ConfigurationError, NotFittedError
from random_recursive_svc import RandomRecursiveSVC

__author__ = 'Lukas Bader, Dietlind Zühlke'
__copyright__ = 'Copyright 2026, Lukas Bader, Dietlind Zühlke'
__license__ = 'GPLv3'
__version__ = '1.0.0'
__maintainer__ = 'Lukas Bader'
__email__ = 'lukas.bader@pferd.com'


class TestRandomRecursiveSVC(unittest.TestCase):

    def setUp(self):
        rng = np.random.default_rng(0)
        centers = [np.array([0., 0.]), np.array([3., 0.]), np.array([0., 3.])]
        self.X = np.concatenate([rng.normal(mu, 0.3, size=(40, 2)) for mu in centers])
        self.y = np.repeat(np.arange(3), 40)
        warnings.simplefilter('ignore', ConvergenceWarning)

    def test_layers(self):
        model = RandomRecursiveSVC(n_hidden_layers=3, random_state=0).fit(self.X, self.y)
        self.assertEqual(len(model.classifiers_), 4)
        self.assertEqual(len(model.random_matrices_), 3)
        for W in model.random_matrices_:
            self.assertEqual(W.shape, (3, 2))
        D = model.transform(self.X)
        self.assertEqual(D.shape, (120, 2))
        # the hidden representation is squashed by a sigmoid
        self.assertTrue(np.all(D > 0.) and np.all(D < 1.))

    def test_multiclass(self):
        model = RandomRecursiveSVC(random_state=0).fit(self.X, self.y)
        self.assertEqual(model.decision_function(self.X).shape, (120, 3))
        self.assertTrue(model.score(self.X, self.y) > 0.9)

    def test_binary(self):
        mask = self.y < 2
        model = RandomRecursiveSVC(random_state=1).fit(self.X[mask], self.y[mask])
        self.assertEqual(model.random_matrices_[0].shape, (2, 2))
        self.assertEqual(model.decision_function(self.X[mask]).shape, (80,))
        self.assertTrue(model.score(self.X[mask], self.y[mask]) > 0.9)

    def test_no_hidden_layers(self):
        model = RandomRecursiveSVC(n_hidden_layers=0, random_state=0).fit(self.X, self.y)
        self.assertEqual(len(model.classifiers_), 1)
        np.testing.assert_array_equal(model.transform(self.X), self.X)

    def test_reproducible(self):
        m1 = RandomRecursiveSVC(random_state=4).fit(self.X, self.y)
        m2 = RandomRecursiveSVC(random_state=4).fit(self.X, self.y)
        for W1, W2 in zip(m1.random_matrices_, m2.random_matrices_):
            np.testing.assert_array_equal(W1, W2)
        np.testing.assert_allclose(m1.decision_function(self.X), m2.decision_function(self.X))
        m3 = RandomRecursiveSVC(random_state=np.random.RandomState(4)).fit(self.X, self.y)
        self.assertEqual(len(m3.random_matrices_), 2)

    def test_clone(self):
        model = RandomRecursiveSVC(n_hidden_layers=1, beta=0.2, random_state=0).fit(self.X, self.y)
        fresh = clone(model)
        self.assertEqual(fresh.get_params(), model.get_params())
        self.assertFalse(hasattr(fresh, 'classifiers_'))

    def test_errors(self):
        with self.assertRaises(NotFittedError):
            RandomRecursiveSVC().predict(self.X)
        with self.assertRaises(NotFittedError):
            RandomRecursiveSVC().decision_function(self.X)
        with self.assertRaises(ConfigurationError):
            RandomRecursiveSVC(n_hidden_layers=-1).fit(self.X, self.y)
        with self.assertRaises(ValueError):
            RandomRecursiveSVC().fit(self.X, np.zeros(120))
        model = RandomRecursiveSVC(n_hidden_layers=1, random_state=0).fit(self.X, self.y)
        with self.assertRaises(ConfigurationError):
            model.transform(np.zeros((2, 3)))


if __name__ == '__main__':
    unittest.main()

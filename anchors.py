"""
Finds a fixed number of anchor points covering the training distribution
with Lloyd's k-means iterations. Anchors are the reference points of the
local coordinate coding used by LocallyLinearSVC, and the cluster centers
of ClusteredSVC.
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

import numbers

import numpy as np
from scipy.spatial.distance import cdist
from sklearn.utils import check_random_state

from errors import ConfigurationError

__author__ = 'Lukas Bader, Dietlind Zühlke'
__copyright__ = 'Copyright 2026, Lukas Bader, Dietlind Zühlke'
__license__ = 'GPLv3'
__version__ = '1.0.0'
__maintainer__ = 'Lukas Bader'
__email__ = 'lukas.bader@pferd.com'


def resolve_seed(random_state):
    """ Turns a random_state parameter (None, an int or a
    numpy.random.RandomState) into an integer seed for
    numpy.random.default_rng. Integers are used as they are.
    """
    if isinstance(random_state, numbers.Integral):
        return int(random_state)
    return int(check_random_state(random_state).randint(2**32 - 1))


def assign_anchors(X, anchors):
    """ Returns for every row of X the index of its closest anchor
    (Euclidean distance). Ties go to the anchor with the lowest index.
    """
    D = cdist(X, anchors, metric='euclidean')
    return np.argmin(D, axis=1)


def find_anchors(X, n_anchors, max_iter, tol, rng):
    """ Selects n_anchors representative points of X via k-means.

    Parameters
    ----------
    X: array_like
        A m x n matrix of training samples.
    n_anchors: int
        The number of anchors to find.
    max_iter: int
        The maximum number of k-means rounds.
    tol: float
        The root-mean-squared anchor displacement at which the iteration
        stops early.
    rng: numpy.random.Generator
        The random stream used to draw the initial anchors. The caller
        should pass a copy if its own stream must stay untouched.

    Returns
    -------
    anchors: array_like
        A n_anchors x n matrix of anchor points.

    """
    X = np.asarray(X, dtype=float)
    if(n_anchors < 1):
        raise ConfigurationError('n_anchors must be >= 1, got %d' % n_anchors)
    m = X.shape[0]
    # initialize by drawing training rows with replacement
    rand_id = rng.integers(0, m, size=n_anchors)
    anchors = X[rand_id, :].copy()

    for _ in range(max_iter):
        closest = assign_anchors(X, anchors)
        old_anchors = anchors.copy()
        for k in range(n_anchors):
            members = closest == k
            # empty clusters keep their previous position
            if(np.any(members)):
                anchors[k, :] = np.mean(X[members, :], axis=0)
        shift = np.sqrt(np.mean(np.sum(np.square(old_anchors - anchors), axis=1)))
        if(shift <= tol):
            break

    return anchors

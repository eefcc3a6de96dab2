"""
Local coordinate coding: every sample is represented as an affine
combination of its nearest anchors, obtained from a small regularized
least-squares problem on the neighborhood.
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

import numpy as np
from tqdm.auto import tqdm

from errors import ConfigurationError, LocalCodingError

__author__ = 'Lukas Bader, Dietlind Zühlke'
__copyright__ = 'Copyright 2026, Lukas Bader, Dietlind Zühlke'
__license__ = 'GPLv3'
__version__ = '1.0.0'
__maintainer__ = 'Lukas Bader'
__email__ = 'lukas.bader@pferd.com'


def _check_coding_args(anchors, n_features, n_neighbors):
    n_anchors = anchors.shape[0]
    if(n_neighbors < 1 or n_neighbors > n_anchors):
        raise ConfigurationError(
            f'n_neighbors must lie in [1, n_anchors={n_anchors}], got {n_neighbors}')
    if(anchors.shape[1] != n_features):
        raise ConfigurationError(
            f'Samples have {n_features} features but anchors have {anchors.shape[1]}')


def find_neighbors(x, anchors, n_neighbors):
    """ Returns the indices of the n_neighbors anchors closest to x,
    ordered by squared Euclidean distance. Equal distances keep the lower
    anchor index first.
    """
    dist = np.sum(np.square(anchors - x), axis=1)
    return np.argsort(dist, kind='stable')[:n_neighbors]


def local_coordinates(x, anchors, n_neighbors, reg_param_local):
    """ Computes the local coordinate vector of a single sample.

    The weights w of the nearest anchors solve (G + r I) w = 1, where G is
    the Gram matrix of the anchor-minus-sample differences and
    r = reg_param_local / n_neighbors * trace(G), and are then rescaled to
    sum to one. The weights are not constrained to be non-negative.

    Parameters
    ----------
    x: array_like
        A sample of length n.
    anchors: array_like
        A n_anchors x n matrix of anchor points.
    n_neighbors: int
        The number of anchors used to code x.
    reg_param_local: float
        The relative ridge added to the diagonal of the local Gram matrix.

    Returns
    -------
    coeff: array_like
        A vector of length n_anchors which is zero outside the neighbors
        of x and sums to one.

    """
    x = np.asarray(x, dtype=float)
    anchors = np.asarray(anchors, dtype=float)
    _check_coding_args(anchors, x.shape[0], n_neighbors)

    neighbor_ids = find_neighbors(x, anchors, n_neighbors)
    diff = anchors[neighbor_ids, :] - x
    G = diff.dot(diff.T)
    G[np.diag_indices_from(G)] += reg_param_local / n_neighbors * np.trace(G)
    try:
        local_coeff = np.linalg.solve(G, np.ones(n_neighbors))
    except np.linalg.LinAlgError as e:
        raise LocalCodingError(
            'Singular local Gram matrix; increase reg_param_local or n_neighbors') from e
    local_coeff /= np.sum(local_coeff)
    if(not np.all(np.isfinite(local_coeff))):
        raise LocalCodingError(
            'Local coordinates are not finite; increase reg_param_local or n_neighbors')

    coeff = np.zeros(anchors.shape[0])
    coeff[neighbor_ids] = local_coeff
    return coeff


def local_coordinate_matrix(X, anchors, n_neighbors, reg_param_local, verbose=False):
    """ Codes every row of X, see local_coordinates.

    Returns
    -------
    C: array_like
        A m x n_anchors matrix whose rows sum to one.

    Raises
    ------
    LocalCodingError
        If the neighborhood of some row can not be solved. The error
        carries the row index.

    """
    X = np.asarray(X, dtype=float)
    anchors = np.asarray(anchors, dtype=float)
    _check_coding_args(anchors, X.shape[1], n_neighbors)

    C = np.zeros((X.shape[0], anchors.shape[0]))
    for i in tqdm(range(X.shape[0]), desc='local coding', disable=not verbose):
        try:
            C[i, :] = local_coordinates(X[i, :], anchors, n_neighbors, reg_param_local)
        except LocalCodingError as e:
            raise LocalCodingError(f'Sample {i}: {e}', index=i) from e
    return C

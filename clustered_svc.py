"""
Clustered Support Vector Classification, as described in

Gu, Q., & Han, J. (2013). Clustered Support Vector Machines. Proceedings of
the 16th International Conference on Artificial Intelligence and Statistics
(AISTATS), 307-315.

The data is partitioned by k-means; each cluster gets its own linear model
which is tied to a shared global model. Both are learned at once by a
single LinearSVC on an expanded feature space.
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
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.svm import LinearSVC
from sklearn.utils.validation import check_array, check_X_y

from anchors import assign_anchors, find_anchors, resolve_seed
from errors import ConfigurationError, NotFittedError

__author__ = 'Lukas Bader, Dietlind Zühlke'
__copyright__ = 'Copyright 2026, Lukas Bader, Dietlind Zühlke'
__license__ = 'GPLv3'
__version__ = '1.0.0'
__maintainer__ = 'Lukas Bader'
__email__ = 'lukas.bader@pferd.com'


def make_linear_svc(penalty, loss, dual, reg_param, tol, verbose, random_seed,
                    fit_intercept=False, intercept_scaling=1.0):
    """ Builds a LinearSVC for the given options, coerced to a combination
    liblinear supports: the 'l1' penalty always uses the squared hinge loss
    in the primal, and the hinge loss is always solved in the dual.
    """
    penalty = 'l1' if penalty == 'l1' else 'l2'
    loss = 'hinge' if loss == 'hinge' and penalty == 'l2' else 'squared_hinge'
    if(penalty == 'l1'):
        dual = False
    elif(loss == 'hinge'):
        dual = True
    else:
        dual = bool(dual)
    return LinearSVC(penalty=penalty, loss=loss, dual=dual, C=float(reg_param), tol=float(tol),
                     fit_intercept=fit_intercept, intercept_scaling=float(intercept_scaling),
                     verbose=int(bool(verbose)), random_state=random_seed)


class ClusteredSVC(ClassifierMixin, BaseEstimator):
    """ Clustered support vector classifier.

    Attributes
    ----------
    n_clusters: int (optional, default=8)
        The number of k-means clusters.
    reg_param_global: float (optional, default=1.0)
        The regularization strength of the shared global model.
    max_iter_kmeans: int (optional, default=100)
    tol_kmeans: float (optional, default=1E-6)
    penalty: str (optional, default='l2')
        'l2' or 'l1'. With 'l1' the loss is always the squared hinge and
        the primal problem is solved.
    loss: str (optional, default='squared_hinge')
        'squared_hinge' or 'hinge'. The hinge loss is always solved in the
        dual.
    dual: bool (optional, default=True)
    reg_param: float (optional, default=1.0)
        The penalty C of the LinearSVC.
    fit_bias: bool (optional, default=True)
    bias_scale: float (optional, default=1.0)
    tol: float (optional, default=1E-3)
    verbose: bool (optional, default=False)
    random_state: int or numpy.random.RandomState (optional, default=None)
    cluster_centers_: array_like
        A n_clusters x n matrix. This is not set by the user but during fit().
    model_: LinearSVC
        The linear model on the expanded features. This is not set by the
        user but during fit().

    """

    def __init__(self, n_clusters=8, reg_param_global=1.0, max_iter_kmeans=100, tol_kmeans=1E-6,
                 penalty='l2', loss='squared_hinge', dual=True, reg_param=1.0,
                 fit_bias=True, bias_scale=1.0, tol=1E-3, verbose=False, random_state=None):
        self.n_clusters = n_clusters
        self.reg_param_global = reg_param_global
        self.max_iter_kmeans = max_iter_kmeans
        self.tol_kmeans = tol_kmeans
        self.penalty = penalty
        self.loss = loss
        self.dual = dual
        self.reg_param = reg_param
        self.fit_bias = fit_bias
        self.bias_scale = bias_scale
        self.tol = tol
        self.verbose = verbose
        self.random_state = random_state

    def _check_trained(self, X):
        if getattr(self, 'model_', None) is None:
            raise NotFittedError('This ClusteredSVC is not trained yet; call fit() first.')
        X = check_array(X)
        if(X.shape[1] != self.cluster_centers_.shape[1]):
            raise ConfigurationError(
                f'X has {X.shape[1]} features, but the model was trained with {self.cluster_centers_.shape[1]}')
        return X

    def fit(self, X, y):
        """ Clusters X and fits the linear model on the expanded features. """
        X, y = check_X_y(X, y)
        if(self.reg_param_global <= 0.):
            raise ConfigurationError(f'reg_param_global must be > 0, got {self.reg_param_global}')
        self.random_seed_ = resolve_seed(self.random_state)
        rng = np.random.default_rng(self.random_seed_)
        self.cluster_centers_ = find_anchors(X, int(self.n_clusters), int(self.max_iter_kmeans),
                                             float(self.tol_kmeans), rng)
        Z = self._expand(X)
        # the bias is part of the expanded features
        self.model_ = make_linear_svc(self.penalty, self.loss, self.dual, self.reg_param, self.tol,
                                      self.verbose, self.random_seed_).fit(Z, y)
        self.classes_ = self.model_.classes_
        return self

    def _expand(self, X):
        cluster_ids = assign_anchors(X, self.cluster_centers_)
        if(self.fit_bias):
            X = np.hstack([X, np.full((X.shape[0], 1), float(self.bias_scale))])

        m, n = X.shape
        Z = np.zeros((m, n * (1 + int(self.n_clusters))))
        Z[:, :n] = X / np.sqrt(self.reg_param_global)
        for k in range(int(self.n_clusters)):
            members = cluster_ids == k
            Z[np.ix_(members, np.arange(n * (k + 1), n * (k + 2)))] = X[members, :]
        return Z

    def transform(self, X):
        """ Maps X to [x / sqrt(reg_param_global), 0, ..., x, ..., 0] where
        only the block of the cluster of x is non-zero.
        """
        if getattr(self, 'cluster_centers_', None) is None:
            raise NotFittedError('This ClusteredSVC is not trained yet; call fit() first.')
        X = check_array(X)
        if(X.shape[1] != self.cluster_centers_.shape[1]):
            raise ConfigurationError(
                f'X has {X.shape[1]} features, but the clusters have {self.cluster_centers_.shape[1]}')
        return self._expand(X)

    def decision_function(self, X):
        X = self._check_trained(X)
        return self.model_.decision_function(self._expand(X))

    def predict(self, X):
        X = self._check_trained(X)
        return self.model_.predict(self._expand(X))

"""
Locally Linear Support Vector Classification (LLSVC) with the squared
hinge loss, as described in

Ladicky, L., & Torr, P. H. S. (2011). Locally Linear Support Vector
Machines. Proceedings of the 28th International Conference on Machine
Learning (ICML), 985-992.

A set of anchors is found by k-means, every sample is coded as an affine
combination of its nearest anchors, and one linear classifier is attached
to every anchor. All anchor classifiers of a binary problem are learned
jointly with L-BFGS-B; multi-class problems are handled one-vs-rest.
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

import copy
import warnings
from dataclasses import dataclass

import numpy as np
from joblib import Parallel, delayed
from scipy.optimize import minimize
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.exceptions import ConvergenceWarning
from sklearn.utils.validation import check_array, check_X_y

from anchors import find_anchors, resolve_seed
from errors import ConfigurationError, NotFittedError, OptimizationError
from local_coding import local_coordinate_matrix

__author__ = 'Lukas Bader, Dietlind Zühlke'
__copyright__ = 'Copyright 2026, Lukas Bader, Dietlind Zühlke'
__license__ = 'GPLv3'
__version__ = '1.0.0'
__maintainer__ = 'Lukas Bader'
__email__ = 'lukas.bader@pferd.com'

_STATE_KEYS = ('params', 'anchors', 'weight_vec', 'bias_term', 'classes')
_LOG_KEYS = ('loss', 'n_iter')


@dataclass(frozen=True)
class LLSVCConfig:
    """ Immutable snapshot of the hyperparameters used during one fit. """
    reg_param: float
    reg_param_local: float
    max_iter: int
    tol: float
    n_anchors: int
    n_neighbors: int
    fit_bias: bool
    bias_scale: float

    def validate(self):
        if self.n_anchors < 1:
            raise ConfigurationError(f'n_anchors must be >= 1, got {self.n_anchors}')
        if self.n_neighbors < 1 or self.n_neighbors > self.n_anchors:
            raise ConfigurationError(
                f'n_neighbors must lie in [1, n_anchors={self.n_anchors}], got {self.n_neighbors}')
        if self.reg_param < 0. or self.reg_param_local < 0.:
            raise ConfigurationError('Regularization parameters must be non-negative')
        if self.max_iter < 0:
            raise ConfigurationError(f'max_iter must be >= 0, got {self.max_iter}')
        if self.tol < 0.:
            raise ConfigurationError(f'tol must be >= 0, got {self.tol}')
        return self


def squared_hinge_loss(w, X, y, C, reg_param):
    """ Loss and gradient of the joint anchor classifiers.

    With z_i = sum_a C[i, a] * <X[i], W[a]> and t_i = 1 - y_i z_i the loss is

        0.5 * reg_param * ||W||_F^2 + 1/m * sum_i max(0, t_i)^2

    and its gradient is

        reg_param * W + 2/m * sum_{i: t_i > 0} C[i, :]^T (z_i - y_i) X[i].

    Parameters
    ----------
    w: array_like
        The flattened n_anchors x n weight matrix W.
    X: array_like
        A m x n sample matrix (including a bias column, if any).
    y: array_like
        A vector of m targets in {-1, +1}.
    C: array_like
        The m x n_anchors local coordinate matrix of X.
    reg_param: float
        The L2 regularization strength.

    Returns
    -------
    loss: float
    grad: array_like
        The flattened gradient, same shape as w.

    """
    n_anchors = C.shape[1]
    m, n = X.shape
    W = w.reshape(n_anchors, n)
    z = np.sum(C * X.dot(W.T), axis=1)
    t = 1. - y * z
    active = t > 0.
    grad = reg_param * W
    if(np.any(active)):
        grad = grad + 2. / m * (C[active, :].T * (z[active] - y[active])).dot(X[active, :])
    loss = 0.5 * reg_param * np.sum(np.square(W)) + np.sum(np.square(np.maximum(0., t))) / m
    return loss, grad.ravel()


def train_local_classifier(X, y, C, config, rng):
    """ Learns the anchor classifiers of one binary problem.

    Parameters
    ----------
    X: array_like
        A m x n sample matrix, already expanded by the bias column if
        config.fit_bias is set.
    y: array_like
        A vector of m targets in {-1, +1}.
    C: array_like
        The m x n_anchors local coordinate matrix of X.
    config: LLSVCConfig
    rng: numpy.random.Generator
        Used for the initial point only.

    Returns
    -------
    W: array_like
        A n_anchors x n_features weight matrix (bias column removed).
    b: array_like
        A vector of n_anchors biases (zeros if no bias is fit).
    loss: float
        The final training loss.
    n_iter: int
        The number of L-BFGS-B iterations.

    """
    n = X.shape[1]
    w_init = 2. * rng.random(config.n_anchors * n) - 1.

    # L-BFGS-B stops once the relative loss reduction is below
    # factr * eps, which is exactly scipy's ftol
    res = minimize(squared_hinge_loss, w_init, args=(X, y, C, config.reg_param),
                   method='L-BFGS-B', jac=True,
                   options={'maxiter': config.max_iter, 'ftol': config.tol})

    if(not np.isfinite(res.fun) or not np.all(np.isfinite(res.x))):
        raise OptimizationError(f'L-BFGS-B diverged: {res.message}')
    if(not res.success):
        warnings.warn(f'L-BFGS-B did not converge ({res.message}); using the last iterate.',
                      ConvergenceWarning)

    W = res.x.reshape(config.n_anchors, n)
    if(config.fit_bias):
        return W[:, :-1].copy(), W[:, -1].copy(), float(res.fun), int(res.nit)
    return W, np.zeros(config.n_anchors), float(res.fun), int(res.nit)


class LocallyLinearSVC(ClassifierMixin, BaseEstimator):
    """ A locally linear support vector classifier assigns one linear model
    to each of a small set of anchor points. A sample is scored by the
    affine combination of the linear models of its nearest anchors, with
    the weights given by its local coordinates. This yields a piecewise
    smooth, nonlinear decision boundary at the cost of a linear model.

    Attributes
    ----------
    reg_param: float (optional, default=1.0)
        The L2 regularization strength of the anchor classifiers.
    reg_param_local: float (optional, default=1E-4)
        The relative ridge of the local coordinate solve.
    max_iter: int (optional, default=100)
        The iteration budget of both k-means and L-BFGS-B.
    tol: float (optional, default=1E-4)
        The tolerance of both k-means and L-BFGS-B.
    n_anchors: int (optional, default=128)
        The number of anchors.
    n_neighbors: int (optional, default=10)
        The number of anchors used to code each sample.
    fit_bias: bool (optional, default=True)
        If True, every anchor classifier has a bias term.
    bias_scale: float (optional, default=1.0)
        The value of the constant feature realizing the bias.
    n_jobs: int (optional, default=None)
        The number of joblib workers for one-vs-rest training.
    verbose: bool (optional, default=False)
        If True, prints training progress.
    random_state: int or numpy.random.RandomState (optional, default=None)
        The seed of the random stream.
    classes_: array_like
        The sorted class labels. This is not set by the user but during fit().
    anchors_: array_like
        A n_anchors x n matrix of anchors. This is not set by the user but
        during fit().
    weight_vec_: array_like
        A n_anchors x n weight matrix for binary problems, or a
        n_classes x n_anchors x n tensor otherwise. This is not set by the
        user but during fit().
    bias_term_: array_like
        A vector of n_anchors biases for binary problems, or a
        n_classes x n_anchors matrix otherwise. This is not set by the user
        but during fit().

    """

    def __init__(self, reg_param=1.0, reg_param_local=1E-4, max_iter=100, tol=1E-4,
                 n_anchors=128, n_neighbors=10, fit_bias=True, bias_scale=1.0,
                 n_jobs=None, verbose=False, random_state=None):
        self.reg_param = reg_param
        self.reg_param_local = reg_param_local
        self.max_iter = max_iter
        self.tol = tol
        self.n_anchors = n_anchors
        self.n_neighbors = n_neighbors
        self.fit_bias = fit_bias
        self.bias_scale = bias_scale
        self.n_jobs = n_jobs
        self.verbose = verbose
        self.random_state = random_state

    def _make_config(self) -> LLSVCConfig:
        return LLSVCConfig(
            reg_param=float(self.reg_param),
            reg_param_local=float(self.reg_param_local),
            max_iter=int(self.max_iter),
            tol=float(self.tol),
            n_anchors=int(self.n_anchors),
            n_neighbors=int(self.n_neighbors),
            fit_bias=bool(self.fit_bias),
            bias_scale=float(self.bias_scale),
        ).validate()

    def _expand_feature(self, X):
        return np.hstack([X, np.full((X.shape[0], 1), self.config_.bias_scale)])

    def __sklearn_is_fitted__(self):
        return getattr(self, 'anchors_', None) is not None and getattr(self, 'weight_vec_', None) is not None

    def _check_trained(self, X):
        if not self.__sklearn_is_fitted__():
            raise NotFittedError('This LocallyLinearSVC is not trained yet; call fit() first.')
        X = check_array(X)
        if(X.shape[1] != self.anchors_.shape[1]):
            raise ConfigurationError(
                f'X has {X.shape[1]} features, but the model was trained with {self.anchors_.shape[1]}')
        return X

    def fit(self, X, y):
        """ Fits anchors and anchor classifiers to the given data. Any
        previously trained state is discarded.

        Parameters
        ----------
        X: array_like
            A m x n matrix of training samples.
        y: array_like
            A vector of m class labels.

        Returns
        -------
        self

        """
        X, y = check_X_y(X, y)
        self.config_ = self._make_config()
        self.classes_ = np.unique(y)
        if(len(self.classes_) < 2):
            raise ValueError(f'Need samples of at least 2 classes, got {len(self.classes_)}')

        self.random_seed_ = resolve_seed(self.random_state)
        self._rng = np.random.default_rng(self.random_seed_)

        self.anchors_ = find_anchors(X, self.config_.n_anchors, self.config_.max_iter,
                                     self.config_.tol, copy.deepcopy(self._rng))
        C = local_coordinate_matrix(X, self.anchors_, self.config_.n_neighbors,
                                    self.config_.reg_param_local, verbose=self.verbose)

        Xb = self._expand_feature(X) if self.config_.fit_bias else X

        if(len(self.classes_) > 2):
            targets = [np.where(y == lab, 1., -1.) for lab in self.classes_]
        else:
            targets = [np.where(y != self.classes_[0], 1., -1.)]

        results = Parallel(n_jobs=self.n_jobs)(
            delayed(train_local_classifier)(Xb, bin_y, C, self.config_, copy.deepcopy(self._rng))
            for bin_y in targets)

        for l, (_, _, loss, n_iter) in enumerate(results):
            if self.verbose:
                print(f'[Class {l}] loss={loss:.6f} after {n_iter} L-BFGS-B iterations')

        self.loss_ = np.array([r[2] for r in results])
        self.n_iter_ = np.array([r[3] for r in results], dtype=int)
        if(len(self.classes_) > 2):
            self.weight_vec_ = np.stack([r[0] for r in results], axis=0)
            self.bias_term_ = np.stack([r[1] for r in results], axis=0)
        else:
            self.weight_vec_, self.bias_term_ = results[0][0], results[0][1]
        return self

    def transform(self, X):
        """ Returns the m x n_anchors local coordinate matrix of X. """
        X = self._check_trained(X)
        return local_coordinate_matrix(X, self.anchors_, self.config_.n_neighbors,
                                       self.config_.reg_param_local)

    def decision_function(self, X):
        """ Computes the confidence scores of X.

        Returns
        -------
        scores: array_like
            A vector of m scores for binary problems (positive means the
            second class), or a m x n_classes matrix otherwise.

        """
        X = self._check_trained(X)
        C = local_coordinate_matrix(X, self.anchors_, self.config_.n_neighbors,
                                    self.config_.reg_param_local)
        if(self.weight_vec_.ndim == 3):
            # per sample and class: C[i] . W[c] . X[i] + C[i] . b[c]
            return np.einsum('ia,cad,id->ic', C, self.weight_vec_, X) + C.dot(self.bias_term_.T)
        return np.sum(C.dot(self.weight_vec_) * X, axis=1) + C.dot(self.bias_term_)

    def predict(self, X):
        """ Predicts the class labels of X.

        Returns
        -------
        y: array_like
            A vector of m class labels.

        """
        scores = self.decision_function(X)
        if(scores.ndim == 2):
            return self.classes_[np.argmax(scores, axis=1)]
        return self.classes_[(scores >= 0.).astype(int)]

    def get_training_log(self):
        """ Returns the final loss and iteration count per binary problem,
        or None if the model was restored from a state without a log.
        """
        if not self.__sklearn_is_fitted__():
            raise NotFittedError('This LocallyLinearSVC is not trained yet; call fit() first.')
        if getattr(self, 'loss_', None) is None:
            return None
        return {'loss': self.loss_.copy(), 'n_iter': self.n_iter_.copy()}

    # ---------- Persistence ----------
    def dump_state(self):
        """ Returns a dictionary with the hyperparameters, the trained
        state and the training log, suitable for pickling or numpy.savez.
        """
        if not self.__sklearn_is_fitted__():
            raise NotFittedError('This LocallyLinearSVC is not trained yet; call fit() first.')
        state = {
            'params': self.get_params(),
            'anchors': self.anchors_.copy(),
            'weight_vec': self.weight_vec_.copy(),
            'bias_term': self.bias_term_.copy(),
            'classes': self.classes_.copy(),
        }
        log = self.get_training_log()
        if log is not None:
            state.update(log)
        return state

    def load_state(self, state):
        """ Restores a model from the output of dump_state. The training
        log entries are optional.
        """
        missing = [key for key in _STATE_KEYS if key not in state]
        if missing:
            raise ValueError(f'State is missing the entries {missing}')
        self.set_params(**state['params'])
        self.config_ = self._make_config()
        anchors = np.asarray(state['anchors'], dtype=float)
        weight_vec = np.asarray(state['weight_vec'], dtype=float)
        bias_term = np.asarray(state['bias_term'], dtype=float)
        if(anchors.shape[0] != self.config_.n_anchors or weight_vec.shape[-2] != self.config_.n_anchors
           or weight_vec.shape[-1] != anchors.shape[1] or bias_term.shape != weight_vec.shape[:-1]):
            raise ConfigurationError('Inconsistent shapes in the stored state')
        classes = np.asarray(state['classes'])
        n_slabs = weight_vec.shape[0] if weight_vec.ndim == 3 else 2
        if(len(classes) != n_slabs):
            raise ConfigurationError(
                f'{len(classes)} classes stored for a model with {n_slabs} class slabs')
        self.anchors_ = anchors
        self.weight_vec_ = weight_vec
        self.bias_term_ = bias_term
        self.classes_ = classes
        if all(key in state for key in _LOG_KEYS):
            self.loss_ = np.asarray(state['loss'], dtype=float)
            self.n_iter_ = np.asarray(state['n_iter'], dtype=int)
        else:
            self.loss_ = None
            self.n_iter_ = None
        return self

    @classmethod
    def from_state(cls, state):
        return cls().load_state(state)

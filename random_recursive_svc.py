"""
Random Recursive Support Vector Classification, as described in

Vinyals, O., Jia, Y., Deng, L., & Darrell, T. (2012). Learning with
Recursive Perceptual Representations. Advances in Neural Information
Processing Systems (NIPS), 2825-2833.

Every hidden layer trains a linear SVM, projects its class probabilities
back into the input space with a random matrix and moves the original
samples by the accumulated projection before squashing them with a
sigmoid. A final linear SVM classifies the output of the last layer.
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
from scipy.special import expit
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.calibration import CalibratedClassifierCV
from sklearn.utils.validation import check_array, check_X_y

from anchors import resolve_seed
from clustered_svc import make_linear_svc
from errors import ConfigurationError, NotFittedError

__author__ = 'Lukas Bader, Dietlind Zühlke'
__copyright__ = 'Copyright 2026, Lukas Bader, Dietlind Zühlke'
__license__ = 'GPLv3'
__version__ = '1.0.0'
__maintainer__ = 'Lukas Bader'
__email__ = 'lukas.bader@pferd.com'


class RandomRecursiveSVC(ClassifierMixin, BaseEstimator):
    """ Random recursive support vector classifier.

    Attributes
    ----------
    n_hidden_layers: int (optional, default=2)
        The number of hidden layers.
    beta: float (optional, default=0.5)
        The weight of the random projections when moving the samples.
    penalty: str (optional, default='l2')
        'l2' or 'l1'. With 'l1' the loss is always the squared hinge and
        the primal problem is solved.
    loss: str (optional, default='squared_hinge')
        'squared_hinge' or 'hinge'. The hinge loss is always solved in the
        dual.
    dual: bool (optional, default=True)
    reg_param: float (optional, default=1.0)
        The penalty C of every LinearSVC.
    fit_bias: bool (optional, default=True)
    bias_scale: float (optional, default=1.0)
    tol: float (optional, default=1E-3)
    prob_cv: int (optional, default=3)
        The number of folds used to fit the sigmoid (Platt) calibration
        of the hidden layer classifiers.
    verbose: bool (optional, default=False)
    random_state: int or numpy.random.RandomState (optional, default=None)
    classifiers_: list
        The calibrated classifiers of the hidden layers followed by the
        final LinearSVC. This is not set by the user but during fit().
    random_matrices_: list
        One n_classes x n random matrix per hidden layer. This is not set
        by the user but during fit().

    """

    def __init__(self, n_hidden_layers=2, beta=0.5, penalty='l2', loss='squared_hinge', dual=True,
                 reg_param=1.0, fit_bias=True, bias_scale=1.0, tol=1E-3, prob_cv=3,
                 verbose=False, random_state=None):
        self.n_hidden_layers = n_hidden_layers
        self.beta = beta
        self.penalty = penalty
        self.loss = loss
        self.dual = dual
        self.reg_param = reg_param
        self.fit_bias = fit_bias
        self.bias_scale = bias_scale
        self.tol = tol
        self.prob_cv = prob_cv
        self.verbose = verbose
        self.random_state = random_state

    def _linear_svc(self):
        return make_linear_svc(self.penalty, self.loss, self.dual, self.reg_param, self.tol,
                               self.verbose, self.random_seed_, fit_intercept=bool(self.fit_bias),
                               intercept_scaling=self.bias_scale)

    def _check_trained(self, X):
        if getattr(self, 'classifiers_', None) is None:
            raise NotFittedError('This RandomRecursiveSVC is not trained yet; call fit() first.')
        X = check_array(X)
        if(X.shape[1] != self.n_features_in_):
            raise ConfigurationError(
                f'X has {X.shape[1]} features, but the model was trained with {self.n_features_in_}')
        return X

    def fit(self, X, y):
        """ Trains the hidden layers and the final classifier. """
        X, y = check_X_y(X, y)
        if(int(self.n_hidden_layers) < 0):
            raise ConfigurationError(f'n_hidden_layers must be >= 0, got {self.n_hidden_layers}')
        self.classes_ = np.unique(y)
        if(len(self.classes_) < 2):
            raise ValueError(f'Need samples of at least 2 classes, got {len(self.classes_)}')
        self.n_features_in_ = X.shape[1]
        self.random_seed_ = resolve_seed(self.random_state)
        rng = np.random.default_rng(self.random_seed_)

        classifiers = []
        random_matrices = []
        D = X
        S = np.zeros(X.shape)
        for layer in range(int(self.n_hidden_layers)):
            svc = CalibratedClassifierCV(estimator=self._linear_svc(), method='sigmoid',
                                         cv=int(self.prob_cv)).fit(D, y)
            W = rng.standard_normal((len(self.classes_), X.shape[1]))
            S = S + svc.predict_proba(D).dot(W)
            D = expit(X + self.beta * S)
            classifiers.append(svc)
            random_matrices.append(W)
            if self.verbose:
                print(f'[Layer {layer + 1}/{self.n_hidden_layers}] trained')

        classifiers.append(self._linear_svc().fit(D, y))
        self.classifiers_ = classifiers
        self.random_matrices_ = random_matrices
        return self

    def transform(self, X):
        """ Returns the m x n output of the last hidden layer; X itself if
        there are no hidden layers.
        """
        X = self._check_trained(X)
        D = X
        S = np.zeros(X.shape)
        for svc, W in zip(self.classifiers_[:-1], self.random_matrices_):
            S = S + svc.predict_proba(D).dot(W)
            D = expit(X + self.beta * S)
        return D

    def decision_function(self, X):
        D = self.transform(X)
        return self.classifiers_[-1].decision_function(D)

    def predict(self, X):
        D = self.transform(X)
        return self.classifiers_[-1].predict(D)

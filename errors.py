__author__ = 'Lukas Bader, Dietlind Zühlke'
__copyright__ = 'Copyright 2026, Lukas Bader, Dietlind Zühlke'
__license__ = 'GPLv3'
__version__ = '1.0.0'
__maintainer__ = 'Lukas Bader'
__email__ = 'lukas.bader@pferd.com'

"""
Error types shared by the locally linear SVM modules.
"""

import numpy as np
from sklearn.exceptions import NotFittedError as _SkNotFittedError


class ConfigurationError(ValueError):
    """Invalid hyperparameters or inconsistent feature dimensions."""


class LocalCodingError(np.linalg.LinAlgError):
    """The regularized local Gram matrix of a sample could not be solved.

    Attributes
    ----------
    index: int or None
        Row index of the failing sample, if the sample was part of a batch.
    """

    def __init__(self, msg, index=None):
        super().__init__(msg)
        self.index = index


class OptimizationError(ArithmeticError):
    """The quasi-Newton solver produced a non-finite loss or solution."""


class NotFittedError(_SkNotFittedError):
    """Inference was requested from an untrained model."""

"""Exceptions raised by the decision tree estimators.

Every error carries a ``code`` from :class:`StatusCode` so callers that
prefer status values over exception types can branch on it:

- InvalidHyperparameterError: a constructor argument is out of range.
- ShapeMismatchError: X, y and sample_weight disagree on the number of rows,
  or X has the wrong number of columns at inference.
- NotFittedError: inference or feature importances requested before fit.
- UnsupportedOperationError: the operation does not apply to this estimator
  (predict_proba on a regressor, class_weight on a regressor, refitting).
- EmptyInputError: X has zero samples or zero features.
- InvalidInputError: non-finite features, negative or all-zero sample
  weights, targets a criterion cannot handle.

All checks happen in the estimator before the tree builder runs. Numeric
corner cases met while building (degenerate splits, zero-weight subsets,
log of a zero probability) are handled by policy and never raise.
"""

from __future__ import annotations

from enum import IntEnum

from sklearn.exceptions import NotFittedError as SklearnNotFittedError


class StatusCode(IntEnum):
    """Status values attached to every error of this package."""

    SUCCESS = 0
    INVALID_HYPERPARAMETER = 1
    SHAPE_MISMATCH = 2
    NOT_FITTED = 3
    UNSUPPORTED_OPERATION = 4
    EMPTY_INPUT = 5
    INVALID_INPUT = 6


class TreeError(Exception):
    """Base class for all decision tree errors.

    Attributes
    ----------
    code : StatusCode
        Status value identifying the failure.
    """

    code: StatusCode = StatusCode.SUCCESS


class InvalidHyperparameterError(TreeError, ValueError):
    """Raised when a hyperparameter is out of range.

    Attributes
    ----------
    name : str
        Name of the offending constructor argument.
    value : object
        The rejected value.

    Examples
    --------
    >>> err = InvalidHyperparameterError("min_samples_split", 1, "must be an int >= 2")
    >>> err.code
    <StatusCode.INVALID_HYPERPARAMETER: 1>
    """

    code = StatusCode.INVALID_HYPERPARAMETER

    def __init__(self, name: str, value: object, requirement: str) -> None:
        """Initialize InvalidHyperparameterError.

        Parameters
        ----------
        name : str
            Name of the offending constructor argument.
        value : object
            The rejected value.
        requirement : str
            Human readable description of the valid range.
        """
        super().__init__(f"{name} {requirement}, got {value!r}")
        self.name = name
        self.value = value


class ShapeMismatchError(TreeError, ValueError):
    """Raised when input arrays disagree on their shapes."""

    code = StatusCode.SHAPE_MISMATCH


class NotFittedError(TreeError, SklearnNotFittedError):
    """Raised when an estimator is used before a successful fit.

    Also a scikit-learn ``NotFittedError``, so code written against
    scikit-learn estimators catches it.
    """

    code = StatusCode.NOT_FITTED


class UnsupportedOperationError(TreeError, TypeError):
    """Raised when an operation does not apply to the estimator."""

    code = StatusCode.UNSUPPORTED_OPERATION


class EmptyInputError(TreeError, ValueError):
    """Raised when the training data has zero samples or zero features."""

    code = StatusCode.EMPTY_INPUT


class InvalidInputError(TreeError, ValueError):
    """Raised when input values cannot be used for training or inference."""

    code = StatusCode.INVALID_INPUT

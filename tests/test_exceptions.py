"""Tests for the exception hierarchy and its status codes."""

from __future__ import annotations

import pytest
from pytest_check import check
from sklearn.exceptions import NotFittedError as SklearnNotFittedError

from dtree_python.exceptions import (
    EmptyInputError,
    InvalidHyperparameterError,
    InvalidInputError,
    NotFittedError,
    ShapeMismatchError,
    StatusCode,
    TreeError,
    UnsupportedOperationError,
)


class TestStatusCodes:
    """Every error class maps to one status code."""

    @pytest.mark.parametrize(
        ("error_cls", "code"),
        [
            (ShapeMismatchError, StatusCode.SHAPE_MISMATCH),
            (NotFittedError, StatusCode.NOT_FITTED),
            (UnsupportedOperationError, StatusCode.UNSUPPORTED_OPERATION),
            (EmptyInputError, StatusCode.EMPTY_INPUT),
            (InvalidInputError, StatusCode.INVALID_INPUT),
        ],
    )
    def test_code_attribute(self, error_cls: type[TreeError], code: StatusCode) -> None:
        """The class carries its code and is a TreeError."""
        error = error_cls("boom")

        with check:
            assert error.code == code
        with check:
            assert isinstance(error, TreeError)
        with check:
            assert str(error) == "boom"

    def test_success_is_zero(self) -> None:
        """SUCCESS is the only falsy status."""
        with check:
            assert StatusCode.SUCCESS == 0
        with check:
            assert all(code for code in StatusCode if code is not StatusCode.SUCCESS)


class TestInvalidHyperparameterError:
    """Tests for the hyperparameter error message and attributes."""

    def test_message_and_attributes(self) -> None:
        """The message names the parameter, the requirement and the value."""
        error = InvalidHyperparameterError("min_samples_split", 1, "must be an int >= 2")

        with check:
            assert str(error) == "min_samples_split must be an int >= 2, got 1"
        with check:
            assert error.name == "min_samples_split"
        with check:
            assert error.value == 1
        with check:
            assert error.code == StatusCode.INVALID_HYPERPARAMETER


class TestCatchability:
    """Errors are also caught by the builtin types callers expect."""

    def test_value_errors(self) -> None:
        """Bad values are ValueErrors."""
        for error in (
            InvalidHyperparameterError("max_depth", "x", "must be an int"),
            ShapeMismatchError("shape"),
            EmptyInputError("empty"),
            InvalidInputError("nan"),
        ):
            with check:
                assert isinstance(error, ValueError)

    def test_not_fitted_is_sklearn_not_fitted(self) -> None:
        """scikit-learn code catching its NotFittedError catches ours."""
        with pytest.raises(SklearnNotFittedError):
            raise NotFittedError("not fitted")

    def test_unsupported_is_type_error(self) -> None:
        """Unsupported operations are TypeErrors."""
        assert isinstance(UnsupportedOperationError("nope"), TypeError)

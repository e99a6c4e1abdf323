"""Tests for loguru logging in dtree_python.

Logging is disabled on import; ``enable_logging`` turns it on until the
returned handle is disabled.
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator

import loguru
import numpy as np
import pytest
from loguru import logger
from pytest_check import check

from dtree_python import DecisionTreeClassifier, DecisionTreeRegressor
from dtree_python.logging import PACKAGE_NAME, LoggingHandle, enable_logging


@contextlib.contextmanager
def capturing_sink() -> Generator[list[loguru.Record]]:
    """Add a raw loguru sink without touching the package logger state.

    Yields:
        Generator[list[loguru.Record]]: Records received while the block is active.
    """
    captured_records: list[loguru.Record] = []

    def _sink(message: loguru.Message) -> None:
        captured_records.append(message.record)

    handler_id = logger.add(_sink)
    try:
        yield captured_records
    finally:
        logger.remove(handler_id)


@pytest.fixture(autouse=True)
def restore_active_ids() -> Generator[None]:
    """Remove handlers leaked by a failing test and restore the active id set.

    Yields:
        None: Nothing; used only for setup/teardown side effects.
    """
    saved_ids: set[int] = set(LoggingHandle._active_ids)

    yield

    for handler_id in LoggingHandle._active_ids - saved_ids:
        with contextlib.suppress(ValueError):
            logger.remove(handler_id)
    LoggingHandle._active_ids.clear()
    LoggingHandle._active_ids.update(saved_ids)
    if not saved_ids:
        logger.disable(PACKAGE_NAME)


def _fit_small_tree() -> None:
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    DecisionTreeRegressor().fit(X, [1.0, 1.0, 5.0, 5.0])


def test_logging_disabled_by_default() -> None:
    """No package records reach a sink unless logging is enabled."""
    # Arrange
    logger.disable(PACKAGE_NAME)

    # Act
    with capturing_sink() as captured_records:
        _fit_small_tree()

    # Assert
    package_records = [r for r in captured_records if (r["name"] or "").startswith(PACKAGE_NAME)]
    assert package_records == []


def test_enable_logging_reports_fit() -> None:
    """An INFO record describing the fitted tree is emitted per fit."""
    # Arrange
    messages: list[loguru.Message] = []

    # Act
    with enable_logging(level="INFO", sink=messages.append):
        _fit_small_tree()

    # Assert
    info_records = [m.record for m in messages if m.record["level"].name == "INFO"]
    with check:
        assert len(info_records) == 1
    with check:
        assert "Fitted DecisionTreeRegressor on 4 samples x 1 features" in info_records[0]["message"]


def test_debug_level_reports_builder_and_rejections() -> None:
    """DEBUG adds the builder summary and rejected hyperparameters."""
    messages: list[loguru.Message] = []

    with enable_logging(level="DEBUG", sink=messages.append):
        _fit_small_tree()
        with contextlib.suppress(ValueError):
            DecisionTreeClassifier(min_samples_leaf=0).fit([[0.0], [1.0]], [0, 1])

    texts = [m.record["message"] for m in messages]
    with check:
        assert any(text.startswith("Depth-first build") for text in texts)
    with check:
        assert any("min_samples_leaf" in text for text in texts)


def test_handle_disable_is_idempotent() -> None:
    """Disabling twice is harmless and the last handle switches logging off."""
    # Arrange
    messages: list[loguru.Message] = []
    handle = enable_logging(sink=messages.append)
    count_while_enabled = LoggingHandle.get_active_handle_count()

    # Act
    handle.disable()
    handle.disable()
    _fit_small_tree()

    # Assert
    with check:
        assert count_while_enabled >= 1
    with check:
        assert handle.handler_id is None
    with check:
        assert messages == []


def test_records_from_other_modules_are_filtered() -> None:
    """The handler added by enable_logging only passes package records."""
    messages: list[loguru.Message] = []

    with enable_logging(level="DEBUG", sink=messages.append):
        logger.info("unrelated message")

    assert messages == []

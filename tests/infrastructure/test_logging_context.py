from __future__ import annotations

import io
import logging

import pytest

from configwatch.infrastructure.observability.logging import (
    ContextualFormatter,
    current_log_context,
    log_context,
    parse_level,
)


def test_log_context_nests_and_restores() -> None:
    with log_context(source="directory:/etc/app"):
        with log_context(version=3):
            assert current_log_context() == {"source": "directory:/etc/app", "version": 3}
        assert current_log_context() == {"source": "directory:/etc/app"}
    assert current_log_context() == {}


def test_contextual_formatter_appends_fields() -> None:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ContextualFormatter("%(levelname)s %(message)s"))
    logger = logging.getLogger("configwatch.tests.formatter")
    logger.addHandler(handler)
    logger.propagate = False
    try:
        with log_context(cycle=4):
            logger.warning("refresh failed")
        logger.warning("plain")
    finally:
        logger.removeHandler(handler)

    assert stream.getvalue().splitlines() == ["WARNING refresh failed [cycle=4]", "WARNING plain"]


def test_parse_level() -> None:
    assert parse_level("debug") == logging.DEBUG
    assert parse_level(logging.ERROR) == logging.ERROR
    with pytest.raises(ValueError):
        parse_level("loud")

"""Tests for docsync.logging."""

from __future__ import annotations

import logging
from pathlib import Path

from docsync.logging import configure_logging, get_logger


def test_components_log_under_the_docsync_logger() -> None:
    assert get_logger().name == "docsync"
    assert get_logger("index").name == "docsync.index"


def test_reconfiguring_replaces_handlers(tmp_path: Path) -> None:
    log_file = tmp_path / "docsync.log"

    configure_logging()
    logger = configure_logging(verbose=True, log_file=log_file)
    try:
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        get_logger("resolver").debug("indexed %s", "widgets")
        for handler in logger.handlers:
            handler.flush()
        assert "DEBUG docsync.resolver: indexed widgets" in log_file.read_text(encoding="utf-8")
    finally:
        logger = configure_logging()

    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1

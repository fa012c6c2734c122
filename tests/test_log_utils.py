from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from pagepress.utils import log_utils
from pagepress.utils.log_utils import logger


@pytest.fixture
def restore_logging(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    yield
    monkeypatch.undo()
    log_utils._configure_logging(force=True)


def test_log_file_sink_receives_debug_records(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_logging: None
) -> None:
    log_file = tmp_path / "logs" / "pagepress.log"
    monkeypatch.setenv("PAGEPRESS_LOG_FILE", str(log_file))
    monkeypatch.setenv("PAGEPRESS_LOG_LEVEL", "WARNING")

    log_utils._configure_logging(force=True)
    logger.debug("rendered page 3 of issue-12")
    logger.complete()

    contents = log_file.read_text(encoding="utf-8")
    assert "| DEBUG |" in contents
    assert "rendered page 3 of issue-12" in contents


def test_configuration_is_idempotent_without_force(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    log_file = tmp_path / "never.log"
    monkeypatch.setenv("PAGEPRESS_LOG_FILE", str(log_file))

    log_utils._configure_logging()
    logger.debug("ignored")
    logger.complete()

    assert not log_file.exists()

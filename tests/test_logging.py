"""Tests for :mod:`appsketch.utils.logging`."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from appsketch.ui.events import (
    EventBus,
    GenerationFailed,
    GenerationStarted,
    ImageResolutionFailed,
    ImageResolutionFinished,
)
from appsketch.utils import logging as logging_utils


@pytest.fixture
def restore_root_logging(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    monkeypatch.setattr(logging_utils, "_CONFIGURED", False)
    monkeypatch.setattr(logging_utils, "_LOG_PATH", None)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)


@pytest.mark.usefixtures("restore_root_logging")
class TestSetupLogging:
    def test_writes_rotating_log_file(self, tmp_path: Path) -> None:
        path = logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False)

        logging.getLogger("appsketch.test").info("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert path == tmp_path / "appsketch.log"
        assert logging_utils.get_log_path() == path
        assert "hello from the test" in path.read_text(encoding="utf-8")

    def test_second_call_is_noop_without_force(self, tmp_path: Path) -> None:
        first = logging_utils.setup_logging(log_dir=tmp_path / "a", console=False)
        second = logging_utils.setup_logging(log_dir=tmp_path / "b", console=False)

        assert second == first

    def test_env_var_selects_directory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APPSKETCH_LOG_DIR", str(tmp_path / "env"))

        path = logging_utils.setup_logging("info", console=False)

        assert path.parent == tmp_path / "env"

    def test_quiets_noisy_libraries(self, tmp_path: Path) -> None:
        logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False)

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("openai").level == logging.WARNING


class TestGenerationLogSink:
    """The sink turns generation events into diagnostics log records."""

    def test_failures_are_logged_as_warnings(self, caplog: pytest.LogCaptureFixture) -> None:
        bus: EventBus = EventBus()
        sink = logging_utils.GenerationLogSink()
        sink.attach(bus)

        with caplog.at_level(logging.INFO, logger="appsketch.diagnostics"):
            bus.publish(GenerationStarted(request_id="gen-1", prompt="fitness app"))
            bus.publish(GenerationFailed(request_id="gen-1", error="service down"))
            bus.publish(ImageResolutionFailed(request_id="gen-1", element_id="el-2", error="quota"))

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert [r.getMessage() for r in warnings] == [
            "[gen-1] layout generation failed: service down",
            "[gen-1] image for el-2 failed: quota",
        ]
        assert any("generating layout" in r.getMessage() for r in caplog.records)

    def test_finished_run_mentions_cancellation(self, caplog: pytest.LogCaptureFixture) -> None:
        bus: EventBus = EventBus()
        sink = logging_utils.GenerationLogSink(logging.getLogger("appsketch.test.sink"))
        sink.attach(bus)

        with caplog.at_level(logging.INFO, logger="appsketch.test.sink"):
            bus.publish(ImageResolutionFinished(request_id="gen-2", resolved=1, failed=0, canceled=True))

        assert caplog.records[-1].getMessage() == "[gen-2] images done: 1 resolved, 0 failed (canceled)"

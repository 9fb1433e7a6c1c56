"""Logging setup and the generation diagnostics sink."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

from ..ui.events import (
    EventBus,
    GenerationFailed,
    GenerationStarted,
    GenerationSucceeded,
    ImageResolutionFailed,
    ImageResolutionFinished,
)

__all__ = ["setup_logging", "get_log_path", "GenerationLogSink"]

_DEFAULT_LOG_DIR = Path.home() / ".appsketch" / "logs"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_CONFIGURED = False
_LOG_PATH: Path | None = None

_DIAGNOSTICS = logging.getLogger("appsketch.diagnostics")


def setup_logging(
    level: int | str = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install a rotating ``appsketch.log`` handler plus an optional console handler.

    Repeated calls are no-ops unless ``force`` is set.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    resolved_level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO

    target_dir = Path(log_dir or os.environ.get("APPSKETCH_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / "appsketch.log"

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handlers: list[logging.Handler] = [file_handler]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(resolved_level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=resolved_level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    quiet_level = max(resolved_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    return _LOG_PATH


class GenerationLogSink:
    """Writes generation lifecycle events to the ``appsketch.diagnostics`` logger.

    This is the side channel through which layout and image failures become
    visible; the editor itself never raises them.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _DIAGNOSTICS

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(GenerationStarted, self.on_started)
        bus.subscribe(GenerationSucceeded, self.on_succeeded)
        bus.subscribe(GenerationFailed, self.on_failed)
        bus.subscribe(ImageResolutionFailed, self.on_image_failed)
        bus.subscribe(ImageResolutionFinished, self.on_images_finished)

    def on_started(self, event: GenerationStarted) -> None:
        self._logger.info("[%s] generating layout (%d chars)", event.request_id, len(event.prompt))

    def on_succeeded(self, event: GenerationSucceeded) -> None:
        self._logger.info(
            "[%s] layout installed: %d component(s), %d image(s) pending",
            event.request_id,
            event.element_count,
            event.pending_images,
        )

    def on_failed(self, event: GenerationFailed) -> None:
        self._logger.warning("[%s] layout generation failed: %s", event.request_id, event.error)

    def on_image_failed(self, event: ImageResolutionFailed) -> None:
        self._logger.warning("[%s] image for %s failed: %s", event.request_id, event.element_id, event.error)

    def on_images_finished(self, event: ImageResolutionFinished) -> None:
        self._logger.info(
            "[%s] images done: %d resolved, %d failed%s",
            event.request_id,
            event.resolved,
            event.failed,
            " (canceled)" if event.canceled else "",
        )

"""Shared pytest fixtures."""

from __future__ import annotations

import itertools
import logging

import pytest

from appsketch.editor.document_model import AppDocument
from appsketch.ui.domain.document_store import DocumentStore
from appsketch.ui.editor_controller import EditorController
from appsketch.ui.events import EventBus

from tests.helpers import EventRecorder, FakeCapability


@pytest.fixture(autouse=True)
def _quiet_noisy_loggers() -> None:
    for name in ("asyncio", "httpx", "httpcore", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(event_bus: EventBus) -> EventRecorder:
    return EventRecorder(event_bus)


@pytest.fixture
def store(event_bus: EventBus) -> DocumentStore:
    return DocumentStore(event_bus, AppDocument())


@pytest.fixture
def capability() -> FakeCapability:
    return FakeCapability()


@pytest.fixture
def controller(event_bus: EventBus, store: DocumentStore, capability: FakeCapability) -> EditorController:
    return EditorController(store, event_bus, capability=capability)


@pytest.fixture
def sequential_ids():
    """Deterministic id factory: ``el-1``, ``el-2``, ..."""

    counter = itertools.count(1)
    return lambda: f"el-{next(counter)}"

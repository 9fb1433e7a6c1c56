"""Tests for the LayoutGenerator domain service."""

from __future__ import annotations

import asyncio

import pytest

from appsketch.editor.document_model import AppDocument
from appsketch.errors import LayoutParseError
from appsketch.ui.domain.document_store import DocumentStore
from appsketch.ui.domain.layout_generator import LayoutGenerator, install_generated_image
from appsketch.ui.events import (
    DocumentChanged,
    EventBus,
    GenerationFailed,
    GenerationStarted,
    GenerationSucceeded,
    ImageResolutionFailed,
    ImageResolutionFinished,
    ImageResolved,
    PanelChanged,
)
from appsketch.ui.models.editor_models import EditorPanel, EditorState, GenerationStatus

from tests.helpers import EventRecorder, FakeCapability, layout_payload, proposal

FITNESS_ELEMENTS = [
    {"id": "x1", "kind": "header", "content": {"title": "FitTrack"}, "style": {"align": "center"}},
    {
        "id": "x2",
        "kind": "hero",
        "content": {"title": "Move more", "imageRef": "GENERATE_IMAGE: a runner"},
        "style": {"textColor": "#ffffff"},
    },
    {"id": "x3", "kind": "button", "content": {"label": "Start workout"}, "style": {}},
]


def _image_elements(*prompts: str) -> list[dict]:
    return [
        {"kind": "image", "content": {"imageRef": f"GENERATE_IMAGE: {prompt}"}, "style": {}}
        for prompt in prompts
    ]


def _generator(
    capability: FakeCapability,
    store: DocumentStore,
    event_bus: EventBus,
    state: EditorState | None = None,
) -> LayoutGenerator:
    return LayoutGenerator(
        capability,
        store,
        event_bus,
        state or EditorState(),
        request_id_factory=lambda: "gen-test",
    )


class TestLayoutPhase:
    """Tests for the layout request state machine."""

    @pytest.mark.asyncio
    async def test_fitness_app_scenario(self, store: DocumentStore, event_bus: EventBus, recorder: EventRecorder) -> None:
        """A generated layout replaces the document and its hero image resolves later."""
        capability = FakeCapability(proposal(FITNESS_ELEMENTS))
        state = EditorState()
        generator = _generator(capability, store, event_bus, state)

        record = await generator.generate("fitness app")

        assert record is not None
        assert record.status is GenerationStatus.SUCCEEDED
        assert capability.layout_calls == ["fitness app"]
        doc = store.document
        assert doc.app_name == "FitTrack"
        assert [e.kind.value for e in doc.elements] == ["header", "hero", "button"]
        assert not {"x1", "x2", "x3"} & set(doc.ids())
        assert record.element_ids == doc.ids()
        assert state.is_generating is False
        assert state.active_panel is EditorPanel.DESIGN
        assert generator.status is GenerationStatus.IDLE

        await generator.wait_for_images()

        hero = store.document.elements[1]
        assert capability.image_calls == ["a runner"]
        assert not hero.has_pending_image
        assert hero.content.image_ref == "data:image/png;base64,a_runner"
        assert record.images_resolved == 1
        assert recorder.of_type(ImageResolved)[0].element_id == hero.id

    @pytest.mark.asyncio
    async def test_event_sequence_on_success(self, store: DocumentStore, event_bus: EventBus, recorder: EventRecorder) -> None:
        generator = _generator(FakeCapability(proposal(FITNESS_ELEMENTS)), store, event_bus)

        await generator.generate("fitness app")
        await generator.wait_for_images()

        kinds = [type(event) for event in recorder.events]
        assert kinds == [
            GenerationStarted,
            DocumentChanged,
            PanelChanged,
            GenerationSucceeded,
            DocumentChanged,
            ImageResolved,
            ImageResolutionFinished,
        ]
        succeeded = recorder.of_type(GenerationSucceeded)[0]
        assert succeeded.element_count == 3
        assert succeeded.pending_images == 1

    @pytest.mark.asyncio
    async def test_failure_leaves_document_untouched(
        self, store: DocumentStore, event_bus: EventBus, recorder: EventRecorder
    ) -> None:
        """A raising capability produces a failed record and no document change."""
        store.add_component("header")
        before = store.document
        state = EditorState()
        generator = _generator(FakeCapability(RuntimeError("service down")), store, event_bus, state)
        recorder.clear()

        record = await generator.generate("anything")

        assert record is not None
        assert record.status is GenerationStatus.FAILED
        assert record.error == "service down"
        assert store.document is before
        assert state.is_generating is False
        assert state.active_panel is EditorPanel.COMPONENTS
        assert [type(e) for e in recorder.events] == [GenerationStarted, GenerationFailed]
        assert generator.status is GenerationStatus.IDLE
        assert generator.image_tasks == ()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "result",
        [
            None,
            "",
            "not json",
            {"appName": "Empty", "themeColor": "#000", "elements": []},
            {"appName": "Bad", "elements": [{"kind": "carousel"}]},
        ],
    )
    async def test_unusable_results_fail(self, store: DocumentStore, event_bus: EventBus, result: object) -> None:
        before = store.document
        generator = _generator(FakeCapability(result), store, event_bus)

        record = await generator.generate("app")

        assert record is not None
        assert record.status is GenerationStatus.FAILED
        assert store.document is before

    @pytest.mark.asyncio
    async def test_parse_error_is_reported_not_raised(self, store: DocumentStore, event_bus: EventBus, recorder: EventRecorder) -> None:
        generator = _generator(FakeCapability(LayoutParseError("garbled")), store, event_bus)

        record = await generator.generate("app")

        assert record is not None
        assert recorder.of_type(GenerationFailed)[0].error == "garbled"

    @pytest.mark.asyncio
    async def test_raw_mapping_result_is_accepted(self, store: DocumentStore, event_bus: EventBus) -> None:
        generator = _generator(FakeCapability(layout_payload(FITNESS_ELEMENTS[:1])), store, event_bus)

        record = await generator.generate("app")

        assert record is not None
        assert record.status is GenerationStatus.SUCCEEDED
        assert len(store.document) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt", ["", "   ", "\n\t"])
    async def test_blank_prompt_is_noop(
        self, store: DocumentStore, event_bus: EventBus, recorder: EventRecorder, prompt: str
    ) -> None:
        capability = FakeCapability(proposal(FITNESS_ELEMENTS))
        state = EditorState()
        generator = _generator(capability, store, event_bus, state)

        assert await generator.generate(prompt) is None

        assert capability.layout_calls == []
        assert recorder.events == []
        assert state == EditorState()
        assert generator.last_record is None

    @pytest.mark.asyncio
    async def test_second_request_blocked_while_generating(self, store: DocumentStore, event_bus: EventBus) -> None:
        capability = FakeCapability(proposal(FITNESS_ELEMENTS))
        capability.layout_gate = asyncio.Event()
        state = EditorState()
        generator = _generator(capability, store, event_bus, state)

        first = asyncio.create_task(generator.generate("first"))
        await asyncio.sleep(0)
        assert state.is_generating is True
        assert generator.status is GenerationStatus.REQUESTING

        assert await generator.generate("second") is None

        capability.layout_gate.set()
        record = await first
        await generator.wait_for_images()

        assert record is not None
        assert capability.layout_calls == ["first"]

    @pytest.mark.asyncio
    async def test_cancellation_resets_generating_flag(self, store: DocumentStore, event_bus: EventBus) -> None:
        capability = FakeCapability(proposal(FITNESS_ELEMENTS))
        capability.layout_gate = asyncio.Event()
        state = EditorState()
        generator = _generator(capability, store, event_bus, state)

        task = asyncio.create_task(generator.generate("app"))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert state.is_generating is False
        assert store.document == AppDocument()


class TestImagePhase:
    """Tests for background image resolution."""

    @pytest.mark.asyncio
    async def test_images_resolve_sequentially_in_order(self, store: DocumentStore, event_bus: EventBus) -> None:
        seen_pending: list[tuple[bool, ...]] = []

        def snapshot(_prompt: str) -> None:
            seen_pending.append(tuple(e.has_pending_image for e in store.document.elements))

        capability = FakeCapability(proposal(_image_elements("one", "two", "three")), on_image=snapshot)
        generator = _generator(capability, store, event_bus)

        await generator.generate("gallery")
        await generator.wait_for_images()

        assert capability.image_calls == ["one", "two", "three"]
        # Each request starts only after the previous image was patched in.
        assert seen_pending == [(True, True, True), (False, True, True), (False, False, True)]
        assert not any(e.has_pending_image for e in store.document.elements)

    @pytest.mark.asyncio
    async def test_failed_image_keeps_marker_and_loop_continues(
        self, store: DocumentStore, event_bus: EventBus, recorder: EventRecorder
    ) -> None:
        capability = FakeCapability(
            proposal(_image_elements("one", "two", "three")),
            images={"one": RuntimeError("quota"), "two": None},
        )
        generator = _generator(capability, store, event_bus)

        record = await generator.generate("gallery")
        await generator.wait_for_images()

        elements = store.document.elements
        assert capability.image_calls == ["one", "two", "three"]
        assert elements[0].content.image_ref == "GENERATE_IMAGE: one"
        assert elements[1].content.image_ref == "GENERATE_IMAGE: two"
        assert elements[2].content.image_ref == "data:image/png;base64,three"
        assert record is not None
        assert (record.images_resolved, record.images_failed) == (1, 2)
        failures = recorder.of_type(ImageResolutionFailed)
        assert [f.element_id for f in failures] == [elements[0].id, elements[1].id]
        finished = recorder.of_type(ImageResolutionFinished)[0]
        assert (finished.resolved, finished.failed, finished.canceled) == (1, 2, False)

    @pytest.mark.asyncio
    async def test_removed_component_is_skipped(self, store: DocumentStore, event_bus: EventBus) -> None:
        """Removing a component while an earlier image is in flight skips its request."""
        ids: list[str] = []

        def remove_second(prompt: str) -> None:
            if prompt == "one":
                store.remove_component(ids[1])

        capability = FakeCapability(proposal(_image_elements("one", "two", "three")), on_image=remove_second)
        generator = _generator(capability, store, event_bus)

        await generator.generate("gallery")
        ids.extend(store.document.ids())
        await generator.wait_for_images()

        assert capability.image_calls == ["one", "three"]
        assert store.document.ids() == (ids[0], ids[2])
        assert not any(e.has_pending_image for e in store.document.elements)

    @pytest.mark.asyncio
    async def test_component_removed_mid_request_is_not_resurrected(
        self, store: DocumentStore, event_bus: EventBus, recorder: EventRecorder
    ) -> None:
        def remove_target(_prompt: str) -> None:
            store.remove_component(store.document.elements[0].id)

        capability = FakeCapability(proposal(_image_elements("one")), on_image=remove_target)
        generator = _generator(capability, store, event_bus)

        record = await generator.generate("gallery")
        await generator.wait_for_images()

        assert store.document.elements == ()
        assert record is not None
        assert record.images_resolved == 0
        assert recorder.of_type(ImageResolved) == []

    @pytest.mark.asyncio
    async def test_user_replaced_image_is_kept(self, store: DocumentStore, event_bus: EventBus) -> None:
        def user_edit(_prompt: str) -> None:
            target = store.document.elements[0]
            store.update_component(target.id, {"imageRef": "https://example.com/mine.png"})

        capability = FakeCapability(proposal(_image_elements("one")), on_image=user_edit)
        generator = _generator(capability, store, event_bus)

        await generator.generate("gallery")
        await generator.wait_for_images()

        assert store.document.elements[0].content.image_ref == "https://example.com/mine.png"

    @pytest.mark.asyncio
    async def test_concurrent_edits_survive_image_patch(self, store: DocumentStore, event_bus: EventBus) -> None:
        def user_edit(_prompt: str) -> None:
            target = store.document.elements[0]
            store.update_component(target.id, {"backgroundColor": "#123456"})
            store.add_component("text")

        capability = FakeCapability(proposal(_image_elements("one")), on_image=user_edit)
        generator = _generator(capability, store, event_bus)

        await generator.generate("gallery")
        await generator.wait_for_images()

        first, added = store.document.elements
        assert first.style.background_color == "#123456"
        assert first.content.image_ref == "data:image/png;base64,one"
        assert added.content.text == "Add your text here."

    @pytest.mark.asyncio
    async def test_cancel_stops_before_next_request(
        self, store: DocumentStore, event_bus: EventBus, recorder: EventRecorder
    ) -> None:
        generator: LayoutGenerator | None = None

        def cancel_after_first(prompt: str) -> None:
            assert generator is not None
            generator.cancel_image_resolution()

        capability = FakeCapability(proposal(_image_elements("one", "two")), on_image=cancel_after_first)
        generator = _generator(capability, store, event_bus)

        await generator.generate("gallery")
        await generator.wait_for_images()

        # The in-flight request still lands; the next one is never sent.
        assert capability.image_calls == ["one"]
        assert store.document.elements[0].content.image_ref == "data:image/png;base64,one"
        assert store.document.elements[1].has_pending_image
        assert recorder.of_type(ImageResolutionFinished)[0].canceled is True

    @pytest.mark.asyncio
    async def test_no_pending_images_starts_no_task(self, store: DocumentStore, event_bus: EventBus, recorder: EventRecorder) -> None:
        generator = _generator(FakeCapability(proposal(FITNESS_ELEMENTS[:1])), store, event_bus)

        await generator.generate("plain")

        assert generator.image_tasks == ()
        assert recorder.of_type(ImageResolutionFinished) == []


class TestInstallGeneratedImage:
    def test_patches_when_marker_matches(self) -> None:
        doc = AppDocument(elements=proposal(_image_elements("one")).elements)
        element_id = doc.elements[0].id

        updated = install_generated_image(doc, element_id, "GENERATE_IMAGE: one", "data:x")

        assert updated.get(element_id).content.image_ref == "data:x"

    def test_ignores_changed_marker(self) -> None:
        doc = AppDocument(elements=proposal(_image_elements("one")).elements)

        assert install_generated_image(doc, doc.elements[0].id, "GENERATE_IMAGE: other", "data:x") is doc

    def test_ignores_missing_component(self) -> None:
        doc = AppDocument()

        assert install_generated_image(doc, "missing", "GENERATE_IMAGE: one", "data:x") is doc

"""Layout generator domain service.

Drives AI layout generation: one structured layout request, a wholesale
document replacement, then a background run that resolves placeholder
images one at a time and patches each result back by component id.

Layout phase: ``IDLE -> REQUESTING -> (SUCCEEDED | FAILED) -> IDLE``.
The image run is not part of that state machine; it starts after a
successful replacement and does not hold ``is_generating``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from ...ai.capability import GenerationCapability, LayoutProposal, parse_layout_payload
from ...editor import document_ops
from ...editor.document_model import AppDocument, AppElement, pending_image_prompt
from ..events import (
    EventBus,
    GenerationFailed,
    GenerationStarted,
    GenerationSucceeded,
    ImageResolutionFailed,
    ImageResolutionFinished,
    ImageResolved,
    PanelChanged,
)
from ..models.editor_models import EditorPanel, EditorState, GenerationRecord, GenerationStatus
from .document_store import DocumentStore

LOGGER = logging.getLogger(__name__)


def install_generated_image(
    doc: AppDocument,
    element_id: str,
    marker: str,
    reference: str,
) -> AppDocument:
    """Patch ``reference`` into the component if it still awaits ``marker``.

    A component that was removed, or whose image the user replaced while the
    request was in flight, is left alone.
    """

    element = doc.get(element_id)
    if element is None or element.content.image_ref != marker:
        return doc
    return document_ops.patch_component_by_id(doc, element_id, {"imageRef": reference})


@dataclass(slots=True)
class _ImageTarget:
    element_id: str
    marker: str
    prompt: str


@dataclass(slots=True)
class _ImageRun:
    record: GenerationRecord
    targets: tuple[_ImageTarget, ...]
    canceled: bool = False
    task: asyncio.Task[None] | None = field(default=None, repr=False)


class LayoutGenerator:
    """Domain service for AI layout generation.

    Failures of the external service never propagate out of :meth:`generate`;
    they are logged and published as events, and the document is left as it
    was before the request.

    Events Emitted:
        - GenerationStarted: When a layout request is issued
        - GenerationSucceeded: After the layout replaced the document
        - GenerationFailed: When the layout request failed
        - PanelChanged: When the editor switches to the design panel
        - ImageResolved: After each image is patched in
        - ImageResolutionFailed: When an image request produced nothing
        - ImageResolutionFinished: When an image run ends
    """

    def __init__(
        self,
        capability: GenerationCapability,
        store: DocumentStore,
        event_bus: EventBus,
        state: EditorState,
        *,
        request_id_factory: Callable[[], str] | None = None,
    ) -> None:
        """Initialize the layout generator.

        Args:
            capability: Service producing layouts and images.
            store: The document store that receives the generated layout.
            event_bus: The event bus for publishing events.
            state: Shared editor state; owns the generating flag and panel.
            request_id_factory: Optional factory for request ids.
        """
        self._capability = capability
        self._store = store
        self._bus = event_bus
        self._state = state
        self._new_request_id = request_id_factory or (lambda: f"gen-{uuid.uuid4().hex[:8]}")
        self._status = GenerationStatus.IDLE
        self._last_record: GenerationRecord | None = None
        self._image_runs: dict[str, _ImageRun] = {}

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def status(self) -> GenerationStatus:
        return self._status

    @property
    def last_record(self) -> GenerationRecord | None:
        return self._last_record

    @property
    def image_tasks(self) -> tuple[asyncio.Task[None], ...]:
        """Background image runs that have not finished yet."""

        return tuple(
            run.task for run in self._image_runs.values() if run.task is not None and not run.task.done()
        )

    def is_generating(self) -> bool:
        return self._state.is_generating

    # ------------------------------------------------------------------
    # Layout phase
    # ------------------------------------------------------------------

    async def generate(self, prompt: str) -> GenerationRecord | None:
        """Generate a layout for ``prompt`` and install it.

        Args:
            prompt: Free-text app description. Blank prompts send nothing.

        Returns:
            The request record, or None when the prompt was blank or another
            request is already in flight.

        Emits:
            GenerationStarted: Before the layout request is sent.
            GenerationSucceeded: After the layout replaced the document.
            GenerationFailed: When the request raised or returned no layout.
            PanelChanged: When a successful layout switches to design.
        """

        if not prompt or not prompt.strip():
            LOGGER.debug("LayoutGenerator.generate: blank prompt ignored")
            return None
        if self._state.is_generating:
            LOGGER.debug("LayoutGenerator.generate: request already in flight")
            return None

        record = GenerationRecord(request_id=self._new_request_id(), prompt=prompt)
        self._last_record = record
        self._status = GenerationStatus.REQUESTING
        self._state.is_generating = True
        LOGGER.debug(
            "LayoutGenerator.generate: request_id=%s, prompt_length=%d",
            record.request_id,
            len(prompt),
        )
        self._bus.publish(GenerationStarted(request_id=record.request_id, prompt=prompt))

        try:
            result = await self._capability.generate_layout(prompt)
        except asyncio.CancelledError:
            self._state.is_generating = False
            self._status = GenerationStatus.IDLE
            record.mark_failed("canceled")
            raise
        except Exception as exc:
            LOGGER.warning(
                "Layout generation failed, request_id=%s: %s",
                record.request_id,
                exc,
                exc_info=True,
            )
            return self._fail(record, str(exc) or type(exc).__name__)

        proposal = self._coerce_proposal(result)
        if proposal is None:
            LOGGER.warning("Layout generation returned no usable layout, request_id=%s", record.request_id)
            return self._fail(record, "empty or unparseable layout response")

        document = self._store.replace_all(proposal.app_name, proposal.theme_color, proposal.elements)
        record.mark_succeeded(document.ids())
        self._status = GenerationStatus.SUCCEEDED
        self._state.is_generating = False
        self._switch_panel(EditorPanel.DESIGN)

        pending = document_ops.pending_image_components(document)
        LOGGER.debug(
            "LayoutGenerator: installed %d element(s), %d pending image(s), request_id=%s",
            len(document),
            len(pending),
            record.request_id,
        )
        self._bus.publish(GenerationSucceeded(
            request_id=record.request_id,
            element_count=len(document),
            pending_images=len(pending),
        ))
        if pending:
            self._start_image_run(record, pending)

        self._status = GenerationStatus.IDLE
        return record

    def _fail(self, record: GenerationRecord, error: str) -> GenerationRecord:
        """Mark ``record`` failed, release the generating flag and publish the failure."""
        record.mark_failed(error)
        self._status = GenerationStatus.FAILED
        self._state.is_generating = False
        self._bus.publish(GenerationFailed(request_id=record.request_id, error=error))
        self._status = GenerationStatus.IDLE
        return record

    def _coerce_proposal(self, result: Any) -> LayoutProposal | None:
        """Accept a parsed proposal or a raw payload; None when nothing usable came back."""
        if result is None:
            return None
        if isinstance(result, LayoutProposal):
            return result if result.elements else None
        if isinstance(result, (str, bytes, Mapping)):
            return parse_layout_payload(result)
        LOGGER.debug("Unexpected layout result type %s", type(result).__name__)
        return None

    def _switch_panel(self, panel: EditorPanel) -> None:
        if self._state.active_panel is panel:
            return
        self._state.active_panel = panel
        self._bus.publish(PanelChanged(panel=panel.value))

    # ------------------------------------------------------------------
    # Image phase
    # ------------------------------------------------------------------

    def _start_image_run(self, record: GenerationRecord, pending: tuple[AppElement, ...]) -> None:
        """Snapshot each pending marker and resolve them on a background task."""
        targets = tuple(
            _ImageTarget(
                element_id=element.id,
                marker=element.content.image_ref or "",
                prompt=pending_image_prompt(element.content.image_ref) or "",
            )
            for element in pending
        )
        run = _ImageRun(record=record, targets=targets)
        run.task = asyncio.create_task(
            self._resolve_images(run),
            name=f"resolve-images-{record.request_id}",
        )
        self._image_runs[record.request_id] = run
        run.task.add_done_callback(lambda _task, key=record.request_id: self._image_runs.pop(key, None))

    async def _resolve_images(self, run: _ImageRun) -> None:
        record = run.record
        try:
            for target in run.targets:
                if run.canceled:
                    LOGGER.debug("Image run canceled, request_id=%s", record.request_id)
                    break
                current = self._store.get(target.element_id)
                if current is None or current.content.image_ref != target.marker:
                    LOGGER.debug(
                        "Skipping image for %s: component removed or image replaced",
                        target.element_id,
                    )
                    continue
                await self._resolve_one(record, target)
        finally:
            LOGGER.debug(
                "Image run finished, request_id=%s, resolved=%d, failed=%d",
                record.request_id,
                record.images_resolved,
                record.images_failed,
            )
            self._bus.publish(ImageResolutionFinished(
                request_id=record.request_id,
                resolved=record.images_resolved,
                failed=record.images_failed,
                canceled=run.canceled,
            ))

    async def _resolve_one(self, record: GenerationRecord, target: _ImageTarget) -> None:
        if not target.prompt:
            self._image_failed(record, target, "pending image has no prompt")
            return
        try:
            reference = await self._capability.generate_image(target.prompt)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning(
                "Image generation failed for element %s: %s",
                target.element_id,
                exc,
            )
            self._image_failed(record, target, str(exc) or type(exc).__name__)
            return
        if not reference:
            LOGGER.warning("Image generation returned nothing for element %s", target.element_id)
            self._image_failed(record, target, "no image returned")
            return

        document = self._store.apply(
            install_generated_image,
            target.element_id,
            target.marker,
            reference,
            reason="patch_component_by_id",
        )
        installed = document.get(target.element_id)
        if installed is None or installed.content.image_ref != reference:
            LOGGER.debug("Discarding image for %s: component changed during request", target.element_id)
            return
        record.images_resolved += 1
        self._bus.publish(ImageResolved(request_id=record.request_id, element_id=target.element_id))

    def _image_failed(self, record: GenerationRecord, target: _ImageTarget, error: str) -> None:
        record.images_failed += 1
        self._bus.publish(ImageResolutionFailed(
            request_id=record.request_id,
            element_id=target.element_id,
            error=error,
        ))

    def cancel_image_resolution(self, request_id: str | None = None) -> None:
        """Stop image runs before their next request.

        A request already in flight still lands if its target is unchanged.

        Args:
            request_id: Run to cancel; every run when omitted.

        Emits:
            ImageResolutionFinished: From each run once it stops, with
                ``canceled`` set.
        """

        for key, run in self._image_runs.items():
            if request_id is None or key == request_id:
                run.canceled = True

    async def wait_for_images(self) -> None:
        """Wait until every outstanding image run has finished."""

        tasks = self.image_tasks
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["LayoutGenerator", "install_generated_image"]

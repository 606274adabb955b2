"""
Import session state machine.

One ImportSession drives one upload through the pipeline:

    idle -> extracting-text -> extracting-structure -> ready-for-review
         -> applied | discarded | failed

Stages run one after another as a background task; the caller observes
them through an async iterator of ProgressEvent. Discarding the session
stops that iterator immediately and any result that arrives afterwards is
dropped. Structure-stage failures keep the extracted text so that a
regenerate only repeats the service call.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from .canonicalizer import IdFactory, canonicalize
from .errors import (
    STAGE_TEXT,
    CorruptFile,
    CVImportError,
    EmptyOrInsufficientText,
    InvalidTransition,
    ServiceUnavailable,
    SessionCancelled,
    UnsupportedFormat,
)
from .extractors import TextExtractor, get_extractor
from .logging_utils import LOG, fmt_failure
from .models import CanonicalDraft
from .services import ExtractionRequest, ExtractionService
from .shared import ExtractedText, PageProgress, ProgressEvent, SessionState, SourceFormat, UploadedFile
from .sniffer import sniff_format
from .verification import SchemaVerifier

MIN_TEXT_LENGTH = 50

Applier = Callable[[CanonicalDraft], None]
Observer = Callable[[ProgressEvent], None]
ExtractorFactory = Callable[[SourceFormat], Optional[TextExtractor]]

_DONE = object()


@dataclass(frozen=True)
class SessionFailure:
    """Which stage failed and why; the error is the typed exception."""
    stage: SessionState
    error: CVImportError

    @property
    def kind(self) -> str:
        return self.error.kind

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def recovery(self) -> str:
        return self.error.recovery

    def as_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "kind": self.kind,
            "message": self.message,
            "recovery": self.recovery,
        }


class ImportSession:
    """
    State machine for a single CV import.

    The session owns its extracted text and at most one canonical draft;
    nothing is shared with other sessions.
    """

    def __init__(
        self,
        service: ExtractionService,
        *,
        min_text_length: int = MIN_TEXT_LENGTH,
        verifier: Optional[SchemaVerifier] = None,
        extractor_factory: ExtractorFactory = get_extractor,
        id_factory: Optional[IdFactory] = None,
    ):
        self.session_id = uuid.uuid4().hex[:8]
        self.service = service
        self.min_text_length = int(min_text_length)
        self.verifier = verifier or SchemaVerifier()
        self._extractor_factory = extractor_factory
        self._id_factory = id_factory

        self.state = SessionState.Idle
        self.text: Optional[ExtractedText] = None
        self.draft: Optional[CanonicalDraft] = None
        self.failure: Optional[SessionFailure] = None

        self._cancelled = False
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None

    # --------------------------
    # Public operations
    # --------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def produced_by_extraction(self) -> bool:
        return self.draft is not None and self.draft.produced_by_extraction

    @property
    def can_regenerate(self) -> bool:
        if self._cancelled or self.text is None:
            return False
        if self.state is SessionState.ReadyForReview:
            return True
        return (
            self.state is SessionState.Failed
            and self.failure is not None
            and self.failure.stage is SessionState.ExtractingStructure
        )

    def submit(self, upload: UploadedFile) -> AsyncIterator[ProgressEvent]:
        """
        Start the import of an upload and return its progress events.

        The session is in extracting-text as soon as this returns, so it can
        be discarded before its events are consumed. The stages themselves
        only run while the returned iterator is being consumed; it ends when
        the session reaches ready-for-review or failed, or as soon as the
        session is discarded.

        Raises:
            SessionCancelled: If the session was already discarded
            InvalidTransition: If the session has already been used
        """
        self._require_live()
        if self.state is not SessionState.Idle:
            raise InvalidTransition(f"cannot submit a file in state {self.state.value}")
        self.state = SessionState.ExtractingText
        LOG.info("[%s] Importing %s (%d bytes)", self.session_id, upload.filename, upload.size)
        return self._pump(lambda: self._run_submit(upload))

    def regenerate(self) -> AsyncIterator[ProgressEvent]:
        """
        Ask the service again for the cached text, replacing the current draft.

        Text extraction is not repeated.

        Raises:
            SessionCancelled: If the session was already discarded
            InvalidTransition: If there is no reusable text in this state
        """
        self._require_live()
        if not self.can_regenerate:
            raise InvalidTransition(f"cannot regenerate in state {self.state.value}")
        self.draft = None
        self.failure = None
        self.state = SessionState.ExtractingStructure
        LOG.info("[%s] Regenerating draft from cached text", self.session_id)
        return self._pump(self._run_structure)

    def apply(self, applier: Applier) -> bool:
        """
        Hand the draft to the applier and close the session.

        Returns:
            True if the draft was applied, False if there was nothing to
            apply (not ready, already applied, discarded or failed)
        """
        if self._cancelled or self.state is not SessionState.ReadyForReview or self.draft is None:
            LOG.debug("[%s] apply ignored in state %s", self.session_id, self.state.value)
            return False
        applier(self.draft)
        self.state = SessionState.Applied
        LOG.info("[%s] Draft applied", self.session_id)
        return True

    def discard(self) -> bool:
        """
        Abandon the session; pending work is cancelled and late results dropped.

        Returns:
            True if the session was discarded, False if nothing was submitted
            yet or it had already ended
        """
        if self.state not in (
            SessionState.ExtractingText,
            SessionState.ExtractingStructure,
            SessionState.ReadyForReview,
        ):
            return False
        self._cancelled = True
        self.state = SessionState.Discarded
        self.text = None
        self.draft = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._queue is not None:
            self._queue.put_nowait(_DONE)
        LOG.info("[%s] Session discarded", self.session_id)
        return True

    async def run(self, upload: UploadedFile, observer: Optional[Observer] = None) -> CanonicalDraft:
        """
        Submit an upload, forward every event to the observer and return the draft.

        Raises:
            CVImportError: The typed failure the session ended with
        """
        async for event in self.submit(upload):
            if observer is not None:
                observer(event)
        return self._outcome()

    async def run_regenerate(self, observer: Optional[Observer] = None) -> CanonicalDraft:
        """Like run(), for regenerate()."""
        async for event in self.regenerate():
            if observer is not None:
                observer(event)
        return self._outcome()

    # --------------------------
    # Stages
    # --------------------------

    async def _run_submit(self, upload: UploadedFile) -> None:
        self._enter(SessionState.ExtractingText)
        try:
            text = await self._extract_text(upload)
        except CVImportError as e:
            self._fail(SessionState.ExtractingText, e)
            return
        except Exception as e:
            LOG.debug("[%s] unexpected text extraction error", self.session_id, exc_info=True)
            error = CorruptFile(f"unreadable file: {e}")
            error.__cause__ = e
            self._fail(SessionState.ExtractingText, error)
            return
        if self._cancelled:
            return
        self.text = text
        await self._run_structure()

    async def _extract_text(self, upload: UploadedFile) -> ExtractedText:
        source_format = sniff_format(upload)
        extractor = self._extractor_factory(source_format)
        if extractor is None:
            raise UnsupportedFormat(f"no text extractor registered for {source_format.value}")

        text = await extractor.extract(upload, progress=self._on_page)
        LOG.info(
            "[%s] Extracted %d chars from %d %s part(s) in %.2fs",
            self.session_id,
            text.length,
            text.part_count,
            text.source_format.value,
            text.duration_s,
        )
        if text.length < self.min_text_length:
            raise EmptyOrInsufficientText(
                f"only {text.length} characters of text could be extracted "
                f"(at least {self.min_text_length} expected)"
            )
        return text

    async def _run_structure(self) -> None:
        self._enter(SessionState.ExtractingStructure)
        try:
            draft = await self._structure(self.text)
        except CVImportError as e:
            self._fail(SessionState.ExtractingStructure, e)
            return
        except Exception as e:
            LOG.debug("[%s] unexpected structuring error", self.session_id, exc_info=True)
            error = ServiceUnavailable(f"could not build a draft: {e}")
            error.__cause__ = e
            self._fail(SessionState.ExtractingStructure, error)
            return
        if self._cancelled:
            return
        self.draft = draft
        self._enter(SessionState.ReadyForReview)

    async def _structure(self, text: ExtractedText) -> CanonicalDraft:
        request = ExtractionRequest(text=text.text, schema=self.verifier.schema)
        try:
            response = await self.service.extract(request)
        except CVImportError:
            raise
        except Exception as e:
            raise ServiceUnavailable(f"{self.service.name()} service failed: {e}") from e

        if self._cancelled:
            raise SessionCancelled()

        error = response.to_exception()
        if error is not None:
            raise error
        structured = self.verifier.require_valid(response.entities)
        return canonicalize(structured, self._id_factory)

    # --------------------------
    # Event plumbing
    # --------------------------

    async def _pump(self, work: Callable[[], Awaitable[None]]) -> AsyncIterator[ProgressEvent]:
        if self._cancelled:
            return
        queue: asyncio.Queue = asyncio.Queue()
        self._queue = queue
        task = asyncio.create_task(work())
        self._task = task
        task.add_done_callback(lambda _t: queue.put_nowait(_DONE))
        try:
            while True:
                item = await queue.get()
                if item is _DONE or self._cancelled:
                    break
                yield item
        finally:
            if not task.done():
                task.cancel()
            if self._queue is queue:
                self._queue = None
                self._task = None
        if task.done() and not task.cancelled() and task.exception() is not None:
            raise task.exception()

    def _emit(self, event: ProgressEvent) -> None:
        if self._cancelled:
            return
        if self._queue is not None:
            self._queue.put_nowait(event)

    def _enter(self, state: SessionState) -> None:
        if self._cancelled:
            return
        self.state = state
        LOG.info("[%s] %s", self.session_id, state.value)
        self._emit(ProgressEvent(stage=state))

    def _on_page(self, progress: PageProgress) -> None:
        if self._cancelled:
            return
        LOG.debug("[%s] page %d/%d", self.session_id, progress.current_page, progress.total_pages)
        self._emit(ProgressEvent(stage=SessionState.ExtractingText, detail=progress))

    def _fail(self, stage: SessionState, error: CVImportError) -> None:
        if self._cancelled:
            return
        if error.stage == STAGE_TEXT:
            self.text = None
        self.draft = None
        self.failure = SessionFailure(stage=stage, error=error)
        self.state = SessionState.Failed
        LOG.warning(
            "[%s] %s failed: %s",
            self.session_id,
            stage.value,
            fmt_failure(error.kind, error.message, error.recovery),
        )
        self._emit(ProgressEvent(stage=SessionState.Failed, detail=self.failure))

    def _require_live(self) -> None:
        if self._cancelled:
            raise SessionCancelled()

    def _outcome(self) -> CanonicalDraft:
        if self._cancelled:
            raise SessionCancelled()
        if self.failure is not None:
            raise self.failure.error
        if self.draft is None:
            raise InvalidTransition(f"no draft available in state {self.state.value}")
        return self.draft


class ImportFlow:
    """
    A user-facing import flow: at most one active session at a time.

    Starting a new import discards the session still in flight.
    """

    def __init__(self, session_factory: Callable[[], ImportSession]):
        self._session_factory = session_factory
        self.active: Optional[ImportSession] = None

    def start(self, upload: UploadedFile) -> AsyncIterator[ProgressEvent]:
        self.discard_active()
        self.active = self._session_factory()
        return self.active.submit(upload)

    def discard_active(self) -> bool:
        if self.active is None:
            return False
        discarded = self.active.discard()
        self.active = None
        return discarded


__all__ = [
    "ImportSession",
    "ImportFlow",
    "SessionFailure",
    "MIN_TEXT_LENGTH",
    "Applier",
    "Observer",
]

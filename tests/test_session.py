"""Tests for the import session state machine."""

import asyncio
from unittest.mock import MagicMock

import pytest

from cvimport.document import CVDocument
from cvimport.errors import (
    CorruptFile,
    EmptyOrInsufficientText,
    InvalidTransition,
    SchemaViolation,
    ServicePaymentRequired,
    ServiceUnavailable,
    SessionCancelled,
    UnsupportedFormat,
)
from cvimport.extractors import TextExtractor
from cvimport.services import ExtractionResponse, ExtractionService, ServiceErrorCode
from cvimport.session import ImportFlow, ImportSession, SessionFailure
from cvimport.shared import PageProgress, SessionState, UploadedFile

from conftest import (
    CountingExtractorFactory,
    ScriptedService,
    make_docx,
    make_docx_with_broken_deflate,
    make_pdf,
    valid_entities,
)

PAGE_TEXT = "Jean Dupont, Développeur - Acme Corp 2020-2023 - Python, Django, PostgreSQL"
PDF_UPLOAD = UploadedFile(data=b"%PDF-1.4 fake", filename="cv.pdf")


def _session(script, pdf_pages=None, **kwargs):
    service = ScriptedService(script)
    factory = CountingExtractorFactory(pdf_pages)
    session = ImportSession(service, extractor_factory=factory, **kwargs)
    return session, service, factory


def _drain(stream):
    async def collect():
        return [event async for event in stream]

    return asyncio.run(collect())


def _stages(events):
    return [e.stage for e in events if not e.is_page_progress]


def _pages(events):
    return [e.detail for e in events if e.is_page_progress]


class TestSubmit:
    """Tests for a full submit() run."""

    def test_pdf_happy_path_events(self, counter_ids):
        session, service, factory = _session([valid_entities()], pdf_pages=[PAGE_TEXT, PAGE_TEXT], id_factory=counter_ids)
        events = _drain(session.submit(PDF_UPLOAD))

        assert _stages(events) == [
            SessionState.ExtractingText,
            SessionState.ExtractingStructure,
            SessionState.ReadyForReview,
        ]
        assert _pages(events) == [PageProgress(1, 2), PageProgress(2, 2)]
        assert events[1].stage is SessionState.ExtractingText
        assert session.state is SessionState.ReadyForReview
        assert session.produced_by_extraction is True
        assert service.calls == 1
        assert factory.calls == 1

    def test_page_events_match_page_count(self):
        pages = [f"{PAGE_TEXT} (page {i})" for i in range(1, 8)]
        session, _, _ = _session([valid_entities()], pdf_pages=pages)
        progress = _pages(_drain(session.submit(PDF_UPLOAD)))

        assert len(progress) == 7
        assert progress[-1].current_page == progress[-1].total_pages == 7
        assert [p.current_page for p in progress] == list(range(1, 8))

    def test_real_two_page_pdf(self):
        """A 2-page PDF with a name line and an Acme Corp entry yields one experience."""
        data = make_pdf([
            "Jean Dupont, Developpeur\njean.dupont@example.com",
            "Experience\nAcme Corp - Backend developer, 2020 - 2023",
        ])
        service = ScriptedService([valid_entities()])
        session = ImportSession(service)
        draft = asyncio.run(session.run(UploadedFile(data=data, filename="cv.pdf")))

        assert session.text.length > 0
        assert "Acme Corp" in session.text.text
        assert "Acme Corp" in service.requests[0].text
        assert len(draft.experience) == 1
        assert draft.experience[0].id
        assert draft.experience[0].company == "Acme Corp"

    def test_docx_full_text_is_sent(self, cv_docx):
        session, service, _ = _session([valid_entities()])
        asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx")))

        sent = service.requests[0].text
        assert sent.startswith("Jean Dupont, Développeur")
        assert sent.endswith("Université de Lyon - Master Informatique")
        assert service.requests[0].schema["required"] == ["personalInfo"]

    def test_run_forwards_events_to_observer(self, cv_docx):
        session, _, _ = _session([valid_entities()])
        seen = []
        draft = asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx"), observer=seen.append))

        assert draft is session.draft
        assert _stages(seen)[-1] is SessionState.ReadyForReview
        assert _pages(seen) == []

    def test_submit_twice(self, cv_docx):
        session, _, _ = _session([valid_entities()])
        _drain(session.submit(UploadedFile(data=cv_docx, filename="cv.docx")))
        with pytest.raises(InvalidTransition):
            session.submit(UploadedFile(data=cv_docx, filename="cv.docx"))


class TestTextStageFailures:
    """Failures before the service is called."""

    def test_renamed_text_file(self):
        session, service, factory = _session([valid_entities()])
        upload = UploadedFile(data=b"plain text renamed to docx " * 5, filename="cv.docx")
        events = _drain(session.submit(upload))

        assert _stages(events) == [SessionState.ExtractingText, SessionState.Failed]
        assert session.state is SessionState.Failed
        assert isinstance(session.failure.error, CorruptFile)
        assert session.failure.stage is SessionState.ExtractingText
        assert events[-1].detail is session.failure
        assert factory.calls == 0
        assert service.calls == 0
        assert session.text is None

    def test_run_raises_typed_error(self):
        session, _, _ = _session([valid_entities()])
        with pytest.raises(UnsupportedFormat):
            asyncio.run(session.run(UploadedFile(data=b"hello", filename="cv.txt")))

    def test_insufficient_text(self):
        session, service, _ = _session([valid_entities()])
        upload = UploadedFile(data=make_docx(["Jean Dupont", "CV"]), filename="cv.docx")
        with pytest.raises(EmptyOrInsufficientText) as exc:
            asyncio.run(session.run(upload))

        assert exc.value.recovery == "reupload"
        assert service.calls == 0
        assert session.text is None
        assert not session.can_regenerate

    def test_min_text_length_is_configurable(self):
        session, service, _ = _session([valid_entities()], min_text_length=5)
        upload = UploadedFile(data=make_docx(["Jean Dupont", "CV"]), filename="cv.docx")
        asyncio.run(session.run(upload))
        assert service.calls == 1

    def test_scanned_pdf(self):
        session, service, _ = _session([valid_entities()], pdf_pages=["", "   "])
        events = _drain(session.submit(PDF_UPLOAD))

        assert len(_pages(events)) == 2
        assert session.failure.kind == "no_extractable_text"
        assert service.calls == 0

    def test_regenerate_not_allowed_after_text_failure(self):
        session, _, _ = _session([valid_entities()])
        _drain(session.submit(UploadedFile(data=b"nope", filename="cv.docx")))
        with pytest.raises(InvalidTransition):
            session.regenerate()

    def test_broken_deflate_stream_fails_the_session(self):
        """A DOCX whose compressed body cannot be inflated ends in Failed."""
        session, service, _ = _session([valid_entities()])
        upload = UploadedFile(data=make_docx_with_broken_deflate(PAGE_TEXT.split(", ")), filename="cv.docx")
        events = _drain(session.submit(upload))

        assert _stages(events) == [SessionState.ExtractingText, SessionState.Failed]
        assert session.state is SessionState.Failed
        assert isinstance(session.failure.error, CorruptFile)
        assert session.failure.stage is SessionState.ExtractingText
        assert session.text is None
        assert service.calls == 0

    def test_unexpected_extractor_error_is_typed(self):
        class BrokenExtractor(TextExtractor):
            async def extract(self, upload, progress=None):
                raise RuntimeError("decoder crashed")

        session = ImportSession(ScriptedService([valid_entities()]), extractor_factory=lambda fmt: BrokenExtractor())
        with pytest.raises(CorruptFile) as exc:
            asyncio.run(session.run(PDF_UPLOAD))

        assert "decoder crashed" in exc.value.message
        assert isinstance(exc.value.__cause__, RuntimeError)
        assert session.state is SessionState.Failed
        assert session.failure.kind == "corrupt_file"


class TestStructureStageFailures:
    """Failures reported by or after the extraction service."""

    def test_missing_full_name_is_schema_violation(self, cv_docx):
        entities = valid_entities()
        del entities["personalInfo"]["fullName"]
        session, _, _ = _session([entities])

        with pytest.raises(SchemaViolation):
            asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx")))

        assert session.draft is None
        assert session.failure.stage is SessionState.ExtractingStructure
        assert session.text is not None
        assert session.can_regenerate

    def test_payment_required_keeps_text(self, cv_docx):
        session, service, _ = _session([ExtractionResponse.failure(ServiceErrorCode.PaymentRequired, "HTTP 402")])
        events = _drain(session.submit(UploadedFile(data=cv_docx, filename="cv.docx")))

        assert _stages(events)[-1] is SessionState.Failed
        assert isinstance(session.failure.error, ServicePaymentRequired)
        assert session.failure.recovery == "pay"
        assert session.text is not None
        assert "Acme Corp" in session.text.text
        assert session.draft is None
        assert session.produced_by_extraction is False
        assert service.calls == 1

    def test_unexpected_service_exception(self, cv_docx):
        session, _, _ = _session([ConnectionResetError("peer reset")])
        with pytest.raises(ServiceUnavailable) as exc:
            asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx")))
        assert "peer reset" in exc.value.message

    def test_unexpected_validation_error_is_typed(self, cv_docx):
        verifier = MagicMock(schema={})
        verifier.require_valid.side_effect = TypeError("unhashable type")
        session, service, _ = _session([valid_entities()], verifier=verifier)

        with pytest.raises(ServiceUnavailable):
            asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx")))

        assert session.state is SessionState.Failed
        assert session.failure.stage is SessionState.ExtractingStructure
        assert session.text is not None
        assert session.can_regenerate

    def test_failure_record(self, cv_docx):
        session, _, _ = _session([ExtractionResponse.failure(ServiceErrorCode.RateLimited)])
        _drain(session.submit(UploadedFile(data=cv_docx, filename="cv.docx")))

        assert isinstance(session.failure, SessionFailure)
        assert session.failure.as_dict() == {
            "stage": "extracting-structure",
            "kind": "rate_limited",
            "message": "extraction service rate limit reached, try again later",
            "recovery": "retry",
        }


class TestRegenerate:
    """Tests for regenerate()."""

    def test_one_service_call_zero_extractions(self, cv_docx):
        session, service, factory = _session([valid_entities()])
        asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx")))
        first = session.draft

        events = _drain(session.regenerate())

        assert _stages(events) == [SessionState.ExtractingStructure, SessionState.ReadyForReview]
        assert service.calls == 2
        assert factory.calls == 1
        assert service.requests[1].text == service.requests[0].text
        assert session.draft is not first
        assert set(session.draft.entity_ids()).isdisjoint(first.entity_ids())

    def test_pdf_pages_are_not_decoded_again(self):
        session, _, factory = _session([valid_entities()], pdf_pages=[PAGE_TEXT, PAGE_TEXT, PAGE_TEXT])
        _drain(session.submit(PDF_UPLOAD))
        reads = factory.decoder.reads

        events = _drain(session.regenerate())

        assert _pages(events) == []
        assert factory.decoder.reads == reads

    def test_regenerate_after_structure_failure(self, cv_docx):
        session, service, factory = _session([
            ExtractionResponse.failure(ServiceErrorCode.ServiceUnavailable, "timeout"),
            valid_entities(),
        ])
        _drain(session.submit(UploadedFile(data=cv_docx, filename="cv.docx")))
        assert session.state is SessionState.Failed

        draft = asyncio.run(session.run_regenerate())

        assert session.state is SessionState.ReadyForReview
        assert session.failure is None
        assert draft.personal_info.full_name == "Jean Dupont"
        assert service.calls == 2
        assert factory.calls == 1

    def test_regenerate_failure_drops_previous_draft(self, cv_docx):
        session, _, _ = _session([valid_entities(), ExtractionResponse.failure(ServiceErrorCode.RateLimited)])
        asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx")))
        _drain(session.regenerate())

        assert session.state is SessionState.Failed
        assert session.draft is None
        assert session.produced_by_extraction is False

    def test_regenerate_from_idle(self):
        session, _, _ = _session([valid_entities()])
        with pytest.raises(InvalidTransition):
            session.regenerate()


class TestApplyAndDiscard:
    """Tests for apply() and discard()."""

    def test_apply_replaces_document(self, cv_docx):
        session, _, _ = _session([valid_entities()])
        asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx")))
        document = CVDocument()

        assert session.apply(document.replace_with) is True
        assert session.state is SessionState.Applied
        assert document.experience[0].company == "Acme Corp"
        assert document.used_extraction_import is True

    def test_apply_only_once(self, cv_docx):
        session, _, _ = _session([valid_entities()])
        asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx")))
        applied = []

        assert session.apply(applied.append) is True
        assert session.apply(applied.append) is False
        assert applied == [session.draft]

    def test_apply_before_ready_is_noop(self):
        session, _, _ = _session([valid_entities()])
        applied = []
        assert session.apply(applied.append) is False
        assert applied == []
        assert session.state is SessionState.Idle

    def test_applier_error_keeps_draft(self, cv_docx):
        session, _, _ = _session([valid_entities()])
        asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx")))

        def broken(draft):
            raise IOError("disk full")

        with pytest.raises(IOError):
            session.apply(broken)
        assert session.state is SessionState.ReadyForReview
        assert session.draft is not None

    def test_discard_after_review(self, cv_docx):
        session, _, _ = _session([valid_entities()])
        asyncio.run(session.run(UploadedFile(data=cv_docx, filename="cv.docx")))

        assert session.discard() is True
        assert session.state is SessionState.Discarded
        assert session.draft is None
        assert session.text is None
        assert session.discard() is False
        assert session.apply(lambda d: None) is False
        with pytest.raises(SessionCancelled):
            session.regenerate()

    def test_discard_before_submit_is_noop(self):
        session, _, _ = _session([valid_entities()])
        assert session.discard() is False
        assert session.state is SessionState.Idle
        assert not session.cancelled

    def test_discard_before_events_are_consumed(self, cv_docx):
        """submit() enters extracting-text at once; nothing runs until iterated."""
        session, service, factory = _session([valid_entities()])
        stream = session.submit(UploadedFile(data=cv_docx, filename="cv.docx"))

        assert session.state is SessionState.ExtractingText
        assert session.discard() is True
        assert _drain(stream) == []
        assert factory.calls == 0
        assert service.calls == 0

    def test_discard_failed_session_is_noop(self):
        session, _, _ = _session([valid_entities()])
        _drain(session.submit(UploadedFile(data=b"x", filename="cv.docx")))
        assert session.discard() is False
        assert session.state is SessionState.Failed

    def test_cancel_during_page_three_of_ten(self):
        pages = [f"{PAGE_TEXT} (page {i})" for i in range(1, 11)]
        session, service, _ = _session([valid_entities()], pdf_pages=pages)
        seen = []

        async def scenario():
            async for event in session.submit(PDF_UPLOAD):
                seen.append(event)
                if event.is_page_progress and event.detail.current_page == 3:
                    assert session.discard() is True

        asyncio.run(scenario())

        assert [p.current_page for p in _pages(seen)] == [1, 2, 3]
        assert seen[-1].detail == PageProgress(3, 10)
        assert session.state is SessionState.Discarded
        assert service.calls == 0
        assert session.apply(lambda d: pytest.fail("applied after discard")) is False

    def test_late_service_result_is_dropped(self, cv_docx):
        holder = {}

        class DiscardWhileInFlight(ExtractionService):
            def name(self):
                return "slow"

            async def extract(self, request):
                await asyncio.sleep(0)
                # The user discards while the request is outstanding.
                holder["session"].discard()
                return ExtractionResponse.success(valid_entities())

        session = ImportSession(DiscardWhileInFlight())
        holder["session"] = session
        events = _drain(session.submit(UploadedFile(data=cv_docx, filename="cv.docx")))

        assert _stages(events) == [SessionState.ExtractingText, SessionState.ExtractingStructure]
        assert session.state is SessionState.Discarded
        assert session.draft is None
        assert session.failure is None
        with pytest.raises(SessionCancelled):
            session.submit(UploadedFile(data=cv_docx, filename="cv.docx"))


class TestImportFlow:
    """Tests for ImportFlow."""

    def test_new_import_discards_the_active_one(self, cv_docx):
        service = ScriptedService([valid_entities()])
        flow = ImportFlow(lambda: ImportSession(service))

        first_stream = flow.start(UploadedFile(data=cv_docx, filename="first.docx"))
        first = flow.active
        second_stream = flow.start(UploadedFile(data=cv_docx, filename="second.docx"))
        second = flow.active

        assert first is not second
        assert first.state is SessionState.Discarded
        assert _drain(first_stream) == []

        _drain(second_stream)
        assert second.state is SessionState.ReadyForReview
        assert service.calls == 1

    def test_discard_active(self):
        flow = ImportFlow(lambda: ImportSession(ScriptedService([valid_entities()])))
        assert flow.discard_active() is False
        flow.start(PDF_UPLOAD)
        assert flow.discard_active() is True
        assert flow.active is None

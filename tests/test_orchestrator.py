import json
import threading
import time

import pytest

from conftest import EMPTY, make_orchestrator, response, table
from dto.analysis import AnalysisStatus
from dto.guidance import Guidance, OutputPreferences
from dto.result import ErrorCode
from dto.warning import WarningType
from extraction.errors import RunCancelled

HEADERS4 = ["Item", "Qty", "Price", "Total"]
ROWS4 = [["Bolt", "4", "0.10", "0.40"], ["Nut", "10", "0.05", "0.50"]]


class TestSinglePage:

    def test_clean_table(self):
        orchestrator, _ = make_orchestrator([response(table("Parts", HEADERS4, ROWS4))])
        result = orchestrator.extract(b"doc", file_name="parts.pdf")

        assert result.success is True
        assert len(result.tables) == 1
        assert result.warnings == []
        assert result.tables[0].sheet_name == "Parts"
        assert result.page_count == 1
        assert result.pages_processed == 1
        assert result.error_code is None

    def test_rows_are_repaired(self):
        headers = ["Project", "Phase", "Task", "Owner", "Start", "End"]
        rows = [
            ["Alpha", "Planning", "Research", "Team A", "01/07", "05/07"],
            ["", "", "Design", "Team B", "06/07", "12/07"],
        ]
        orchestrator, _ = make_orchestrator([response(table("Plan", headers, rows))])
        result = orchestrator.extract(b"doc")
        assert result.tables[0].rows[1] == ["Alpha", "Planning", "Design", "Team B", "06/07", "12/07"]

    def test_empty_page_uses_fallback(self):
        kv = response(table("Extracted Data", ["Field", "Value"], [["Document Type", "Receipt"]]))
        orchestrator, service = make_orchestrator([EMPTY, kv])
        result = orchestrator.extract(b"doc")

        assert result.success is True
        assert len(service.calls) == 2
        assert "Field | Value" in service.calls[1]["system_prompt"]
        assert result.tables[0].headers == ["Field", "Value"]
        assert [w.type for w in result.warnings] == [WarningType.INCONSISTENT_FORMAT]

    def test_only_page_with_nothing_fails(self):
        orchestrator, service = make_orchestrator([EMPTY, EMPTY])
        result = orchestrator.extract(b"doc")
        assert result.success is False
        assert result.error_code == ErrorCode.NO_TABLES_FOUND
        assert len(service.calls) == 2

    def test_fallback_error_is_swallowed(self):
        orchestrator, _ = make_orchestrator([EMPTY, "not json"])
        result = orchestrator.extract(b"doc")
        assert result.error_code == ErrorCode.NO_TABLES_FOUND


class TestMultiPage:

    def test_failed_page_is_a_warning_and_excluded_from_confidence(self):
        orchestrator, _ = make_orchestrator(
            [
                response(table("Data", HEADERS4, ROWS4), overall=0.9),
                RuntimeError("upstream 502"),
                response(table("Data", HEADERS4, ROWS4), overall=80),
            ],
            pages=3,
        )
        result = orchestrator.extract(b"doc")

        assert result.success is True
        assert [t.sheet_name for t in result.tables] == ["Data (P1)", "Data (P3)"]
        assert [t.page_number for t in result.tables] == [1, 3]
        assert result.confidence == pytest.approx(0.85)
        failed = [w for w in result.warnings if w.type == WarningType.PARTIAL_TABLE]
        assert len(failed) == 1
        assert failed[0].page_number == 2
        assert failed[0].suggestion == "Try uploading this page separately as an image"

    def test_model_warnings_carry_their_own_page(self):
        merged = {"type": "merged_cells", "message": "Merged header", "pageNumber": 1}
        orchestrator, _ = make_orchestrator(
            [response(table("Data", HEADERS4, ROWS4), warnings=[merged]) for _ in range(3)],
            pages=3,
        )
        result = orchestrator.extract(b"doc")
        assert [w.page_number for w in result.warnings] == [1, 2, 3]

    def test_empty_page_among_others_does_not_fail_the_run(self):
        orchestrator, _ = make_orchestrator(
            [response(table("A", HEADERS4, ROWS4)), EMPTY, EMPTY], pages=2
        )
        result = orchestrator.extract(b"doc")
        assert result.success is True
        assert len(result.tables) == 1

    def test_every_page_failing_is_no_tables_found(self):
        orchestrator, _ = make_orchestrator([RuntimeError("x"), RuntimeError("y")], pages=2)
        result = orchestrator.extract(b"doc")
        assert result.error_code == ErrorCode.NO_TABLES_FOUND
        assert len(result.warnings) == 2

    def test_page_cap_adds_skipped_content_warning(self):
        orchestrator, service = make_orchestrator(
            [response(table("T", ["a"], [["1"]])) for _ in range(2)], pages=5, max_pages=2
        )
        result = orchestrator.extract(b"doc")
        assert result.page_count == 5
        assert result.pages_processed == 2
        assert len(service.calls) == 2
        assert any(w.type == WarningType.SKIPPED_CONTENT for w in result.warnings)

    def test_unlimited_lifts_the_page_cap(self):
        orchestrator, service = make_orchestrator(
            [response(table("T", ["a"], [["1"]])) for _ in range(5)], pages=5, max_pages=2, unlimited=True
        )
        result = orchestrator.extract(b"doc")
        assert result.pages_processed == 5

    def test_progress_is_reported_before_each_page(self):
        seen = []
        orchestrator, _ = make_orchestrator([response(table("T", ["a"], [["1"]]))] * 3, pages=3)
        orchestrator.extract(b"doc", on_progress=lambda current, total: seen.append((current, total)))
        assert seen == [(1, 3), (2, 3), (3, 3)]


class TestFailures:

    def test_rasterization_failure(self):
        orchestrator, service = make_orchestrator(fail=ErrorCode.PDF_CONVERSION_FAILED)
        result = orchestrator.extract(b"doc")
        assert result.success is False
        assert result.error_code == ErrorCode.PDF_CONVERSION_FAILED
        assert service.calls == []

    def test_file_too_large(self):
        orchestrator, service = make_orchestrator(max_file_bytes=10)
        result = orchestrator.extract(b"x" * 11)
        assert result.error_code == ErrorCode.FILE_TOO_LARGE
        assert service.calls == []

    def test_config_error_when_no_provider_is_configured(self):
        from conftest import FakeRasterizer
        from extraction.config import ExtractionConfig
        from extraction.orchestrator import ExtractionOrchestrator

        orchestrator = ExtractionOrchestrator(ExtractionConfig(), rasterizer=FakeRasterizer(2))
        result = orchestrator.extract(b"doc")
        assert result.success is False
        assert result.error_code == ErrorCode.CONFIG_ERROR

    def test_timeout_is_a_page_failure(self):
        slow = lambda: time.sleep(0.5) or response(table("Late", ["a"], [["1"]]))
        orchestrator, _ = make_orchestrator(
            [slow, response(table("T", ["a"], [["1"]]))], pages=2, call_timeout_seconds=0.05
        )
        result = orchestrator.extract(b"doc")
        assert result.success is True
        assert [t.page_number for t in result.tables] == [2]
        assert result.warnings[0].page_number == 1
        assert "timed out" in result.warnings[0].message

    def test_unexpected_exception_is_internal_error(self):
        orchestrator, _ = make_orchestrator()
        orchestrator._rasterizer.rasterize = lambda *a, **k: 1 / 0
        result = orchestrator.extract(b"doc")
        assert result.error_code == ErrorCode.INTERNAL_ERROR

    def test_cancel_raises_and_returns_nothing(self):
        cancel = threading.Event()

        def first_page():
            cancel.set()
            time.sleep(0.2)
            return response(table("T", ["a"], [["1"]]))

        orchestrator, _ = make_orchestrator([first_page, response()], pages=2)
        with pytest.raises(RunCancelled):
            orchestrator.extract(b"doc", cancel=cancel)


class TestTemplatesAndGuidance:

    def test_template_prompt_is_used(self):
        orchestrator, service = make_orchestrator(
            [response(table("Invoice Details", ["Field", "Value"], [["Invoice #", "1"], ["Total", "$4"]]))]
        )
        result = orchestrator.extract(b"doc", "invoice")
        assert "invoice extraction system" in service.calls[0]["system_prompt"]
        assert result.warnings == []

    def test_missing_required_field_warns(self):
        orchestrator, _ = make_orchestrator(
            [response(table("Invoice Details", ["Field", "Value"], [["Vendor", "ACME"]]), metadata={"total": "$4"})]
        )
        result = orchestrator.extract(b"doc", "invoice")
        assert result.success is True
        assert len(result.warnings) == 1
        assert result.warnings[0].type == WarningType.PARTIAL_TABLE
        assert "invoice number" in result.warnings[0].message

    def test_unknown_template_falls_back_to_generic(self):
        orchestrator, service = make_orchestrator([response(table("T", ["a"], [["1"]]))])
        result = orchestrator.extract(b"doc", "does-not-exist")
        assert result.success is True
        assert "Extract ALL tables" in service.calls[0]["system_prompt"]

    def test_guided_extraction(self):
        guidance = Guidance(
            answers={"symbols_checkbox": "Convert □ to ✅"},
            accepted_suggestions=["combine_tables"],
            output_preferences=OutputPreferences(symbol_mapping={"□": "✅"}),
        )
        payload = json.loads(response(table("Features", ["Feature", "A"], [["Video", "✅"]])))
        payload["appliedGuidance"] = ["Converted □ to ✅", "Converted □ to ✅"]
        orchestrator, service = make_orchestrator([json.dumps(payload)])

        result = orchestrator.extract(b"doc", guidance)

        prompt = service.calls[0]["system_prompt"]
        assert "symbols_checkbox: Convert □ to ✅" in prompt
        assert 'Convert "□" to "✅"' in prompt
        assert result.applied_guidance == ["Converted □ to ✅"]


class TestAnalyze:

    def test_delegates_to_the_analysis_engine(self):
        orchestrator, service = make_orchestrator(['{"analysis": {"documentType": "Report"}}'], pages=4)
        result = orchestrator.analyze(b"doc", "r.pdf")
        assert result.status == AnalysisStatus.READY
        assert result.analysis.sampled_pages == [1, 2, 4]
        assert result.analysis.page_count == 4

    def test_too_large_document_is_failed(self):
        orchestrator, _ = make_orchestrator(max_file_bytes=1)
        result = orchestrator.analyze(b"xx")
        assert result.status == AnalysisStatus.FAILED
        assert result.error_code == "FILE_TOO_LARGE"

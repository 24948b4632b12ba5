import pytest

from dto.result import ErrorCode, PageOutcome
from dto.table import RepairedTable
from dto.warning import ExtractionWarning, WarningType
from extraction.aggregator import (
    MAX_SHEET_NAME_LENGTH,
    Aggregator,
    assign_sheet_names,
    fit_sheet_name,
    sanitize_sheet_name,
)


def _table(name, page=1):
    return RepairedTable(sheet_name=name, headers=["a"], rows=[["1"]], page_number=page)


def _ok(page, confidence, *tables, **kwargs):
    return PageOutcome(page_number=page, succeeded=True, tables=list(tables), confidence=confidence, **kwargs)


def _failed(page):
    return PageOutcome(page_number=page, succeeded=False, error="boom", error_code=ErrorCode.AI_API_ERROR)


class TestSheetNames:

    def test_short_names_are_kept(self):
        assert fit_sheet_name("Pricing", " (P2)") == "Pricing (P2)"

    def test_long_name_is_cut_at_a_word_boundary(self):
        name = fit_sheet_name("Quarterly Revenue Breakdown By Region", " (P12)")
        assert name == "Quarterly Revenue (P12)"
        assert len(name) <= MAX_SHEET_NAME_LENGTH

    def test_trailing_separators_are_stripped(self):
        name = fit_sheet_name("Sales & Marketing - Overview Summary", " (P1)")
        assert name == "Sales & Marketing (P1)"

    def test_hard_cut_when_no_late_boundary(self):
        name = fit_sheet_name("Supercalifragilisticexpialidocious Table")
        assert name == "Supercalifragilisticexpialidoci"
        assert len(name) == MAX_SHEET_NAME_LENGTH

    def test_illegal_characters_are_replaced(self):
        assert sanitize_sheet_name("Q1/Q2 [draft]: totals?") == "Q1_Q2 _draft__ totals_"

    @pytest.mark.parametrize(
        "name",
        ["", "x" * 80, "A very long descriptive table name that keeps going and going"],
    )
    def test_every_assigned_name_fits(self, name):
        tables = [_table(name, page=p) for p in (1, 1, 23, 23, 456)]
        for named in assign_sheet_names(tables, multi_page=True):
            assert 0 < len(named.sheet_name) <= MAX_SHEET_NAME_LENGTH

    def test_empty_names_become_table_k(self):
        named = assign_sheet_names([_table(""), _table("  ")], multi_page=False)
        assert [t.sheet_name for t in named] == ["Table 1", "Table 2"]

    def test_single_page_collisions_get_a_counter(self):
        named = assign_sheet_names([_table("Data"), _table("data"), _table("Data")], multi_page=False)
        assert [t.sheet_name for t in named] == ["Data", "data (2)", "Data (3)"]

    def test_multi_page_collisions_get_a_page_counter(self):
        named = assign_sheet_names([_table("Data", 3), _table("Data", 3)], multi_page=True)
        assert [t.sheet_name for t in named] == ["Data (P3)", "Data (P3-2)"]

    def test_long_collisions_stay_unique_and_short(self):
        base = "Consolidated Statement of Cash Flows"
        named = assign_sheet_names([_table(base, 7) for _ in range(3)], multi_page=True)
        names = [t.sheet_name for t in named]
        assert len({n.lower() for n in names}) == 3
        assert all(len(n) <= MAX_SHEET_NAME_LENGTH for n in names)


class TestAggregator:

    def test_confidence_is_the_mean_of_succeeded_pages(self):
        outcomes = [_ok(1, 0.9, _table("A")), _failed(2), _ok(3, 0.8, _table("B"))]
        aggregate = Aggregator().aggregate(outcomes, multi_page=True)
        assert aggregate.confidence == pytest.approx(0.85)

    def test_no_succeeded_page_means_zero(self):
        assert Aggregator().aggregate([_failed(1)], multi_page=False).confidence == 0.0

    def test_page_order_and_stamps(self):
        outcomes = [
            _ok(2, 0.9, _table("Second")),
            _ok(
                1,
                0.9,
                _table("First", page=9),
                warnings=[ExtractionWarning(type=WarningType.SKEWED, message="tilted")],
            ),
        ]
        aggregate = Aggregator().aggregate(outcomes, multi_page=True)
        assert [t.sheet_name for t in aggregate.tables] == ["First (P1)", "Second (P2)"]
        assert [t.page_number for t in aggregate.tables] == [1, 2]
        assert aggregate.warnings[0].page_number == 1

    def test_applied_guidance_is_deduplicated_in_order(self):
        outcomes = [
            _ok(1, 0.9, applied_guidance=["Converted □", "Combined tables"]),
            _ok(2, 0.9, applied_guidance=["Combined tables", "Skipped diagram"]),
        ]
        aggregate = Aggregator().aggregate(outcomes, multi_page=True)
        assert aggregate.applied_guidance == ["Converted □", "Combined tables", "Skipped diagram"]

    def test_metadata_keeps_first_non_empty_value(self):
        outcomes = [
            _ok(1, 0.9, metadata={"total": "", "invoice_number": "INV-1"}),
            _ok(2, 0.9, metadata={"total": "$10", "invoice_number": "INV-2"}),
        ]
        metadata = Aggregator().aggregate(outcomes, multi_page=True).metadata
        assert metadata == {"invoice_number": "INV-1", "total": "$10"}

    def test_model_page_numbers_are_overridden(self):
        def reported(page):
            warning = ExtractionWarning(type=WarningType.MERGED_CELLS, message="merged", page_number=1)
            return _ok(page, 0.9, _table("T"), warnings=[warning])

        aggregate = Aggregator().aggregate([reported(3), reported(1), reported(2)], multi_page=True)
        assert [w.page_number for w in aggregate.warnings] == [1, 2, 3]

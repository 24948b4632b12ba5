from dto.table import RepairedTable
from dto.warning import WarningType
from extraction.prompts.templates import get_template
from extraction.validation import validate_required_fields

INVOICE = get_template("invoice")


def _kv(*rows):
    return RepairedTable(sheet_name="Details", headers=["Field", "Value"], rows=[list(r) for r in rows])


def test_fields_found_in_metadata():
    assert validate_required_fields(INVOICE, [], {"invoice_number": "INV-1", "total": 12.5}) == []


def test_fields_found_in_key_value_rows():
    tables = [_kv(("Invoice No:", "INV-1"), ("Grand Total", "$5"))]
    assert validate_required_fields(INVOICE, tables, {}) == []


def test_fields_found_as_columns():
    table = RepairedTable(headers=["Invoice Number", "Total"], rows=[["INV-1", "$5"]])
    assert validate_required_fields(INVOICE, [table], {}) == []


def test_blank_values_do_not_count():
    tables = [_kv(("Invoice Number", None), ("Total", "  "))]
    warnings = validate_required_fields(INVOICE, tables, {"total": ""})
    assert [w.type for w in warnings] == [WarningType.PARTIAL_TABLE, WarningType.PARTIAL_TABLE]
    assert "invoice number" in warnings[0].message
    assert "total" in warnings[1].message


def test_templates_without_required_fields_never_warn():
    assert validate_required_fields(get_template("inventory"), [], {}) == []

"""
Extraction templates.

A template swaps the default system prompt for one tuned to a document
type and names the fields that must be present for the result to be
considered complete (see extraction.validation).
"""

from __future__ import annotations

import logging
from typing import Dict, List

from pydantic import BaseModel

from extraction.prompts.extraction import get_extraction_system_prompt

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_ID = "generic"


class ExtractionTemplate(BaseModel):
    id: str
    name: str
    description: str
    expected_fields: List[str] = []
    system_prompt: str
    # metadata key -> labels that may stand for it in a Field | Value table
    required_fields: Dict[str, List[str]] = {}


_RULES = """CRITICAL RULES:
- Preserve EXACT original values - do not normalise currencies, dates or numbers
- Keep original number formats (e.g. "1,234.56" or "1.234,56") and currency symbols
- Include ALL rows, even if the table continues on another page
- Every row must have exactly as many cells as there are headers; use null for empty cells"""


_INVOICE_PROMPT = """You are a specialised invoice extraction system.  Extract structured data from this invoice image.

EXTRACT:
1. Header: vendor name and address, invoice number, invoice date, due date, PO number
2. Customer: bill-to name and address, ship-to address
3. Line items: description, quantity, unit price, amount, item codes / SKUs
4. Totals: subtotal, tax amount and rate, shipping, discounts, grand total
5. Payment: terms, bank details, instructions

""" + _RULES + """

Return JSON:
{
  "tables": [
    {
      "sheetName": "Invoice Details",
      "headers": ["Field", "Value"],
      "rows": [["Vendor", "..."], ["Invoice #", "..."], ["Date", "..."], ["Due Date", "..."], ["Total", "..."]],
      "confidence": 0.95
    },
    {
      "sheetName": "Line Items",
      "headers": ["Description", "Qty", "Unit Price", "Amount"],
      "rows": [],
      "confidence": 0.95
    }
  ],
  "metadata": {
    "vendor_name": "...", "invoice_number": "...", "invoice_date": "...", "due_date": "...",
    "subtotal": "...", "tax": "...", "total": "..."
  },
  "warnings": []
}"""


_BANK_STATEMENT_PROMPT = """You are a specialised bank statement extraction system.  Extract structured data from this bank statement image.

EXTRACT:
1. Account: bank name, holder, account number (may be masked), statement period, account type
2. Balance summary: opening balance, total deposits, total withdrawals, closing balance
3. Transactions: date, description, reference, debit, credit, running balance, category

""" + _RULES + """
- Keep negative amounts as shown (parentheses, minus sign)
- Extract ALL transactions in chronological order

Return JSON:
{
  "tables": [
    {
      "sheetName": "Account Summary",
      "headers": ["Field", "Value"],
      "rows": [["Bank", "..."], ["Account Number", "..."], ["Statement Period", "..."], ["Opening Balance", "..."], ["Closing Balance", "..."]],
      "confidence": 0.95
    },
    {
      "sheetName": "Transactions",
      "headers": ["Date", "Description", "Debit", "Credit", "Balance"],
      "rows": [],
      "confidence": 0.95
    }
  ],
  "metadata": {
    "bank_name": "...", "account_number": "...", "statement_period": "...",
    "opening_balance": "...", "closing_balance": "...",
    "total_deposits": "...", "total_withdrawals": "..."
  },
  "warnings": []
}"""


_EXPENSE_REPORT_PROMPT = """You are a specialised expense report extraction system.  Extract structured data from this expense report image.

EXTRACT:
1. Report: employee name, department, report date / period, report number, approval status
2. Expense items: date, category, description, vendor, amount, currency, receipt (Y/N), cost centre
3. Totals: per category, grand total, approved amount, advances, net reimbursement

""" + _RULES + """
- Note items marked as non-reimbursable

Return JSON:
{
  "tables": [
    {"sheetName": "Report Summary", "headers": ["Field", "Value"], "rows": [], "confidence": 0.95},
    {"sheetName": "Expenses", "headers": ["Date", "Category", "Description", "Vendor", "Amount"], "rows": [], "confidence": 0.95}
  ],
  "metadata": {"employee_name": "...", "report_date": "...", "total_amount": "..."},
  "warnings": []
}"""


_INVENTORY_PROMPT = """You are a specialised inventory extraction system.  Extract structured data from this inventory list.

EXTRACT:
1. Items: SKU / product code, description, category, location / bin, quantity, unit of measure,
   unit cost, extended value, reorder point, last count date
2. Summary: total SKUs, total quantity, total value, report date

""" + _RULES + """
- Keep product codes exactly as shown

Return JSON:
{
  "tables": [
    {"sheetName": "Inventory", "headers": ["SKU", "Description", "Location", "Qty", "Unit Cost", "Total Value"], "rows": [], "confidence": 0.95}
  ],
  "metadata": {"report_date": "...", "total_items": "...", "total_value": "..."},
  "warnings": []
}"""


_SALES_REPORT_PROMPT = """You are a specialised sales report extraction system.  Extract structured data from this sales report.

EXTRACT:
1. Period and summary: date range, total revenue, transaction count, average transaction value
2. Sales by product / category: name, units, revenue, share of total
3. Sales by time period, where shown
4. Top products, customers and sales reps, where shown

""" + _RULES + """
- Keep percentage formats and period-over-period comparisons

Return JSON:
{
  "tables": [
    {"sheetName": "Summary", "headers": ["Metric", "Value"], "rows": [], "confidence": 0.95},
    {"sheetName": "Sales by Product", "headers": ["Product", "Units", "Revenue", "% of Total"], "rows": [], "confidence": 0.95}
  ],
  "metadata": {"period": "...", "total_sales": "...", "transaction_count": "..."},
  "warnings": []
}"""


_TEMPLATES: Dict[str, ExtractionTemplate] = {
    t.id: t
    for t in (
        ExtractionTemplate(
            id="generic",
            name="Generic Table",
            description="Extract any table structure from your document",
            system_prompt=get_extraction_system_prompt(),
        ),
        ExtractionTemplate(
            id="invoice",
            name="Invoice",
            description="Extract vendor info, line items, totals, and payment details",
            expected_fields=[
                "vendor_name", "invoice_number", "invoice_date", "due_date",
                "line_items", "subtotal", "tax", "total",
            ],
            system_prompt=_INVOICE_PROMPT,
            required_fields={
                "invoice_number": ["invoice number", "invoice #", "invoice no", "invoice no."],
                "total": ["total", "grand total", "amount due", "total due"],
            },
        ),
        ExtractionTemplate(
            id="bank_statement",
            name="Bank Statement",
            description="Extract transactions, running balance, and account details",
            expected_fields=[
                "account_number", "statement_period", "opening_balance",
                "closing_balance", "transactions",
            ],
            system_prompt=_BANK_STATEMENT_PROMPT,
            required_fields={
                "account_number": ["account number", "account #", "account no", "account"],
                "closing_balance": ["closing balance", "ending balance", "balance"],
            },
        ),
        ExtractionTemplate(
            id="expense_report",
            name="Expense Report",
            description="Extract expense items, categories, and reimbursement totals",
            expected_fields=["employee_name", "report_date", "expense_items", "total_amount"],
            system_prompt=_EXPENSE_REPORT_PROMPT,
        ),
        ExtractionTemplate(
            id="inventory",
            name="Inventory List",
            description="Extract product codes, quantities, locations, and values",
            expected_fields=["product_code", "description", "quantity", "unit_cost", "total_value"],
            system_prompt=_INVENTORY_PROMPT,
        ),
        ExtractionTemplate(
            id="sales_report",
            name="Sales Report",
            description="Extract sales data, revenue figures, and performance metrics",
            expected_fields=["period", "total_sales", "transactions", "top_products"],
            system_prompt=_SALES_REPORT_PROMPT,
        ),
    )
}


def list_templates() -> List[ExtractionTemplate]:
    return list(_TEMPLATES.values())


def get_template(template_id: str) -> ExtractionTemplate:
    """Template by id; unknown ids fall back to the generic template."""
    template = _TEMPLATES.get(template_id)
    if template is None:
        logger.warning(
            "  [Templates] Unknown template '%s' - using '%s'",
            template_id,
            DEFAULT_TEMPLATE_ID,
        )
        return _TEMPLATES[DEFAULT_TEMPLATE_ID]
    return template

"""
Prompt for the key/value fallback, used when a page yields no table.
"""

from __future__ import annotations


def get_fallback_prompt() -> str:
    return """You are a precise data extraction AI.  This page contains NO traditional tables, but has structured data that should be extracted.

TASK: Extract ALL relevant structured information as a two-column table (Field | Value).

GUIDELINES:
1. Identify the document type first (ID, contract, letter, certificate, form, receipt, ...)
2. Extract ALL meaningful data points
3. Use clear, descriptive field names
4. Preserve original values exactly (dates, numbers, codes, special characters)
5. Parse machine-readable codes (MRZ, barcodes) into human-readable fields

OUTPUT FORMAT:
{
  "tables": [
    {
      "sheetName": "Extracted Data",
      "pageNumber": 1,
      "headers": ["Field", "Value"],
      "rows": [
        ["Document Type", "Invoice"],
        ["Invoice Number", "INV-2024-001"],
        ["Date", "2024-01-15"],
        ["Total", "$1,234.56"]
      ],
      "confidence": 93
    }
  ],
  "warnings": [],
  "overallConfidence": 93
}

The first row must ALWAYS be Document Type."""


def get_fallback_user_prompt(file_name: str) -> str:
    return (
        "Extract all text and data from this document as structured key-value pairs. "
        f'File: "{file_name}". Return only JSON.'
    )

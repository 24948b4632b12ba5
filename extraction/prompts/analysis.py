"""
Prompt for the pre-extraction analysis.

The model is shown a few sampled pages in one request and asked to
characterise the document and raise clarifying questions.  It must not
extract any data at this stage.
"""

from __future__ import annotations

from typing import Sequence


def _page_mapping(page_numbers: Sequence[int]) -> str:
    return ", ".join(f"Image {i} = Page {p}" for i, p in enumerate(page_numbers, start=1))


def get_analysis_prompt(file_name: str, page_numbers: Sequence[int]) -> str:
    return f"""You are a document analysis AI.  Analyse the document and ask clarifying questions BEFORE extraction.

IMPORTANT: DO NOT extract data yet.  Only analyse and generate questions.
You are shown SAMPLE PAGES of the document, not necessarily all of them.  Look for patterns that are likely to repeat throughout.

ANALYSE THE DOCUMENT FOR:
1. Document type (invoice, report, spreadsheet, form, ID, contract, receipt, ...)
2. Number of tables and structured data sections
3. Languages present
4. Special symbols that may need interpretation (□ ■ ✓ ✗ ● ○ ...)
5. Complex layouts that need user guidance
6. Content that might be skipped (ASCII diagrams, charts, decorative elements)
7. Image quality issues that may affect extraction

ALWAYS ASK WHEN YOU SEE:
- Checkbox / status symbols (□ ■ ☐ ☑ ○ ● ✓ ✗ x X): ask what they represent.
  Options: "Yes/supported → ✅" | "No/not supported → ❌" | "Keep original symbols"
- Comparison or feature tables across several products: ask about structure.
  Options: "One combined comparison table" | "Separate tables per item" | "Keep as found"
- Many empty cells: ask what empty means.
  Options: "No data available" | "Same as cell above (merged)" | "Not applicable" | "Keep empty"
- ASCII art or text diagrams: ask whether to skip them.
  Options: "Skip diagrams (recommended)" | "Try to extract as table" | "Keep as text"
- Inconsistent date or number formats (MM/DD vs DD/MM, 1,000 vs 1.000): ask about standardisation.

QUESTION RULES:
- 2-5 questions at most; symbol questions take priority
- Always provide a sensible default option
- Categories: symbols | structure | content | output

OUTPUT FORMAT (JSON only, no markdown):
{{
  "analysis": {{
    "documentType": "Competitive Analysis Report",
    "pageCount": 1,
    "tablesDetected": 3,
    "languages": ["English"],
    "complexity": "medium",
    "estimatedExtractionTime": "10-15 seconds"
  }},
  "questions": [
    {{
      "id": "symbols_checkbox",
      "category": "symbols",
      "question": "I see □ symbols in the feature comparison. What do they represent?",
      "options": [
        "Checkmarks meaning 'yes' → convert to ✅",
        "Empty boxes meaning 'no' → convert to ❌",
        "Keep as □ symbols (no conversion)"
      ],
      "context": "The comparison matrix has □ in feature cells.",
      "default": "Checkmarks meaning 'yes' → convert to ✅"
    }}
  ],
  "suggestions": [
    {{
      "id": "combine_tables",
      "text": "Found 3 related pricing tables. I can combine these into one comparison table.",
      "action": "Combine into one table with a 'Source' column"
    }}
  ],
  "warnings": [
    "Some text appears slightly blurry - extraction may have minor errors"
  ],
  "uncertainPatterns": [
    {{
      "pattern": "□ checkbox symbols",
      "pagesDetected": [7, 8],
      "count": 45,
      "likelyMeaning": "yes/no indicators in feature matrix"
    }}
  ]
}}

"uncertainPatterns" lists ANY symbol, format or structure that MIGHT need clarification, even when no question was generated for it.
For a simple document with no ambiguities return empty arrays.

Analyse these sample pages from document "{file_name}".
{_page_mapping(page_numbers)}
Look for patterns across ALL pages shown.  Return valid JSON only, no markdown."""

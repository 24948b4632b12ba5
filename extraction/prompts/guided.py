"""
Prompt for guided extraction: the default rules plus the user's answers to
the analysis questions, accepted suggestions and output preferences.
"""

from __future__ import annotations

from typing import List

from dto.guidance import Guidance

from extraction.prompts.extraction import MERGED_CELLS_BLOCK, WARNING_TYPES_BLOCK


def build_guidance_text(guidance: Guidance) -> str:
    """Render a Guidance as the plain-text block embedded in the prompt."""
    parts: List[str] = []

    if guidance.answers:
        parts.append("USER ANSWERS TO QUESTIONS:")
        for question_id, answer in guidance.answers.items():
            parts.append(f"- {question_id}: {answer}")

    if guidance.accepted_suggestions:
        parts.append("\nACCEPTED SUGGESTIONS:")
        parts.extend(f"- {s}" for s in guidance.accepted_suggestions)

    prefs = guidance.output_preferences
    if prefs is not None:
        parts.append("\nOUTPUT PREFERENCES:")
        if prefs.combine_related_tables:
            parts.append("- Combine related tables into single comparison tables")
        if prefs.skip_diagrams:
            parts.append("- Skip ASCII diagrams and charts")
        if prefs.skip_images:
            parts.append("- Skip decorative images")
        if prefs.output_language != "auto":
            parts.append(
                f"- Use {prefs.output_language} for column headers and field names"
            )
        if prefs.symbol_mapping:
            parts.append("- Symbol conversions:")
            for source, target in prefs.symbol_mapping.items():
                parts.append(f'  - Convert "{source}" to "{target}"')

    if guidance.freeform_instructions:
        parts.append("\nADDITIONAL USER INSTRUCTIONS:")
        parts.append(guidance.freeform_instructions)

    return "\n".join(parts).strip()


def get_guided_prompt(guidance: Guidance) -> str:
    guidance_text = build_guidance_text(guidance) or "(no specific instructions)"
    return f"""You are a precise data extraction AI.  Extract data according to the user's instructions below.

=== USER GUIDANCE ===
{guidance_text}
=== END USER GUIDANCE ===

Apply ALL user instructions above during extraction, including:
- Symbol interpretations (convert symbols as specified)
- Table structure preferences (combine or separate as specified)
- Content inclusion / exclusion (skip what the user said to skip)
- Output format preferences

SHEET NAMING (MAX 20 CHARS):
- Use short descriptive names
- If the user wants combined tables, use a descriptive combined name

Unless the user asked for a conversion, preserve special characters
(checkmarks, crosses, currency and math symbols) exactly.

{MERGED_CELLS_BLOCK}

OUTPUT FORMAT:
{{
  "tables": [
    {{
      "sheetName": "Feature Comparison",
      "pageNumber": 1,
      "headers": ["Feature", "Product A", "Product B"],
      "rows": [
        ["AI Generation", "✅", "❌"],
        ["Video", "✅", "✅"]
      ],
      "confidence": 94
    }}
  ],
  "warnings": [],
  "overallConfidence": 94,
  "appliedGuidance": [
    "Converted □ symbols to ✅ as requested",
    "Combined tables as requested"
  ]
}}

List in "appliedGuidance" every user instruction you actually applied.

{WARNING_TYPES_BLOCK}"""


def get_guided_user_prompt(file_name: str) -> str:
    return (
        f'Extract data from this document following the guidance provided: "{file_name}". '
        "Return valid JSON only."
    )

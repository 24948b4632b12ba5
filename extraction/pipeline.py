"""
Document table extraction - CLI entry point.

Usage:
    python -m extraction.pipeline <document> [-o <output.json>]
        [--analyze] [--template ID | --guidance guidance.json]
        [--max-pages N] [--unlimited]

Without --analyze the document is extracted and the ExtractionResult is
written as camelCase JSON.  With --analyze only the sampled-page analysis
runs; its questions can be answered in a guidance JSON file and passed
back with --guidance.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import dotenv
from pydantic import ValidationError

from dto.analysis import AnalysisStatus
from dto.guidance import Guidance
from extraction.config import ExtractionConfig
from extraction.orchestrator import ExtractionOrchestrator
from extraction.prompts.templates import DEFAULT_TEMPLATE_ID, list_templates

dotenv.load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger(__name__)


def _load_guidance(path: str) -> Guidance:
    try:
        return Guidance.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValidationError) as exc:
        logger.error("Invalid guidance file %s: %s", path, exc)
        sys.exit(2)


def _build_config(max_pages: Optional[int], unlimited: bool) -> ExtractionConfig:
    config = ExtractionConfig.from_env()
    update = {}
    if max_pages is not None:
        update["max_pages"] = max_pages
    if unlimited:
        update["unlimited"] = True
    return ExtractionConfig(**{**config.model_dump(), **update})


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Extract tables from scanned or digital documents with a vision model.",
    )
    parser.add_argument("document", help="PDF, image or office document to process")
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output JSON file path (default: <input_name>_tables.json or _analysis.json)",
    )
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Only analyse sampled pages and print clarifying questions",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--template",
        default=DEFAULT_TEMPLATE_ID,
        choices=[t.id for t in list_templates()],
        help="Extraction template (default: %(default)s)",
    )
    mode.add_argument(
        "--guidance",
        default=None,
        help="Guidance JSON (answers to the analysis questions) for a guided extraction",
    )
    parser.add_argument("--max-pages", type=int, default=None, help="Page cap for this run")
    parser.add_argument(
        "--unlimited",
        action="store_true",
        help="Lift the page cap and the file-size limit",
    )
    args = parser.parse_args(argv)

    doc_path = args.document
    if not os.path.isfile(doc_path):
        logger.error("File not found: %s", doc_path)
        sys.exit(1)

    stem = Path(doc_path).stem
    output_path = args.output or f"{stem}_{'analysis' if args.analyze else 'tables'}.json"

    try:
        config = _build_config(args.max_pages, args.unlimited)
    except ValidationError as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(2)

    orchestrator = ExtractionOrchestrator(config)
    document = Path(doc_path).read_bytes()
    file_name = Path(doc_path).name

    if args.analyze:
        analysis = orchestrator.analyze(document, file_name)
        json_str = analysis.model_dump_json(indent=2, by_alias=True, exclude_none=True)
        ok = analysis.status == AnalysisStatus.READY
        if not ok:
            logger.error("Analysis %s: %s", analysis.status.value, analysis.error)
    else:
        template = _load_guidance(args.guidance) if args.guidance else args.template
        result = orchestrator.extract(
            document,
            template,
            file_name=file_name,
            on_progress=lambda current, total: logger.info("Page %d of %d", current, total),
        )
        json_str = result.model_dump_json(indent=2, by_alias=True, exclude_none=True)
        ok = result.success
        if ok:
            logger.info(
                "Extracted %d table(s) from %d page(s), confidence %.0f%%",
                len(result.tables),
                result.pages_processed,
                result.confidence * 100,
            )
        else:
            logger.error("Extraction failed [%s]: %s", result.error_code.value, result.error)

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(json_str)
    logger.info("Output written to %s", output_path)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
Batch entry point.
Run with: python -m vat_intake.worker.runner --owner <scope> [--category SALES|PURCHASES] FILE...

Each file goes through the full pipeline; one ProcessingOutcome is printed per
line as JSON, in input order.
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import Optional

import structlog
from prometheus_client import start_http_server

from vat_intake.config import Settings, settings as default_settings
from vat_intake.models.enums import DocumentCategory
from vat_intake.observability.logging import setup_logging
from vat_intake.pipeline.orchestrator import DocumentPipeline
from vat_intake.schemas.contracts import ProcessingOutcome, RawDocument

logger = structlog.get_logger(__name__)

# mimetypes has no entry for these on some platforms
EXTRA_TYPES = {
    ".csv": "text/csv",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".webp": "image/webp",
}


def guess_mime_type(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in EXTRA_TYPES:
        return EXTRA_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


def load_document(path: Path, owner_scope: str, category: DocumentCategory) -> RawDocument:
    return RawDocument(
        data=path.read_bytes(),
        mime_type=guess_mime_type(path),
        file_name=path.name,
        category=category,
        owner_scope=owner_scope,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run VAT documents through duplicate, extraction and compliance checks.")
    parser.add_argument("files", nargs="+", type=Path)
    parser.add_argument("--owner", required=True, help="Owner scope the documents belong to")
    parser.add_argument(
        "--category",
        choices=[c.value for c in DocumentCategory],
        default=DocumentCategory.UNKNOWN.value,
    )
    return parser


async def run_batch(
    paths: list[Path],
    owner_scope: str,
    category: DocumentCategory,
    pipeline: DocumentPipeline,
) -> list[ProcessingOutcome]:
    documents = [load_document(p, owner_scope, category) for p in paths]
    return await pipeline.process_many(documents)


def main(argv: Optional[list[str]] = None, config: Optional[Settings] = None) -> int:
    """Process the given files. Returns the exit code."""
    config = config or default_settings
    args = build_parser().parse_args(argv)
    # stdout carries the outcome lines
    setup_logging(config, stream=sys.stderr)
    logger.info("runner_started", app=config.APP_NAME, version=config.APP_VERSION, files=len(args.files))

    if config.PROMETHEUS_ENABLED and config.METRICS_PORT:
        start_http_server(config.METRICS_PORT)

    missing = [str(p) for p in args.files if not p.is_file()]
    if missing:
        logger.error("runner_files_missing", files=missing)
        return 2

    pipeline = DocumentPipeline.from_settings(config)
    outcomes = asyncio.run(run_batch(args.files, args.owner, DocumentCategory(args.category), pipeline))

    for outcome in outcomes:
        sys.stdout.write(outcome.model_dump_json() + "\n")

    logger.info(
        "runner_batch_complete",
        documents=len(outcomes),
        duplicates=sum(1 for o in outcomes if o.duplicate.is_duplicate),
        needs_review=sum(1 for o in outcomes if o.extraction.requires_manual_review),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

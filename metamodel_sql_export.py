#!/usr/bin/env python3
"""Export the data of a running metamodel application as SQL INSERTs.

The script reads every record the application's generated UI shows for each
entity kind, rebuilds the dataset, and writes it as one transaction of
INSERT statements whose foreign keys are sub-selects by name. A trailing
query reports row counts per table once the script is loaded.

Usage example:

    python metamodel_sql_export.py --base-url http://localhost:8080/metamodel

Pass ``--snapshot`` to keep the raw scraped fields and ``--source-json`` to
export from such a snapshot later without a browser.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional

from playwright.sync_api import (  # type: ignore[import-not-found]
    Error as PlaywrightError,
    sync_playwright,
)

from metamodel_extractors import KindExtraction, extract_all, records_by_kind
from metamodel_schema import DEFAULT_APPLICATION, KIND_ORDER
from record_source import (
    JsonRecordSource,
    PlaywrightRecordSource,
    RecordSource,
    SnapshotRecorder,
    SourceUnreachableError,
)
from reference_resolver import (
    NameCollisionError,
    find_dangling_references,
    validate_unique_names,
)
from sql_emitter import emit_script

DEFAULT_BASE_URL = "http://localhost:8080/metamodel"
DEFAULT_OUTPUT = Path("ouroboros-export.sql")
DEFAULT_DEBUG_DIR = Path("debug")
BASE_URL_ENV = "METAMODEL_BASE_URL"


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Scrape a running metamodel application and export its data as an "
            "ordered SQL script."
        )
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--base-url",
        help=(
            "Root URL of the application. Defaults to the "
            f"{BASE_URL_ENV} environment variable or '{DEFAULT_BASE_URL}'."
        ),
    )
    group.add_argument(
        "--source-json",
        type=Path,
        help="Export from a snapshot written by --snapshot instead of scraping.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT,
        help=f"Destination SQL file. Defaults to '{DEFAULT_OUTPUT}'.",
    )
    parser.add_argument(
        "--snapshot",
        type=Path,
        help="Also save the raw fields of every record read to this JSON file.",
    )
    parser.add_argument(
        "--default-application",
        default=DEFAULT_APPLICATION,
        help=(
            "Application assumed for entities whose detail view shows none "
            f"(default: '{DEFAULT_APPLICATION}')."
        ),
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Launch the browser in headless mode (default).",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch the browser with a visible window for troubleshooting.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=15.0,
        help="Seconds to wait for each page to load (default: 15).",
    )
    parser.add_argument(
        "--page-wait",
        type=float,
        default=0.0,
        help="Extra seconds to wait after every navigation (default: 0).",
    )
    parser.add_argument(
        "--allow-duplicate-names",
        action="store_true",
        help=(
            "Write the script even when a referenced table repeats a name. "
            "References to such names will not resolve to a single row."
        ),
    )
    parser.add_argument(
        "--check-references",
        action="store_true",
        help="Warn about references to names that were never extracted.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Save screenshots/HTML of pages that fail to load.",
    )
    parser.add_argument(
        "--debug-dir",
        type=Path,
        default=DEFAULT_DEBUG_DIR,
        help=f"Directory for debug artifacts (default: '{DEFAULT_DEBUG_DIR}').",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.headless and args.headed:
        parser.error("--headless and --headed cannot be used together")

    return args


def resolve_headless(args: argparse.Namespace) -> bool:
    if args.headed:
        return False
    return True


def resolve_base_url(args: argparse.Namespace) -> str:
    base_url = args.base_url or os.environ.get(BASE_URL_ENV) or DEFAULT_BASE_URL
    return base_url.rstrip("/")


def format_summary(extractions: Dict[str, KindExtraction]) -> str:
    lines = []
    for kind in KIND_ORDER:
        extraction = extractions.get(kind.name)
        if extraction is None:
            continue
        line = f"  {kind.name}: {extraction.extracted} extracted"
        if extraction.dropped:
            line += f" ({extraction.dropped} dropped of {extraction.listed} listed)"
        lines.append(line)
    return "\n".join(lines)


def run_export(
    source: RecordSource,
    output: Path,
    default_application: Optional[str] = DEFAULT_APPLICATION,
    allow_duplicate_names: bool = False,
    check_references: bool = False,
    snapshot: Optional[Path] = None,
) -> Dict[str, KindExtraction]:
    """Extract, validate and write the script; nothing is written on failure.

    When ``snapshot`` is given the raw fields are saved there before the
    script, so a snapshot failure never leaves a script behind.
    """

    recorder = SnapshotRecorder(source) if snapshot else None
    extractions = extract_all(
        recorder or source, default_application=default_application, progress=print
    )
    if recorder is not None:
        recorder.write(snapshot)
        print(f"Snapshot: {snapshot}")
    records = records_by_kind(extractions)

    if not allow_duplicate_names:
        validate_unique_names(records)

    if check_references:
        for reference in find_dangling_references(records):
            print(
                f"Warning: {reference.record} refers to {reference.table} "
                f"'{reference.name}', which was not extracted.",
                file=sys.stderr,
            )

    script = emit_script(records, source_label=source.describe())
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(script, encoding="utf-8")
    return extractions


def print_report(extractions: Dict[str, KindExtraction], output: Path) -> None:
    print("\nExport complete.")
    print(format_summary(extractions))
    print(f"File: {output}")
    print("\nTo load into PostgreSQL:")
    print(f"   psql -h localhost -p 5432 -U webdsl -d webdsl -f {output}")


def export_with_browser(args: argparse.Namespace) -> Dict[str, KindExtraction]:
    base_url = resolve_base_url(args)
    print(f"Extracting metamodel data from {base_url}...\n")

    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=resolve_headless(args))
        try:
            page = browser.new_context().new_page()
            source: RecordSource = PlaywrightRecordSource(
                page,
                base_url,
                timeout=args.timeout,
                page_wait=args.page_wait,
                debug_dir=args.debug_dir if args.debug else None,
            )
            return export_from(source, args)
        finally:
            browser.close()


def export_from(source: RecordSource, args: argparse.Namespace) -> Dict[str, KindExtraction]:
    return run_export(
        source,
        args.output,
        default_application=args.default_application,
        allow_duplicate_names=args.allow_duplicate_names,
        check_references=args.check_references,
        snapshot=args.snapshot,
    )


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)

    try:
        if args.source_json:
            print(f"Extracting metamodel data from {args.source_json}...\n")
            extractions = export_from(JsonRecordSource(args.source_json), args)
        else:
            extractions = export_with_browser(args)
    except (SourceUnreachableError, NameCollisionError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except PlaywrightError as exc:
        print(f"Error: browser failure: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Error: could not write output: {exc}", file=sys.stderr)
        return 1

    print_report(extractions, args.output)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())

#!/usr/bin/env python3
"""
Listing Duplicate Detection Runner

Finds duplicate marketplace listings by normalized title and builds a bulk
"end listings" CSV for every copy except the most recently started one.

Usage:
    python scripts/run_listing_dedupe.py --input CSVs/active-listings.csv --dry-run
    python scripts/run_listing_dedupe.py --input CSVs/active-listings.csv --confirm
    python scripts/run_listing_dedupe.py --input CSVs/active-listings.csv --chunked --confirm
    python scripts/run_listing_dedupe.py --resume <process-id> --confirm
    python scripts/run_listing_dedupe.py --status <process-id>

Options:
    --input FILE        Listing export CSV
    --output-dir DIR    Output directory (default: outputs/listing_dedupe)
    --dry-run           Analyze only, no file output (default)
    --confirm           Actually write output files
    --chunked           Run one time-budgeted slice of a resumable run
    --resume PID        Continue a paused chunked run
    --status PID        Show the state of a chunked run without doing work
    --review-similar    List near-duplicate titles for manual review
    --env-file FILE     .env file to load settings from
    --verbose           Show detailed output
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from listing_dedupe import (
    ChunkedExecutionController,
    CsvParser,
    DedupeConfig,
    RunStatus,
    build_store,
    generate_report,
    process,
    similar_pairs,
)
from listing_dedupe.columns import ColumnMap, resolve_columns
from listing_dedupe.errors import ConfigError
from listing_dedupe.exporter import write_export


def print_status(status):
    print(f"Process:  {status.process_id}")
    print(f"Status:   {status.status.value}")
    if status.phase:
        print(f"Phase:    {status.phase}")
    print(f"Progress: {status.progress_percent}%")
    if status.message:
        print(f"Message:  {status.message}")
    print()


def print_result(result, verbose=False):
    print()
    print("-" * 70)
    print("RESULTS")
    print("-" * 70)
    print()

    for step in result.steps:
        marker = "OK  " if step.success else "FAIL"
        print(f"  [{marker}] {step.phase:8} {step.message}")
    print()

    stats = result.stats
    print(f"Imported Listings:   {stats.get('imported_rows', 0)}")
    print(f"Duplicate Groups:    {stats.get('duplicate_groups', 0)}")
    print(f"Listings in Groups:  {stats.get('duplicate_items', 0)}")
    print(f"Listings to End:     {stats.get('export_count', 0)}")
    print(f"Processing Time:     {result.processing_time:.1f}s")
    print()

    if result.analysis and result.analysis.pivots:
        print("Repeat Patterns:")
        for repeat, pivot in result.analysis.pivots.items():
            print(f"  listed {repeat:3} times: {len(pivot):5} titles")
        print()

    if result.annotated and result.annotated.rows:
        columns = result.annotated.columns
        shown_groups = 0
        print("Top Duplicate Groups:")
        print("-" * 70)
        for row in result.annotated.rows:
            group_id, position, decision = row[0], row[1], row[2]
            if position.startswith("1 of "):
                shown_groups += 1
                if shown_groups > 20:
                    break
                print(f"{group_id}: {ColumnMap.cell(row, columns.title)} ({position.split(' of ')[1]} listings)")
            if verbose:
                start = ColumnMap.cell(row, columns.start_date) or "no date"
                print(f"    - {decision:4} {ColumnMap.cell(row, columns.item_id)} ({start})")
        print()

    if result.quality:
        empty = result.quality.mostly_empty_columns()
        if result.quality.fallback_lines or result.quality.padded_rows or result.quality.truncated_rows:
            print("Data Quality:")
            print(f"  Malformed lines repaired: {result.quality.fallback_lines}")
            print(f"  Rows padded:              {result.quality.padded_rows}")
            print(f"  Rows truncated:           {result.quality.truncated_rows}")
            print()
        if empty and verbose:
            print(f"Mostly empty columns: {', '.join(empty)}")
            print()

    print(result.final_message)
    print()


def review_similar(csv_text, config, verbose=False):
    rows = CsvParser().parse(csv_text)
    if len(rows) < 2:
        print("Not enough data to review.")
        return
    resolved = resolve_columns(rows[0])
    if not resolved.ok:
        print(f"ERROR: {resolved.message}")
        return
    columns = resolved.value
    listings = [
        (ColumnMap.cell(row, columns.item_id), ColumnMap.cell(row, columns.title))
        for row in rows[1:]
    ]

    pairs = similar_pairs(listings, config.similarity_threshold)
    print("-" * 70)
    print(f"NEAR-DUPLICATE TITLES (similarity >= {config.similarity_threshold:.2f})")
    print("-" * 70)
    print("These are not ended automatically. Review them by hand.")
    print()
    for pair in pairs[:50 if verbose else 15]:
        print(f"  {pair.score:.2f}  {pair.item_id1}: {pair.title1}")
        print(f"        {pair.item_id2}: {pair.title2}")
    if not pairs:
        print("  No near-duplicate titles found.")
    print()


def write_outputs(result, output_dir):
    output_dir.mkdir(parents=True, exist_ok=True)

    print("Writing duplicate list...")
    duplicates_path = output_dir / "duplicates.csv"
    with open(duplicates_path, 'w', encoding='utf-8', newline='') as f:
        f.write(result.duplicates_csv())
    print(f"  Created: {duplicates_path}")

    if result.export is not None:
        print("Writing end-items file...")
        export_path = write_export(result.export, output_dir)
        print(f"  Created: {export_path}")
        print(f"  Listings to end: {result.export.item_count}")

    print("Writing analysis report...")
    report_path = output_dir / "analysis_report.md"
    stats = result.stats
    report = generate_report(
        result.analysis,
        stats.get("duplicate_groups", 0),
        stats.get("duplicate_items", 0),
        stats.get("export_count", 0),
        imported_rows=stats.get("imported_rows", 0),
    ) if result.analysis else "# Duplicate Listing Analysis\n\nAnalysis unavailable.\n"
    with open(report_path, 'w', encoding='utf-8') as f:
        f.write(report)
    print(f"  Created: {report_path}")

    if result.quality is not None:
        quality_path = output_dir / "data_quality.json"
        with open(quality_path, 'w', encoding='utf-8') as f:
            json.dump(result.quality.to_dict(), f, indent=2, ensure_ascii=False)
        print(f"  Created: {quality_path}")
    print()


def main():
    parser = argparse.ArgumentParser(
        description="Detect duplicate marketplace listings and build an end-items CSV"
    )
    parser.add_argument(
        "--input", "-i",
        help="Listing export CSV file",
    )
    parser.add_argument(
        "--output-dir", "-o",
        help="Output directory for generated files",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=True,
        help="Analyze only, no file output (default)",
    )
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Actually write output files",
    )
    parser.add_argument(
        "--chunked",
        action="store_true",
        help="Start a resumable run and process one time-budgeted slice",
    )
    parser.add_argument(
        "--resume",
        metavar="PID",
        help="Continue a paused chunked run",
    )
    parser.add_argument(
        "--status",
        metavar="PID",
        help="Show the state of a chunked run",
    )
    parser.add_argument(
        "--review-similar",
        action="store_true",
        help="List near-duplicate titles for manual review",
    )
    parser.add_argument(
        "--env-file",
        help=".env file to load settings from",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed output",
    )

    args = parser.parse_args()

    # If --confirm specified, disable dry-run
    if args.confirm:
        args.dry_run = False

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        config = DedupeConfig.from_env(Path(args.env_file) if args.env_file else None)
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 1
    if args.output_dir:
        config.output_dir = Path(args.output_dir)

    if args.status or args.resume:
        store = build_store(config.state_dir, config.redis_url, config.cache_ttl_seconds)
        controller = ChunkedExecutionController(config, store)

    if args.status:
        status = controller.status(args.status)
        print_status(status)
        return 1 if status.status is RunStatus.FAILED else 0

    csv_text = None
    if args.resume:
        input_label = f"chunked run {args.resume}"
    else:
        if not args.input:
            print("ERROR: --input is required unless --resume or --status is given")
            return 1
        input_path = Path(args.input)
        if not input_path.exists():
            print(f"ERROR: Input file not found: {input_path}")
            return 1
        input_label = str(input_path)
        csv_text = input_path.read_text(encoding="utf-8", errors="replace")

    print("=" * 70)
    print("Listing Duplicate Detection")
    print("=" * 70)
    print(f"Input:  {input_label}")
    print(f"Output: {config.output_dir}")
    print(f"Mode:   {'DRY-RUN (analysis only)' if args.dry_run else 'CONFIRM (will write files)'}")
    print()

    if args.resume or args.chunked:
        if args.chunked:
            store = build_store(config.state_dir, config.redis_url, config.cache_ttl_seconds)
            controller = ChunkedExecutionController(config, store)
            status = controller.start(csv_text)
            print(f"Started chunked run {status.process_id}")
            process_id = status.process_id
        else:
            process_id = args.resume

        status = controller.continue_process(process_id)
        print_status(status)
        if status.status is RunStatus.PAUSED:
            print("Time budget reached. Continue with:")
            print(f"  python {sys.argv[0]} --resume {process_id}{' --confirm' if args.confirm else ''}")
            print()
            return 0
        if status.result is None:
            return 1
        result = status.result
    else:
        print("Processing listings...")
        result = process(csv_text, config)

    print_result(result, verbose=args.verbose)

    if args.review_similar:
        if csv_text is None:
            print("Similarity review needs --input; skipped for resumed runs.")
            print()
        else:
            review_similar(csv_text, config, verbose=args.verbose)

    if not result.success:
        return 1

    # If dry-run, stop here
    if args.dry_run:
        print("=" * 70)
        print("DRY-RUN COMPLETE")
        print("=" * 70)
        print()
        if args.resume or args.chunked:
            print("Chunked results are returned once and the run state is now deleted.")
            print("To write output files, run again with --confirm:")
        else:
            print("To write output files, run with --confirm:")
        if args.input:
            print(f"  python {sys.argv[0]} --input {args.input} --confirm")
        print()
        return 0

    print("=" * 70)
    print("WRITING OUTPUT FILES")
    print("=" * 70)
    print()
    write_outputs(result, config.output_dir)

    print("=" * 70)
    print("GENERATION COMPLETE")
    print("=" * 70)
    print()
    print("Next steps:")
    print("1. Review duplicates.csv; change any Decision you disagree with")
    print("2. Upload the end-items CSV through the marketplace's bulk upload tool")
    print("3. Re-export active listings and run again to confirm")
    print()

    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""CLI entrypoint for the work order store and recovery scan."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from collections.abc import Mapping
from pathlib import Path

from service_desk.order_recovery import open_service, renderer
from service_desk.order_recovery.config import (
    DOCUMENTS_DIRNAME,
    INDEX_DIRNAME,
    STORE_FILENAME,
    RecoveryConfig,
)
from service_desk.order_recovery.exceptions import DirectoryScanError, StoreError
from service_desk.order_recovery.reconcile import RecoveryService
from service_desk.order_recovery.scanner import FileScanResult, now_iso

logger = logging.getLogger("service_desk.order_recovery.cli")


class RecoveryPaths:
    def __init__(
        self,
        root: Path,
        store_path: Path | None = None,
        documents_dir: Path | None = None,
    ) -> None:
        self.root = root
        self.store_path = (store_path or root / STORE_FILENAME).resolve()
        self.documents_dir = (documents_dir or root / DOCUMENTS_DIRNAME).resolve()
        self.index_dir = (root / INDEX_DIRNAME).resolve()
        self.scan_report_path = self.index_dir / "scan_report.json"
        self.csv_path = self.index_dir / "work_orders.csv"
        self.summary_path = self.index_dir / "SUMMARY.md"


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


def resolve_paths(args: argparse.Namespace) -> RecoveryPaths:
    root = Path(args.root).expanduser().resolve() if args.root else Path.cwd()
    store_path = Path(args.store).expanduser() if args.store else None
    documents_dir = Path(args.documents).expanduser() if args.documents else None
    return RecoveryPaths(root, store_path, documents_dir)


def build_config(args: argparse.Namespace) -> RecoveryConfig:
    max_mb = getattr(args, "max_file_mb", None)
    return RecoveryConfig.from_env(
        concurrency=getattr(args, "concurrency", None),
        max_file_bytes=int(max_mb * 1024 * 1024) if max_mb else None,
        id_mode="loose" if getattr(args, "loose", False) else None,
    )


def build_service(args: argparse.Namespace) -> tuple[RecoveryPaths, RecoveryService]:
    paths = resolve_paths(args)
    service = open_service(paths.store_path, paths.documents_dir, build_config(args))
    return paths, service


def command_scan(args: argparse.Namespace) -> None:
    paths, service = build_service(args)
    logger.info("Scanning %s", paths.documents_dir)
    try:
        result = asyncio.run(service.scan_all())
    except DirectoryScanError as exc:
        raise SystemExit(f"Scan failed: {exc}") from exc
    except StoreError as exc:
        raise SystemExit(f"Recovered records were not saved: {exc}") from exc
    if result.scan is not None:
        write_scan_report(paths, result.scan.files, now_iso())
    if result.added_count:
        print(f"{result.added_count} records recovered.")
    else:
        print("No new records found.")


def command_check(args: argparse.Namespace) -> None:
    paths, service = build_service(args)
    try:
        result = asyncio.run(service.preview())
    except DirectoryScanError as exc:
        raise SystemExit(f"Scan failed: {exc}") from exc
    added = set(result.added_ids)
    statuses = []
    files = result.scan.files if result.scan else {}
    for name, file_result in files.items():
        if file_result.status != "recovered":
            label = file_result.status
        elif file_result.identifier in added:
            label = "new"
        else:
            label = "known"
        statuses.append((name, file_result.identifier, label))
    print_status_table(statuses)
    print(f"\nWould recover {result.added_count} records; lastNumber -> {result.store.last_number}")


def command_find(args: argparse.Namespace) -> None:
    _, service = build_service(args)
    candidate = asyncio.run(service.scan_one(args.identifier))
    if candidate is None:
        raise SystemExit(f"No document found for OS {args.identifier}")
    print(json.dumps(candidate.to_dict(), indent=2, ensure_ascii=False))
    existing = service.store.get(args.identifier)
    if existing is not None:
        print(f"\nOS {args.identifier} already exists in the store (client: {existing.client}).")


def command_export(args: argparse.Namespace) -> None:
    paths, service = build_service(args)
    output = Path(args.output).expanduser() if args.output else paths.csv_path
    count = renderer.export_csv(service.store, output)
    logger.info("Exported %d records to %s", count, output)


def command_summary(args: argparse.Namespace) -> None:
    paths, service = build_service(args)
    scan_results = load_scan_results(paths)
    content = renderer.render_summary(
        service.store, paths.summary_path, scan_results=scan_results.values()
    )
    logger.info("Summary written to %s (%d characters)", paths.summary_path, len(content))


def write_scan_report(
    paths: RecoveryPaths, files: Mapping[str, FileScanResult], timestamp: str
) -> None:
    counts: dict[str, int] = {}
    for result in files.values():
        counts[result.status] = counts.get(result.status, 0) + 1
    report = {
        "timestamp": timestamp,
        "documents": str(paths.documents_dir),
        "files": {name: result.to_dict() for name, result in sorted(files.items())},
        "counts": {"files": len(files), **counts},
    }
    paths.scan_report_path.parent.mkdir(parents=True, exist_ok=True)
    with paths.scan_report_path.open("w", encoding="utf-8") as fh:
        json.dump(report, fh, indent=2, ensure_ascii=False)


def load_scan_results(paths: RecoveryPaths) -> dict[str, FileScanResult]:
    if not paths.scan_report_path.exists():
        return {}
    with paths.scan_report_path.open("r", encoding="utf-8") as fh:
        report = json.load(fh)
    return {
        name: FileScanResult(
            file=entry.get("file", name),
            identifier=int(entry.get("identifier", 0)),
            size=int(entry.get("size", 0)),
            mtime=int(entry.get("mtime", 0)),
            status=entry.get("status", "pending"),
            error=entry.get("error"),
        )
        for name, entry in report.get("files", {}).items()
    }


def print_status_table(statuses: list[tuple[str, int, str]]) -> None:
    print("File".ljust(60), "OS".ljust(8), "Status")
    print("-" * 80)
    for name, identifier, status in sorted(statuses, key=lambda row: (row[1], row[0])):
        print(name.ljust(60), str(identifier).ljust(8), status)


def add_scan_options(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--concurrency",
        type=int,
        help="Maximum documents mined at once (overrides ORDER_SCAN_CONCURRENCY)",
    )
    subparser.add_argument(
        "--max-file-mb",
        type=float,
        help="Skip documents larger than this (overrides ORDER_SCAN_MAX_BYTES)",
    )
    subparser.add_argument(
        "--loose",
        action="store_true",
        help="Accept the first digit run anywhere in a filename as the OS number",
    )


def build_parser() -> argparse.ArgumentParser:
    parser_obj = argparse.ArgumentParser(description="Work order store and recovery scan")
    parser_obj.add_argument("--root", help="Data directory (defaults to the current directory)")
    parser_obj.add_argument("--store", help=f"Store file (defaults to <root>/{STORE_FILENAME})")
    parser_obj.add_argument(
        "--documents", help=f"Generated documents folder (defaults to <root>/{DOCUMENTS_DIRNAME})"
    )
    parser_obj.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser_obj.add_subparsers(dest="command")

    scan_parser = subparsers.add_parser("scan", help="Recover missing work orders from documents")
    add_scan_options(scan_parser)
    scan_parser.set_defaults(func=command_scan)

    check_parser = subparsers.add_parser("check", help="Dry-run recovery scan")
    add_scan_options(check_parser)
    check_parser.set_defaults(func=command_check)

    find_parser = subparsers.add_parser("find", help="Mine the document for one OS number")
    find_parser.add_argument("identifier", type=int, help="OS number")
    find_parser.set_defaults(func=command_find)

    export_parser = subparsers.add_parser("export", help="Export the store as CSV")
    export_parser.add_argument("--output", help="CSV path (defaults to _index/work_orders.csv)")
    export_parser.set_defaults(func=command_export)

    summary_parser = subparsers.add_parser("summary", help="Render Markdown summary")
    summary_parser.set_defaults(func=command_summary)

    return parser_obj


def main(argv: list[str] | None = None) -> None:
    parser_obj = build_parser()
    args = parser_obj.parse_args(argv)
    if not getattr(args, "command", None):
        parser_obj.print_help()
        return
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Import a question workbook into a practice test from the command line.

Usage:
    python3 scripts/import_questions.py paper.xlsx --test-id 3 --test-type reading
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from app import app
from services.excel_import import ImportConflictError, import_questions


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import paragraphs/audio sections and questions from an Excel file."
    )
    parser.add_argument("file", help="Path to the .xlsx/.xls workbook.")
    parser.add_argument("--test-id", type=int, required=True, help="Destination test id.")
    parser.add_argument(
        "--test-type",
        default="reading",
        help="reading (3 paragraph rows), listening (4 audio rows) or other (none).",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    path = Path(args.file)
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 2

    with app.app_context():
        try:
            result = import_questions(path.read_bytes(), path.name, args.test_id, args.test_type)
        except ImportConflictError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    if not result.success:
        print(f"Error: {result.message}", file=sys.stderr)
        return 1

    print(f"{result.message} ({result.content_count} content row(s))", flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

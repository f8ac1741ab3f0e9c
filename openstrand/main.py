"""
Command line entry point. `openstrand check` validates schema files and reports
every error and warning with its field path.
"""

import argparse
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from rich.console import Console
from rich.markup import escape

from openstrand.config.logger import get_console, get_logger
from openstrand.config.settings import APP_NAME
from openstrand.config.setup import setup
from openstrand.config.text_styles import (
    COLOR_ERROR,
    COLOR_PATH,
    COLOR_SUCCESS,
    COLOR_WARN,
    EMOJI_ERROR,
    EMOJI_SUCCESS,
    EMOJI_WARN,
)
from openstrand.errors import FileFormatError, is_fatal
from openstrand.model.schema_model import ParseResult
from openstrand.schema.parser import MARKDOWN_SUFFIXES, read_schema_file
from openstrand.version import get_version

log = get_logger(__name__)

SCHEMA_SUFFIXES = (".yaml", ".yml") + MARKDOWN_SUFFIXES


def schema_files(paths: Iterable[Path]) -> List[Path]:
    """
    The given files, plus any schema files found under the given directories,
    sorted within each directory.
    """
    result: List[Path] = []
    for path in paths:
        if path.is_dir():
            result.extend(
                p for p in sorted(path.rglob("*")) if p.is_file() and p.suffix in SCHEMA_SUFFIXES
            )
        else:
            result.append(path)
    return result


def print_result(console: Console, path: Path, result: ParseResult) -> None:
    name = escape(str(path))
    if result.success:
        kind = result.data.kind if result.data else ""
        console.print(f"[{COLOR_SUCCESS}]{EMOJI_SUCCESS}[/] [{COLOR_PATH}]{name}[/] ({kind})")
    else:
        console.print(f"[{COLOR_ERROR}]{EMOJI_ERROR}[/] [{COLOR_PATH}]{name}[/]")

    for issue in result.errors:
        console.print(f"    [{COLOR_ERROR}]error[/] {escape(str(issue))}", highlight=False)
    for issue in result.warnings:
        console.print(
            f"    [{COLOR_WARN}]{EMOJI_WARN} warning[/] {escape(str(issue))}", highlight=False
        )


def check_files(paths: Iterable[Path], console: Optional[Console] = None) -> bool:
    """
    Parse and validate each file, printing its errors and warnings. Returns True
    if every file is a valid schema.
    """
    console = console or get_console()
    all_ok = True
    for path in schema_files(paths):
        try:
            result = read_schema_file(path)
        except (FileNotFoundError, IsADirectoryError, FileFormatError) as e:
            name, message = escape(str(path)), escape(str(e))
            console.print(f"[{COLOR_ERROR}]{EMOJI_ERROR}[/] [{COLOR_PATH}]{name}[/]: {message}")
            all_ok = False
            continue

        print_result(console, path, result)
        all_ok = all_ok and result.success

    return all_ok


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Validate OpenStrand schema files (Looms, Weaves and Strands).",
    )
    parser.add_argument("--version", action="store_true", help="show the version and exit")

    subparsers = parser.add_subparsers(dest="command")
    check = subparsers.add_parser(
        "check",
        help="check schema files",
        description="Check schema files. Directories are searched for YAML and Markdown files.",
    )
    check.add_argument("paths", nargs="+", type=Path, help="files or directories to check")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    setup()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"{APP_NAME} {get_version()}")
        return 0

    if args.command == "check":
        try:
            ok = check_files(args.paths)
        except Exception as e:
            if is_fatal(e):
                raise
            log.error("%s", e)
            return 1
        log.info("Checked %s: %s", ", ".join(str(p) for p in args.paths), "ok" if ok else "failed")
        return 0 if ok else 1

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())


## Tests


def test_check_files(tmp_path):
    (tmp_path / "loom.yaml").write_text("kind: Loom\nmetadata:\n  name: Research\n")
    (tmp_path / "notes").mkdir()
    (tmp_path / "notes" / "intro.md").write_text(
        "---\nkind: Strand\ntitle: Intro\ndifficulty: 6\n---\nBody\n"
    )

    console = Console(record=True, width=200)
    assert check_files([tmp_path / "loom.yaml"], console)
    assert not check_files([tmp_path], console)
    assert not check_files([tmp_path / "missing.yaml"], console)

    output = console.export_text()
    assert "difficulty: Number must be at most 5" in output
    assert "missing.yaml" in output

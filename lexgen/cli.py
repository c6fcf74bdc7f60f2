"""
Command line entry point.

Usage:
    lexgen --input ./lexicons --out ./src/client --package client
    python -m lexgen -i ./lexicons -o ./generated --strict

Flags override ``LEXGEN_*`` environment variables and ``.env`` values.

Exit status:
    0  run completed (skipped documents are reported, not fatal)
    1  invalid configuration, missing input or unwritable output
    2  ``--strict`` and at least one document was skipped
"""

import argparse
import sys
from typing import List, Optional

from pydantic import ValidationError

from .config import GeneratorSettings
from .driver import CodegenDriver, GenerationReport
from .errors import ConfigurationError
from .observability import configure_logging

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_SKIPPED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lexgen",
        description="Generate typed Python modules from lexicon schema documents",
    )
    parser.add_argument(
        "--input",
        "-i",
        dest="input_dir",
        help="Directory containing lexicon JSON documents (default: ./lexicons)",
    )
    parser.add_argument(
        "--out",
        "-o",
        dest="output_dir",
        help="Output directory for generated code (default: ./generated)",
    )
    parser.add_argument(
        "--package",
        help="Import prefix under which the output directory is importable",
    )
    parser.add_argument(
        "--runtime-package",
        help="Package providing Did, AtUri and the XRPC types (default: lexgen.runtime)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Exit with status 2 when any document is skipped",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        type=str.lower,
        help="Logging level (default: info)",
    )
    return parser


def print_summary(report: GenerationReport, settings: GeneratorSettings) -> None:
    print(f"Generated {report.generated_count} files")
    print(f"Skipped {report.skipped_count} files")
    for skipped in report.skipped:
        print(f"   ✗ {skipped.describe()}")
    print(f"Output: {settings.output_dir}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {
        key: value
        for key, value in vars(args).items()
        if value is not None
    }

    try:
        settings = GeneratorSettings(**overrides)
    except ValidationError as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    configure_logging(settings.log_level)

    try:
        report = CodegenDriver(settings).run()
    except ConfigurationError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return EXIT_FAILURE
    except OSError as exc:
        print(f"Error: cannot write output: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    print_summary(report, settings)
    if settings.strict and report.skipped:
        return EXIT_SKIPPED
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

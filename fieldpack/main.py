"""fieldpack/main.py: command-line entry point.

Usage examples
--------------
    # Report structs whose fields could be reordered (amd64 layout)
    fieldpack types.go

    # 32-bit ARM layout, JSON output with suggested fixes
    fieldpack --arch arm --format json pkg/*.go

    # Show the suggested struct under each finding
    fieldpack --show-fix types.go

    # Rewrite the files in place
    fieldpack --fix types.go

Exit codes
----------
    0   No findings.
    1   One or more structs could be reordered.
    2   Infrastructure failure (missing file, parse error, bad options).

The module doubles as ``python -m fieldpack`` via ``fieldpack/__main__.py``.
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from itertools import repeat
from typing import Any, Dict, List, Optional, Sequence, TextIO

from fieldpack import __version__
from fieldpack.checkers import (
    CheckerRunner,
    CheckerRunResults,
    Diagnostic,
    SuppressionManager,
)
from fieldpack.errors import ConfigError, FieldpackError
from fieldpack.parser import parse_file
from fieldpack.patcher import apply_fixes
from fieldpack.sizes import ABIConfig, DEFAULT_ARCH, GC_ARCH_SIZES

_log = logging.getLogger("fieldpack")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_FINDINGS: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``fieldpack`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("fieldpack")
    root.setLevel(level)
    if not root.handlers:
        root.addHandler(handler)


def _abi_from_args(args: argparse.Namespace) -> ABIConfig:
    abi = ABIConfig.for_arch(args.arch)
    if args.word_size is None and args.max_align is None:
        return abi
    word_size = args.word_size or abi.word_size
    max_align = args.max_align or (args.word_size or abi.max_align)
    return ABIConfig.for_word_size(word_size, max_align)


def _emit_diagnostics(
    diagnostics: List[Diagnostic],
    fmt: str,
    stream: TextIO,
    show_fix: bool = False,
) -> None:
    """Write *diagnostics* to *stream* in the chosen format."""
    for diag in diagnostics:
        if fmt == "json":
            stream.write(diag.to_json_str() + "\n")
            continue
        stream.write(diag.to_gcc_format() + "\n")
        if show_fix:
            for fix in diag.fixes:
                for edit in fix.edits:
                    stream.write(textwrap.indent(edit.new_text, "    ") + "\n")


# ===========================================================================
# Per-file analysis (runs in worker processes with --jobs)
# ===========================================================================

@dataclass
class FileOutcome:
    path: str
    results: Optional[CheckerRunResults] = None
    error: Optional[str] = None


def analyze_path(
    path: str,
    options: Dict[str, Any],
    suppress: Sequence[str] = (),
) -> FileOutcome:
    """Parse and check one file; parse and I/O failures become ``error``."""
    try:
        source = parse_file(path)
    except FieldpackError as exc:
        return FileOutcome(path, error=exc.to_gcc_format())
    except (OSError, UnicodeDecodeError) as exc:
        return FileOutcome(path, error=f"{path}: error: {exc}")

    suppressions = SuppressionManager()
    for spec in suppress:
        suppressions.add_from_spec(spec)
    runner = CheckerRunner(suppressions=suppressions, options=options)
    return FileOutcome(path, results=runner.run(source))


def analyze_paths(
    paths: Sequence[str],
    options: Dict[str, Any],
    suppress: Sequence[str] = (),
    jobs: int = 1,
) -> List[FileOutcome]:
    """Analyze ``paths``, in parallel when ``jobs > 1``; order is preserved."""
    if jobs <= 1 or len(paths) <= 1:
        return [analyze_path(p, options, suppress) for p in paths]
    with ProcessPoolExecutor(max_workers=jobs) as pool:
        return list(pool.map(analyze_path, paths, repeat(options),
                             repeat(tuple(suppress))))


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fieldpack",
        description=(
            "Find Go struct types whose fields could be reordered to take\n"
            "less memory or fewer GC-scanned pointer bytes."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              fieldpack types.go
              fieldpack --arch 386 --show-fix types.go
              fieldpack --fix -j 4 pkg/*.go
        """),
    )
    parser.add_argument("files", nargs="+", metavar="FILE",
                        help="Go source files to check.")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    target = parser.add_argument_group("target layout")
    target.add_argument(
        "--arch",
        default=DEFAULT_ARCH,
        metavar="GOARCH",
        help=f"Target architecture (default: {DEFAULT_ARCH}; one of "
             f"{', '.join(sorted(GC_ARCH_SIZES))}).",
    )
    target.add_argument("--word-size", type=int, default=None, metavar="N",
                        help="Override the pointer size in bytes.")
    target.add_argument("--max-align", type=int, default=None, metavar="N",
                        help="Override the maximum alignment in bytes.")

    output = parser.add_argument_group("output")
    output.add_argument(
        "-f", "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text).",
    )
    output.add_argument("--show-fix", action="store_true",
                        help="Print the suggested struct under each finding.")
    output.add_argument("--fix", action="store_true",
                        help="Apply the suggested fixes in place.")
    output.add_argument(
        "--suppress",
        action="append",
        default=[],
        metavar="ID[:PATTERN]",
        help="Suppress an error id, optionally only in matching files.",
    )
    parser.add_argument("-j", "--jobs", type=int, default=1, metavar="N",
                        help="Analyze files in N worker processes.")
    return parser


# ===========================================================================
# Main
# ===========================================================================

def _run(args: argparse.Namespace, stream: TextIO) -> int:
    try:
        options = {"abi": _abi_from_args(args)}
    except ConfigError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    if args.jobs < 1:
        _log.error("--jobs must be at least 1, got %d", args.jobs)
        return EXIT_INFRA

    infra_failure = False
    combined = CheckerRunResults()
    for outcome in analyze_paths(args.files, options, args.suppress, args.jobs):
        if outcome.error is not None:
            sys.stderr.write(outcome.error + "\n")
            infra_failure = True
            continue
        combined.merge(outcome.results)

    _emit_diagnostics(combined.diagnostics, args.format, stream, args.show_fix)
    _log.info("%s", combined.summary())

    findings = combined.findings
    if args.fix and findings:
        for path in apply_fixes(findings):
            _log.info("rewrote %s", path)

    if infra_failure:
        return EXIT_INFRA
    return EXIT_FINDINGS if findings else EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the fieldpack CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    try:
        return _run(args, sys.stdout)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except FieldpackError as exc:
        sys.stderr.write(exc.to_gcc_format() + "\n")
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())

"""
fieldpack/checkers.py
═════════════════════

Checker framework and the field-alignment checker.

Bridges the layout analysis (type checker, layout analyzer, record
rewriter, renderer) to cppcheck-addon-compatible diagnostics that carry a
suggested fix.

Architecture
────────────

  ┌─────────────────────────────────────────────────────────┐
  │                   CheckerRunner                         │
  │  ┌──────────────────────────────────────────────────┐   │
  │  │             FieldAlignmentChecker                │   │
  │  └──────────────────────┬───────────────────────────┘   │
  │                         │                               │
  │  ┌──────────────────────▼───────────────────────────┐   │
  │  │              Evidence Collection                 │   │
  │  │  typecheck │ layout │ rewriter │ render          │   │
  │  └──────────────────────┬───────────────────────────┘   │
  │                         │                               │
  │  ┌──────────────────────▼───────────────────────────┐   │
  │  │           SuppressionManager                     │   │
  │  │  // fieldpack-suppress │  file-level  │  global  │   │
  │  └──────────────────────┬───────────────────────────┘   │
  │                         │                               │
  │  ┌──────────────────────▼───────────────────────────┐   │
  │  │        Diagnostic Formatter (JSON / text)        │   │
  │  └──────────────────────────────────────────────────┘   │
  └─────────────────────────────────────────────────────────┘

Each Checker follows a four-phase lifecycle:

  1. **configure()**        set up the sizing model from the options
  2. **collect_evidence()** rewrite every top-level struct declaration
  3. **diagnose()**         render the rewrites into diagnostics and fixes
  4. **report()**           emit Diagnostics (filtered by suppressions)
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum, auto
from fnmatch import fnmatch
from typing import (
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from fieldpack import ast
from fieldpack.errors import LayoutInvariantError, RenderError
from fieldpack.render import render_type
from fieldpack.rewriter import RecordRewriter, RewriteResult
from fieldpack.sizes import ABIConfig, DEFAULT_ARCH, GcSizes
from fieldpack.typecheck import TypeChecker

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — DIAGNOSTIC MODEL
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """cppcheck-compatible severity levels."""
    ERROR = "error"
    WARNING = "warning"
    STYLE = "style"
    PERFORMANCE = "performance"
    PORTABILITY = "portability"
    INFORMATION = "information"


class Confidence(Enum):
    """
    How certain we are that the diagnostic is a true positive.

    HIGH  : the layout is computed exactly for the configured target
    MEDIUM: the layout depends on assumed external type layouts
    """
    HIGH = auto()
    MEDIUM = auto()


@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class TextEdit:
    """Replace ``text[start:end]`` of ``file`` with ``new_text``."""
    start: int
    end: int
    new_text: str
    file: str = ""

    def to_json(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end, "newText": self.new_text}


@dataclass(frozen=True)
class SuggestedFix:
    message: str
    edits: Tuple[TextEdit, ...] = ()

    def to_json(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "edits": [e.to_json() for e in self.edits],
        }


@dataclass(frozen=True)
class Diagnostic:
    """
    A single diagnostic finding.

    Designed for direct serialization to cppcheck's JSON addon protocol.

    Attributes
    ----------
    error_id     : Unique identifier (e.g., "fieldAlignment")
    message      : Human-readable description
    severity     : DiagnosticSeverity
    location     : Primary source location
    confidence   : Confidence level
    checker_name : Name of the checker that produced this
    addon        : Addon name for cppcheck protocol
    extra        : Additional context string
    fixes        : Suggested source rewrites
    evidence     : Machine-readable evidence dict for downstream tooling
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    confidence: Confidence = Confidence.MEDIUM
    checker_name: str = ""
    addon: str = "fieldpack"
    extra: str = ""
    fixes: Tuple[SuggestedFix, ...] = ()
    evidence: Dict[str, Any] = field(default_factory=dict)

    def to_cppcheck_json(self) -> Dict[str, Any]:
        """Serialize to cppcheck's JSON addon output format."""
        result: Dict[str, Any] = {
            "file": self.location.file,
            "linenr": self.location.line,
            "column": self.location.column,
            "severity": self.severity.value,
            "message": self.message,
            "addon": self.addon,
            "errorId": self.error_id,
            "extra": self.extra,
        }
        if self.fixes:
            result["fixes"] = [f.to_json() for f in self.fixes]
        return result

    def to_json_str(self) -> str:
        """Single-line JSON string."""
        return json.dumps(self.to_cppcheck_json())

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message."""
        sev = self.severity.value
        return f"{self.location}: {sev}: {self.message} [{self.error_id}]"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — SUPPRESSION MANAGER
# ═════════════════════════════════════════════════════════════════════════

_INLINE_SUPPRESS = re.compile(r"//\s*fieldpack-suppress\b([^\n]*)")


class SuppressionManager:
    """
    Manages diagnostic suppressions from multiple sources.

    Sources:
      1. Inline comments:  ``// fieldpack-suppress errorId``, on the line of
         the finding or on the line above it; without an id every finding
         is suppressed
      2. File-level suppressions (``--suppress errorId:pattern``)
      3. Global suppressions (``--suppress errorId``)

    Usage
    -----
    >>> sm = SuppressionManager()
    >>> sm.load_inline_suppressions(source)
    >>> sm.add_file_suppression("fieldAlignment", "gen/*.go")
    >>> if not sm.is_suppressed(diagnostic):
    ...     emit(diagnostic)
    """

    def __init__(self) -> None:
        # {(file, line)} → set of error_ids suppressed at that location
        self._inline: Dict[Tuple[str, int], Set[str]] = defaultdict(set)
        # file pattern → set of error_ids
        self._file_level: Dict[str, Set[str]] = defaultdict(set)
        # globally suppressed error_ids
        self._global: Set[str] = set()

    def load_inline_suppressions(self, source: ast.SourceFile) -> None:
        """Scan the source text for ``// fieldpack-suppress`` comments."""
        for lineno, line in enumerate(source.text.splitlines(), start=1):
            m = _INLINE_SUPPRESS.search(line)
            if m is None:
                continue
            ids = [i for i in re.split(r"[\s,]+", m.group(1)) if i]
            self._inline[(source.filename, lineno)].update(ids or ["*"])

    def add_file_suppression(self, error_id: str, file_pattern: str) -> None:
        """Suppress ``error_id`` in files matching ``file_pattern``."""
        self._file_level[file_pattern].add(error_id)

    def add_global_suppression(self, error_id: str) -> None:
        """Globally suppress ``error_id``."""
        self._global.add(error_id)

    def add_from_spec(self, spec: str) -> None:
        """Add a command-line suppression: ``errorId`` or ``errorId:pattern``."""
        error_id, sep, pattern = spec.partition(":")
        if sep and pattern:
            self.add_file_suppression(error_id, pattern)
        else:
            self.add_global_suppression(error_id)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        """Check whether a diagnostic should be suppressed."""
        eid = diag.error_id

        if eid in self._global or "*" in self._global:
            return True

        loc = diag.location

        # Inline (exact line match, or line-1 for preceding-line suppress)
        for line_offset in (0, 1):
            key = (loc.file, loc.line - line_offset)
            suppressed_ids = self._inline.get(key, set())
            if eid in suppressed_ids or "*" in suppressed_ids:
                return True

        for pattern, ids in self._file_level.items():
            if eid in ids or "*" in ids:
                if pattern == loc.file or loc.file.endswith(pattern):
                    return True
                if fnmatch(loc.file, pattern):
                    return True

        return False

    def filter_diagnostics(
        self, diagnostics: Iterable[Diagnostic]
    ) -> List[Diagnostic]:
        """Return only non-suppressed diagnostics."""
        return [d for d in diagnostics if not self.is_suppressed(d)]


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — CHECKER BASE CLASS
# ═════════════════════════════════════════════════════════════════════════

class Checker(ABC):
    """
    Abstract base class for all checkers.

    Lifecycle
    ─────────
      1. ``configure(ctx)``       : receive context, declare needs
      2. ``collect_evidence(ctx)`` : run or consume analyses
      3. ``diagnose(ctx)``         : correlate evidence into diagnostics
      4. ``report(ctx)``           : yield final diagnostics

    Subclass Contract
    ─────────────────
      - Override ``name``, ``description``, ``error_ids``
      - Implement ``collect_evidence()`` and ``diagnose()``
      - Optionally override ``configure()`` for custom setup
    """

    name: ClassVar[str] = "base-checker"
    description: ClassVar[str] = ""
    error_ids: ClassVar[FrozenSet[str]] = frozenset()
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def configure(self, ctx: CheckerContext) -> None:
        """Called before evidence collection. Default does nothing."""

    @abstractmethod
    def collect_evidence(self, ctx: CheckerContext) -> None:
        ...

    @abstractmethod
    def diagnose(self, ctx: CheckerContext) -> None:
        """Append diagnostics to ``self._diagnostics``."""
        ...

    def report(self, ctx: CheckerContext) -> List[Diagnostic]:
        """Return final diagnostics, filtered by suppressions."""
        return ctx.suppressions.filter_diagnostics(self._diagnostics)

    def _emit(
        self,
        error_id: str,
        message: str,
        file: str,
        line: int,
        column: int = 0,
        severity: Optional[DiagnosticSeverity] = None,
        confidence: Confidence = Confidence.MEDIUM,
        extra: str = "",
        fixes: Tuple[SuggestedFix, ...] = (),
        evidence: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Helper to create and store a diagnostic."""
        self._diagnostics.append(Diagnostic(
            error_id=error_id,
            message=message,
            severity=severity or self.default_severity,
            location=SourceLocation(file=file, line=line, column=column),
            confidence=confidence,
            checker_name=self.name,
            extra=extra,
            fixes=fixes,
            evidence=evidence or {},
        ))

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"


@dataclass
class CheckerContext:
    """
    Shared context passed to every checker during execution.

    Attributes
    ----------
    source       : the parsed source file
    suppressions : SuppressionManager
    analyses     : dict of shared analysis results (keyed by name)
    options      : user-provided options dict (``abi``: ABIConfig)
    stats        : mutable dict for timing / counting statistics
    """
    source: ast.SourceFile
    suppressions: SuppressionManager = field(default_factory=SuppressionManager)
    analyses: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    def get_analysis(self, name: str) -> Any:
        return self.analyses.get(name)

    def set_analysis(self, name: str, result: Any) -> None:
        self.analyses[name] = result

    def get_option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    def type_checker(self) -> TypeChecker:
        """The file's TypeChecker, shared between checkers."""
        checker = self.get_analysis("typecheck")
        if checker is None:
            checker = TypeChecker(self.source, self.get_option("extern"))
            self.set_analysis("typecheck", checker)
        return checker


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — CHECKER REGISTRY
# ═════════════════════════════════════════════════════════════════════════

class CheckerRegistry:
    """
    Registry of available checkers.

    Usage
    -----
    >>> registry = CheckerRegistry()
    >>> registry.register(FieldAlignmentChecker)
    >>> checkers = registry.get_enabled()
    """

    def __init__(self) -> None:
        self._checkers: Dict[str, Type[Checker]] = {}
        self._disabled: Set[str] = set()

    def register(self, checker_cls: Type[Checker]) -> None:
        self._checkers[checker_cls.name] = checker_cls

    def disable(self, name: str) -> None:
        self._disabled.add(name)

    def get_enabled(self) -> List[Type[Checker]]:
        """Return only enabled checker classes."""
        return [
            cls for name, cls in self._checkers.items()
            if name not in self._disabled
        ]

    def get_by_name(self, name: str) -> Optional[Type[Checker]]:
        return self._checkers.get(name)

    @property
    def names(self) -> List[str]:
        return sorted(self._checkers.keys())


# ═════════════════════════════════════════════════════════════════════════
#  PART 5 — FIELD ALIGNMENT CHECKER
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class _Candidate:
    spec: ast.TypeSpec
    struct: ast.StructType
    result: RewriteResult


class FieldAlignmentChecker(Checker):
    """
    Finds struct declarations whose fields could be reordered to use less
    memory or fewer GC-scanned pointer bytes, and suggests the optimal
    order as a fix.

    Only top-level ``type`` declarations whose type is a struct expression
    are checked; nested struct expressions are handled as part of their
    enclosing declaration.
    """

    name: ClassVar[str] = "fieldalignment"
    description: ClassVar[str] = "Struct field order wastes memory"
    error_ids: ClassVar[FrozenSet[str]] = frozenset({"fieldAlignment"})
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.PERFORMANCE

    def __init__(self) -> None:
        super().__init__()
        self._candidates: List[_Candidate] = []
        self.sizes: Optional[GcSizes] = None

    def configure(self, ctx: CheckerContext) -> None:
        abi = ctx.get_option("abi") or ABIConfig.for_arch(DEFAULT_ARCH)
        self.sizes = GcSizes(abi)

    def collect_evidence(self, ctx: CheckerContext) -> None:
        rewriter = RecordRewriter(self.sizes, ctx.type_checker().resolve)
        for spec in ctx.source.types:
            if not isinstance(spec.type, ast.StructType):
                continue
            if spec.generic:
                logger.debug("%s: generic struct skipped", spec.name)
                continue
            result = rewriter.rewrite(spec.name, spec.type)
            if result.messages:
                self._candidates.append(_Candidate(spec, spec.type, result))
        ctx.stats["structs_rewritten"] = len(self._candidates)

    def diagnose(self, ctx: CheckerContext) -> None:
        source = ctx.source
        for cand in self._candidates:
            span = cand.struct.span
            try:
                new_text = render_type(
                    cand.result.expr, source.line_indent(span.start)
                )
            except RenderError as exc:
                logger.debug("%s: %s, diagnostic dropped",
                             cand.spec.name, exc.message)
                continue
            if "\r\n" in source.text[span.start:span.end]:
                new_text = new_text.replace("\n", "\r\n")
            external = sorted(ctx.type_checker().external_layouts(cand.struct))
            fix = SuggestedFix(
                "Rearrange fields",
                (TextEdit(span.start, span.end, new_text, source.filename),),
            )
            self._emit(
                error_id="fieldAlignment",
                message=cand.result.message,
                file=source.filename,
                line=span.line,
                column=span.column,
                confidence=Confidence.MEDIUM if external else Confidence.HIGH,
                fixes=(fix,),
                evidence={"type": cand.spec.name,
                          "messages": list(cand.result.messages),
                          "external": external},
            )


# ═════════════════════════════════════════════════════════════════════════
#  PART 6 — CHECKER RUNNER
# ═════════════════════════════════════════════════════════════════════════

_DEFAULT_REGISTRY = CheckerRegistry()
_DEFAULT_REGISTRY.register(FieldAlignmentChecker)


@dataclass
class CheckerRunResults:
    """
    Aggregate results from running a suite of checkers.

    Attributes
    ----------
    diagnostics            : All diagnostics from all checkers
    diagnostics_by_checker : Diagnostics grouped by checker name
    stats                  : Timing and counting statistics
    checker_names          : Names of checkers that were run
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    diagnostics_by_checker: Dict[str, List[Diagnostic]] = field(
        default_factory=lambda: defaultdict(list)
    )
    stats: Dict[str, Any] = field(default_factory=dict)
    checker_names: List[str] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    @property
    def findings(self) -> List[Diagnostic]:
        """Diagnostics other than internal checker failures."""
        return [d for d in self.diagnostics
                if d.error_id != "checkerInternalError"]

    def by_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.location.file == file]

    def merge(self, other: CheckerRunResults) -> None:
        """Accumulate ``other`` into this result."""
        self.diagnostics.extend(other.diagnostics)
        for name, diags in other.diagnostics_by_checker.items():
            self.diagnostics_by_checker[name].extend(diags)
        for key, val in other.stats.items():
            self.stats[key] = self.stats.get(key, 0) + val
        for name in other.checker_names:
            if name not in self.checker_names:
                self.checker_names.append(name)

    def to_json_lines(self) -> str:
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [f"Checker run complete: {self.total_count} diagnostics"]
        for name in self.checker_names:
            count = len(self.diagnostics_by_checker.get(name, []))
            elapsed = self.stats.get(f"{name}_elapsed_ms", 0)
            lines.append(f"  {name}: {count} findings ({elapsed:.1f}ms)")
        return "\n".join(lines)


class CheckerRunner:
    """
    Runs a suite of checkers against a parsed source file.

    Usage
    -----
    >>> runner = CheckerRunner(options={"abi": ABIConfig.for_arch("arm")})
    >>> results = runner.run(parse_file("types.go"))
    >>> print(results.summary())

    Parameters for constructor
    ─────────────────────────
    registry    : CheckerRegistry: source of checker classes
    suppressions: SuppressionManager: pre-loaded suppression rules
    options     : dict: per-checker configuration
    """

    def __init__(
        self,
        registry: Optional[CheckerRegistry] = None,
        suppressions: Optional[SuppressionManager] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.registry = registry or _DEFAULT_REGISTRY
        self.suppressions = suppressions or SuppressionManager()
        self.options = options or {}

    def run(
        self,
        source: ast.SourceFile,
        checkers: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """
        Run checkers against a single source file.

        Parameters
        ----------
        source   : parsed source file
        checkers : list of checker names to run (None = all enabled)
        """
        results = CheckerRunResults()

        self.suppressions.load_inline_suppressions(source)

        ctx = CheckerContext(
            source=source,
            suppressions=self.suppressions,
            options=self.options,
        )

        if checkers is not None:
            checker_classes: List[Type[Checker]] = []
            for name in checkers:
                cls = self.registry.get_by_name(name)
                if cls is not None:
                    checker_classes.append(cls)
        else:
            checker_classes = self.registry.get_enabled()

        for cls in checker_classes:
            checker = cls()
            checker_name = cls.name
            results.checker_names.append(checker_name)

            t0 = time.monotonic()
            try:
                checker.configure(ctx)
                checker.collect_evidence(ctx)
                checker.diagnose(ctx)
                diags = checker.report(ctx)
            except LayoutInvariantError:
                raise
            except Exception as exc:
                # Graceful degradation: report the failure, don't crash
                logger.debug("checker %s failed", checker_name, exc_info=True)
                diags = [Diagnostic(
                    error_id="checkerInternalError",
                    message=f"Checker '{checker_name}' failed: {exc}",
                    severity=DiagnosticSeverity.INFORMATION,
                    location=SourceLocation(file=source.filename),
                    checker_name=checker_name,
                )]
            elapsed_ms = (time.monotonic() - t0) * 1000.0

            results.diagnostics.extend(diags)
            results.diagnostics_by_checker[checker_name] = diags
            results.stats[f"{checker_name}_elapsed_ms"] = elapsed_ms

        results.stats.update(ctx.stats)
        return results


__all__ = [
    # Diagnostic model
    "Diagnostic",
    "DiagnosticSeverity",
    "Confidence",
    "SourceLocation",
    "TextEdit",
    "SuggestedFix",
    # Suppression
    "SuppressionManager",
    # Checker framework
    "Checker",
    "CheckerContext",
    "CheckerRegistry",
    "FieldAlignmentChecker",
    # Runner
    "CheckerRunner",
    "CheckerRunResults",
]

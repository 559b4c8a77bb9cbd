# fieldpack/errors.py
"""
Error types for the fieldpack analysis pipeline.

Architecture Overview:
──────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│                          Error Hierarchy                                     │
├─────────────────────────────────────────────────────────────────────────────┤
│  FieldpackError (base)                                                      │
│  ├── ParseError            - Declaration source does not match the grammar  │
│  ├── TypeCheckError        - Type expression cannot be resolved             │
│  ├── RenderError           - Rewritten struct cannot be printed             │
│  ├── PatchError            - Suggested edits cannot be applied              │
│  ├── ConfigError           - Bad ABI / command-line configuration           │
│  └── LayoutInvariantError  - Layout model bugs (should never happen)        │
└─────────────────────────────────────────────────────────────────────────────┘

Recoverability:
───────────────
  - ParseError / ConfigError / PatchError surface to the CLI (exit code 2).
  - TypeCheckError and RenderError are local: the affected declaration is
    skipped and analysis of its siblings continues.
  - LayoutInvariantError is never caught by the checker machinery.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE LOCATION TYPES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceSpan:
    """
    A span of source text.

    ``start``/``end`` are character offsets into the file text (half-open),
    ``line``/``column`` are 1-based and describe ``start``.
    """

    file: str = ""
    start: int = 0
    end: int = 0
    line: int = 0
    column: int = 0

    @classmethod
    def from_offsets(
        cls, text: str, start: int, end: int, file: str = ""
    ) -> "SourceSpan":
        """Build a span, computing line and column of ``start`` from ``text``."""
        line = text.count("\n", 0, start) + 1
        column = start - (text.rfind("\n", 0, start) + 1) + 1
        return cls(file=file, start=start, end=end, line=line, column=column)

    def __len__(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        if not self.file and self.line == 0:
            return "<unknown location>"

        parts = []
        if self.file:
            parts.append(self.file)
        if self.line > 0:
            parts.append(str(self.line))
            if self.column > 0:
                parts.append(str(self.column))

        return ":".join(parts)


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class FieldpackError(Exception):
    """
    Base exception for all fieldpack errors.

    Carries an optional source span and hint so the CLI can print a
    GCC-style message.
    """

    def __init__(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        hint: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.span = span
        self.hint = hint

    def to_gcc_format(self) -> str:
        """Format as ``file:line:col: error: message``."""
        loc = f"{self.span}: " if self.span is not None else ""
        text = f"{loc}error: {self.message}"
        if self.hint:
            text += f"\n  hint: {self.hint}"
        return text

    def __str__(self) -> str:
        return self.to_gcc_format()


class ParseError(FieldpackError):
    """Declaration source rejected by the grammar."""

    def __init__(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        expected: str = "",
        **kwargs,
    ) -> None:
        if expected and not kwargs.get("hint"):
            kwargs["hint"] = f"Expected {expected}"
        super().__init__(message, span, **kwargs)
        self.expected = expected


class TypeCheckError(FieldpackError):
    """A type expression could not be resolved to a layout type."""


class RenderError(FieldpackError):
    """A rewritten struct expression could not be printed as source text."""


class PatchError(FieldpackError):
    """Suggested text edits could not be applied."""


class ConfigError(FieldpackError):
    """Invalid ABI or command-line configuration."""


class LayoutInvariantError(FieldpackError):
    """
    Internal error: the layout model met a type it has no rule for.

    This indicates a bug in fieldpack, not in the analyzed program.
    """


__all__ = [
    "SourceSpan",
    "FieldpackError",
    "ParseError",
    "TypeCheckError",
    "RenderError",
    "PatchError",
    "ConfigError",
    "LayoutInvariantError",
]

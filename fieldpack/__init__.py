"""
fieldpack
=========

Struct field-alignment analysis for Go-style type declarations.

Finds struct types whose fields could be reordered to occupy less memory,
or, at equal size, to leave fewer bytes for the garbage collector to scan,
and suggests the optimal field order as a source rewrite.

Layering::

    parser ──► typecheck ──► sizes / layout / optimizer ──► rewriter
                                                              │
    main (CLI) ◄── patcher ◄── checkers ◄── render ◄──────────┘

Quick start::

    from fieldpack import analyze_source
    for diag in analyze_source(text, "types.go").diagnostics:
        print(diag.to_gcc_format())
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__version__ = "0.1.0"

from fieldpack.errors import (  # noqa: E402
    ConfigError,
    FieldpackError,
    LayoutInvariantError,
    ParseError,
    PatchError,
    RenderError,
    TypeCheckError,
)
from fieldpack.layout import LayoutComparison, Savings, analyze  # noqa: E402
from fieldpack.optimizer import optimal_order  # noqa: E402
from fieldpack.sizes import ABIConfig, GcSizes  # noqa: E402
from fieldpack.types import GoType, TypeKind  # noqa: E402


def analyze_source(
    text: str,
    filename: str = "",
    abi: Optional[ABIConfig] = None,
    options: Optional[Dict[str, Any]] = None,
):
    """Parse ``text`` and run the field-alignment checker over it."""
    from fieldpack.checkers import CheckerRunner
    from fieldpack.parser import parse_source

    opts = dict(options or {})
    if abi is not None:
        opts["abi"] = abi
    return CheckerRunner(options=opts).run(parse_source(text, filename))


__all__ = [
    "__version__",
    "analyze_source",
    "ABIConfig",
    "GcSizes",
    "GoType",
    "TypeKind",
    "LayoutComparison",
    "Savings",
    "analyze",
    "optimal_order",
    "FieldpackError",
    "ParseError",
    "TypeCheckError",
    "RenderError",
    "PatchError",
    "ConfigError",
    "LayoutInvariantError",
]

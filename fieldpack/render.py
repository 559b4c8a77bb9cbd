"""
fieldpack/render.py
═══════════════════

Print type expressions back to source text, gofmt style.

Struct fields are written one per line, indented with a tab. The type
column of consecutive single-line named fields is aligned, and so is the
tag column of consecutive tagged fields. Embedded fields end an alignment
section. A field whose type spans several lines is aligned with the rows
above it and ends the section after itself.

Comments are not preserved: a rewritten struct carries none.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from fieldpack import ast
from fieldpack.errors import RenderError

_IDENT = re.compile(r"[^\W\d]\w*")


def _check_ident(name: str) -> str:
    if not _IDENT.fullmatch(name):
        raise RenderError(f"invalid identifier {name!r}")
    return name


# ═══════════════════════════════════════════════════════════════════
#  TYPE EXPRESSIONS
# ═══════════════════════════════════════════════════════════════════

def render_type(expr: ast.TypeExpr, indent: str = "") -> str:
    """
    Render ``expr``; ``indent`` is the indentation of the line the
    expression starts on and applies to the continuation lines of
    multi-line struct types.
    """
    handler = _RENDERERS.get(type(expr))
    if handler is None:
        raise RenderError(f"cannot render {type(expr).__name__} node")
    return handler(expr, indent)


def _render_ident(expr: ast.Ident, indent: str) -> str:
    text = _check_ident(expr.name)
    if expr.package is not None:
        text = f"{_check_ident(expr.package)}.{text}"
    if expr.args:
        text += "[" + ", ".join(render_type(a, indent) for a in expr.args) + "]"
    return text


def _render_chan(expr: ast.ChanType, indent: str) -> str:
    return f"{expr.direction.value} {render_type(expr.elem, indent)}"


_RENDERERS: Dict[type, Callable[..., str]] = {
    ast.Ident: _render_ident,
    ast.PointerType: lambda e, i: "*" + render_type(e.elem, i),
    ast.ArrayType: lambda e, i: f"[{e.length}]" + render_type(e.elem, i),
    ast.SliceType: lambda e, i: "[]" + render_type(e.elem, i),
    ast.DynArrayType: lambda e, i: "[...]" + render_type(e.elem, i),
    ast.MapType: lambda e, i: (f"map[{render_type(e.key, i)}]"
                               + render_type(e.value, i)),
    ast.ChanType: _render_chan,
    ast.FuncType: lambda e, i: "func" + e.signature,
    ast.InterfaceType: lambda e, i: "interface" + e.body,
    ast.ParenType: lambda e, i: f"({render_type(e.elem, i)})",
}


# ═══════════════════════════════════════════════════════════════════
#  STRUCTS
# ═══════════════════════════════════════════════════════════════════

# (names column, type column, tag) of one field line
_Row = Tuple[Optional[str], str, Optional[str]]


def render_struct(expr: ast.StructType, indent: str = "") -> str:
    """
    Render a struct expression.

    >>> render_struct(StructType((Field(("a",), Ident("int64")),
    ...                           Field(("bb",), Ident("bool")))))
    'struct {\\n\\ta  int64\\n\\tbb bool\\n}'
    """
    if not expr.fields:
        return "struct{}"
    inner = indent + "\t"
    lines: List[str] = []
    section: List[_Row] = []
    for decl in expr.fields:
        if decl.type is None:
            raise RenderError(f"field {decl.display_name} has no type")
        type_text = render_type(decl.type, inner)
        names = ", ".join(_check_ident(n) for n in decl.names) or None
        row = (names, type_text, decl.tag)
        if names is None:
            lines.extend(_align(section))
            section = []
            lines.append(" ".join(p for p in row if p is not None))
        elif "\n" in type_text:
            # The multi-line field closes the section it starts in.
            section.append(row)
            lines.extend(_align(section))
            section = []
        else:
            section.append(row)
    lines.extend(_align(section))
    body = "".join(f"{inner}{line}\n" for line in lines)
    return f"struct {{\n{body}{indent}}}"


def _align(rows: Sequence[_Row]) -> List[str]:
    if not rows:
        return []
    name_width = max(len(names) for names, _, _ in rows)
    type_widths = _tag_run_widths(rows)
    out = []
    for (names, type_text, tag), type_width in zip(rows, type_widths):
        line = f"{names.ljust(name_width)} {type_text}"
        if tag is not None:
            line = f"{names.ljust(name_width)} {type_text.ljust(type_width)} {tag}"
        out.append(line)
    return out


def _in_tag_run(row: _Row) -> bool:
    # The tag of a multi-line type follows its closing brace unaligned.
    return row[2] is not None and "\n" not in row[1]


def _tag_run_widths(rows: Sequence[_Row]) -> List[int]:
    """Type column width for each row, shared by each run of tagged rows."""
    widths = [0] * len(rows)
    i = 0
    while i < len(rows):
        if not _in_tag_run(rows[i]):
            i += 1
            continue
        j = i
        while j < len(rows) and _in_tag_run(rows[j]):
            j += 1
        width = max(len(rows[k][1]) for k in range(i, j))
        for k in range(i, j):
            widths[k] = width
        i = j
    return widths


_RENDERERS[ast.StructType] = render_struct


__all__ = ["render_type", "render_struct"]

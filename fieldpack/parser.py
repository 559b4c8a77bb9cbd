"""
fieldpack/parser.py
═══════════════════

Parser for the type declarations of a Go-style source file.

The grammar recognizes the package clause, imports, top-level ``type``
declarations (single, grouped, alias and generic forms) and integer
``const`` declarations. Every other top-level declaration (functions,
variables, constants with non-literal values) is skipped by scanning to the
end of its line at bracket depth zero.

Usage
─────
    >>> src = parse_source("package p\\ntype T struct { a bool; b int64 }\\n")
    >>> src.types[0].name
    'T'
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, List, Optional, Union

from parsimonious.exceptions import IncompleteParseError
from parsimonious.exceptions import ParseError as GrammarError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node, NodeVisitor

from fieldpack import ast
from fieldpack.errors import FieldpackError, ParseError, SourceSpan

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  PART 1 — DECLARATION GRAMMAR (Parsimonious PEG)
# ═══════════════════════════════════════════════════════════════════

GO_DECL_GRAMMAR = Grammar(r'''
    # ─────────────────────────────────────────────────────────────
    # Source file
    # ─────────────────────────────────────────────────────────────

    file            = ws (package_clause ws)? (top_decl ws)*
    package_clause  = kw_package hs identifier
    top_decl        = type_decl / import_decl / const_decl / other_decl

    import_decl     = kw_import hs (parens / import_spec)
    import_spec     = (identifier hs / "." hs)? string_lit

    # ─────────────────────────────────────────────────────────────
    # Type declarations
    # ─────────────────────────────────────────────────────────────

    type_decl       = kw_type hs (type_group / type_spec)
    type_group      = "(" ws (type_spec sep)* type_spec? ws ")"
    type_spec       = identifier (hs type_params)? hs alias_mark? type_expr
    type_params     = ~r"\[\s*[^\W\d]\w*(\s*,\s*[^\W\d]\w*)*\s+[^\]\n]+\]"
    alias_mark      = "=" hs

    # ─────────────────────────────────────────────────────────────
    # Integer constants (array lengths)
    # ─────────────────────────────────────────────────────────────

    const_decl      = kw_const hs (const_group / const_spec) &line_end
    const_group     = "(" ws (const_spec sep)* const_spec? ws ")"
    const_spec      = identifier (hs type_name)? hs "=" hs int_lit
    line_end        = hs line_comment? (~r"\r?\n" / ";" / ~r"\Z")

    # ─────────────────────────────────────────────────────────────
    # Everything else is skipped
    # ─────────────────────────────────────────────────────────────

    other_decl      = ~r"(func|var|const)\b" skip_item*
    skip_item       = braces / parens / brackets / string_lit / raw_string
                    / rune_lit / comment / ~r"[^\n{}()\[\]\"'`/]+"
                    / ~r"/(?![/*])"

    # ─────────────────────────────────────────────────────────────
    # Struct types
    # ─────────────────────────────────────────────────────────────

    struct_type     = kw_struct hs "{" ws (field_decl sep)* field_decl? ws "}"
    field_decl      = (named_field / embedded_field) (hs tag)?
    named_field     = identifier_list hs type_expr
    identifier_list = identifier (hs "," ws identifier)*
    embedded_field  = embedded_ptr? type_name
    embedded_ptr    = "*" hs
    tag             = string_lit / raw_string

    # ─────────────────────────────────────────────────────────────
    # Type expressions
    # ─────────────────────────────────────────────────────────────

    type_expr       = pointer_type / array_type / map_type / chan_type
                    / func_type / interface_type / struct_type / paren_type
                    / type_name
    pointer_type    = "*" hs type_expr
    array_type      = "[" hs array_len? hs "]" hs type_expr
    array_len       = "..." / ~r"[^\]\n]+"
    map_type        = kw_map hs "[" hs type_expr hs "]" hs type_expr
    chan_type       = chan_dir hs type_expr
    chan_dir        = ~r"<-\s*chan\b" / ~r"chan\s*<-" / kw_chan
    func_type       = kw_func hs parens (hs func_result)?
    func_result     = parens / type_expr
    interface_type  = kw_interface hs braces
    paren_type      = "(" hs type_expr hs ")"
    type_name       = qualified_ident type_args?
    qualified_ident = identifier ("." identifier)?
    type_args       = "[" ws type_expr (hs "," ws type_expr)* hs ","? ws "]"

    # ─────────────────────────────────────────────────────────────
    # Balanced groups (skipped content)
    # ─────────────────────────────────────────────────────────────

    braces          = "{" (braces / string_lit / raw_string / rune_lit / comment
                           / ~r"[^{}\"'`/]+" / "/")* "}"
    parens          = "(" (parens / string_lit / raw_string / rune_lit / comment
                           / ~r"[^()\"'`/]+" / "/")* ")"
    brackets        = "[" (brackets / string_lit / raw_string / rune_lit
                           / ~r"[^\[\]\"'`]+")* "]"

    # ─────────────────────────────────────────────────────────────
    # Lexical
    # ─────────────────────────────────────────────────────────────

    identifier      = ~r"(?!(?:break|case|chan|const|continue|default|defer|else|fallthrough|for|func|go|goto|if|import|interface|map|package|range|return|select|struct|switch|type|var)\b)[^\W\d]\w*"
    int_lit         = ~r"(0[xX][0-9a-fA-F_]+|0[bB][01_]+|0[oO]?[0-7_]+|[1-9][0-9_]*|0)(?![\w.])"
    string_lit      = ~r'"(\\.|[^"\\\n])*"'
    raw_string      = ~r"`[^`]*`"
    rune_lit        = ~r"'(\\.|[^'\\\n])*'"

    kw_package      = ~r"package\b"
    kw_import       = ~r"import\b"
    kw_type         = ~r"type\b"
    kw_const        = ~r"const\b"
    kw_struct       = ~r"struct\b"
    kw_map          = ~r"map\b"
    kw_chan         = ~r"chan\b"
    kw_func         = ~r"func\b"
    kw_interface    = ~r"interface\b"

    sep             = hs line_comment? (";" / ~r"\r?\n") ws
    comment         = line_comment / block_comment
    line_comment    = ~r"//[^\n]*"
    block_comment   = ~r"/\*.*?\*/"s
    hs              = ~r"([ \t\r]|/\*([^*\n]|\*(?!/))*\*/)*"
    ws              = ~r"(\s|//[^\n]*|/\*.*?\*/)*"s
''')


# ═══════════════════════════════════════════════════════════════════
#  PART 2 — INTERMEDIATE MARKERS
# ═══════════════════════════════════════════════════════════════════

class _Names(tuple):
    """Field names of a named field declaration."""


class _Tag(str):
    """Field tag literal, quotes included."""


class _Length(str):
    """Source text of an array length expression."""


class _TypeParams(str):
    """Type parameter list of a generic declaration, brackets stripped."""


class _Package(str):
    """Package clause name."""


class _Const(tuple):
    """(name, value) of an integer constant."""


class _AliasMark:
    pass


_ALIAS = _AliasMark()

_CHAN_DIRS = {
    "chan": ast.ChanDir.BOTH,
    "chan<-": ast.ChanDir.SEND,
    "<-chan": ast.ChanDir.RECV,
}

_LEGACY_OCTAL = re.compile(r"0[0-7_]+")


def parse_int_literal(text: str) -> int:
    if _LEGACY_OCTAL.fullmatch(text):
        return int(text.replace("_", ""), 8)
    return int(text, 0)


# ═══════════════════════════════════════════════════════════════════
#  PART 3 — PARSE TREE VISITOR (Parse Tree → ast)
# ═══════════════════════════════════════════════════════════════════

class DeclarationBuilder(NodeVisitor):
    """Transforms a Parsimonious parse tree into a :class:`ast.SourceFile`."""

    unwrapped_exceptions = (FieldpackError,)

    def __init__(self, text: str, filename: str = "") -> None:
        self.text = text
        self.filename = filename

    def generic_visit(self, node: Node, visited_children: List[Any]) -> Any:
        """Default: keep whatever the children produced."""
        return visited_children or None

    @classmethod
    def _flatten(cls, items: Any) -> List[Any]:
        if items is None:
            return []
        if not isinstance(items, list):
            return [items]
        out: List[Any] = []
        for item in items:
            out.extend(cls._flatten(item))
        return out

    def _first(self, visited_children: Any, kind: type) -> Any:
        for item in self._flatten(visited_children):
            if isinstance(item, kind):
                return item
        return None

    def _span(self, node: Node) -> SourceSpan:
        return SourceSpan.from_offsets(
            self.text, node.start, node.end, self.filename
        )

    # ─────────────────────────────────────────────────────────────
    # Source file
    # ─────────────────────────────────────────────────────────────

    def visit_file(self, node, visited_children):
        package: Optional[str] = None
        types: List[ast.TypeSpec] = []
        consts = {}
        for item in self._flatten(visited_children):
            if isinstance(item, _Package):
                package = str(item)
            elif isinstance(item, ast.TypeSpec):
                types.append(item)
            elif isinstance(item, _Const):
                name, value = item
                consts[name] = value
        logger.debug(
            "%s: %d type declaration(s), %d integer constant(s)",
            self.filename or "<input>", len(types), len(consts),
        )
        return ast.SourceFile(
            filename=self.filename,
            text=self.text,
            package=package,
            types=tuple(types),
            consts=consts,
        )

    def visit_package_clause(self, node, visited_children):
        return _Package(node.children[2].text)

    def visit_identifier(self, node, visited_children):
        return node.text

    # ─────────────────────────────────────────────────────────────
    # Declarations
    # ─────────────────────────────────────────────────────────────

    def visit_type_spec(self, node, visited_children):
        items = self._flatten(visited_children)
        params = next((i for i in items if isinstance(i, _TypeParams)), None)
        return ast.TypeSpec(
            name=node.children[0].text,
            type=self._first(visited_children[-1], ast.TypeExpr),
            alias=any(i is _ALIAS for i in items),
            type_params=str(params) if params is not None else None,
            span=self._span(node),
        )

    def visit_type_params(self, node, visited_children):
        return _TypeParams(node.text[1:-1].strip())

    def visit_alias_mark(self, node, visited_children):
        return _ALIAS

    def visit_const_spec(self, node, visited_children):
        name, value = node.children[0].text, node.children[-1].text
        return _Const((name, parse_int_literal(value)))

    # ─────────────────────────────────────────────────────────────
    # Struct types
    # ─────────────────────────────────────────────────────────────

    def visit_struct_type(self, node, visited_children):
        fields = [f for f in self._flatten(visited_children)
                  if isinstance(f, ast.Field)]
        return ast.StructType(fields=tuple(fields), span=self._span(node))

    def visit_field_decl(self, node, visited_children):
        decl, tag = visited_children
        names = self._first(decl, _Names)
        return ast.Field(
            names=tuple(names) if names is not None else (),
            type=self._first(decl, ast.TypeExpr),
            tag=self._first(tag, _Tag),
        )

    def visit_identifier_list(self, node, visited_children):
        return _Names(i for i in self._flatten(visited_children)
                      if isinstance(i, str))

    def visit_embedded_field(self, node, visited_children):
        ptr, name = visited_children
        ident = self._first(name, ast.Ident)
        return ast.PointerType(ident) if ptr else ident

    def visit_embedded_ptr(self, node, visited_children):
        return True

    def visit_tag(self, node, visited_children):
        return _Tag(node.text)

    # ─────────────────────────────────────────────────────────────
    # Type expressions
    # ─────────────────────────────────────────────────────────────

    def visit_type_expr(self, node, visited_children):
        return self._first(visited_children, ast.TypeExpr)

    def visit_pointer_type(self, node, visited_children):
        return ast.PointerType(self._first(visited_children, ast.TypeExpr))

    def visit_array_type(self, node, visited_children):
        length = self._first(visited_children, _Length)
        elem = self._first(visited_children, ast.TypeExpr)
        if length is None:
            return ast.SliceType(elem)
        if length == "...":
            return ast.DynArrayType(elem)
        return ast.ArrayType(str(length), elem)

    def visit_array_len(self, node, visited_children):
        return _Length(node.text.strip())

    def visit_map_type(self, node, visited_children):
        key, value = [i for i in self._flatten(visited_children)
                      if isinstance(i, ast.TypeExpr)]
        return ast.MapType(key, value)

    def visit_chan_type(self, node, visited_children):
        direction = self._first(visited_children, ast.ChanDir)
        return ast.ChanType(self._first(visited_children, ast.TypeExpr),
                            direction)

    def visit_chan_dir(self, node, visited_children):
        return _CHAN_DIRS[re.sub(r"\s+", "", node.text)]

    def visit_func_type(self, node, visited_children):
        return ast.FuncType(node.text[len("func"):].strip())

    def visit_interface_type(self, node, visited_children):
        return ast.InterfaceType(node.text[len("interface"):].strip())

    def visit_paren_type(self, node, visited_children):
        return ast.ParenType(self._first(visited_children, ast.TypeExpr))

    def visit_type_name(self, node, visited_children):
        qualified, args = visited_children
        parts = [p for p in self._flatten(qualified) if isinstance(p, str)]
        type_args = tuple(a for a in self._flatten(args)
                          if isinstance(a, ast.TypeExpr))
        if len(parts) == 2:
            return ast.Ident(parts[1], package=parts[0], args=type_args)
        return ast.Ident(parts[0], args=type_args)


# ═══════════════════════════════════════════════════════════════════
#  PART 4 — PUBLIC API
# ═══════════════════════════════════════════════════════════════════

def _line_excerpt(text: str, pos: int) -> str:
    start = text.rfind("\n", 0, pos) + 1
    end = text.find("\n", pos)
    return text[start:end if end >= 0 else len(text)].strip()


def parse_source(text: str, filename: str = "") -> ast.SourceFile:
    """
    Parse declaration source text.

    Raises
    ------
    ParseError
        When the text does not match the grammar; the span points at the
        first declaration that could not be parsed.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    try:
        tree = GO_DECL_GRAMMAR.parse(text)
    except IncompleteParseError as exc:
        span = SourceSpan.from_offsets(text, exc.pos, exc.pos, filename)
        raise ParseError(
            f"cannot parse declaration: {_line_excerpt(text, exc.pos)!r}",
            span,
            expected="a type, const, var, func or import declaration",
        ) from None
    except GrammarError as exc:
        span = SourceSpan.from_offsets(text, exc.pos, exc.pos, filename)
        rule = exc.expr.name if exc.expr is not None else ""
        raise ParseError(
            f"syntax error near {_line_excerpt(text, exc.pos)!r}",
            span,
            expected=rule,
        ) from None
    return DeclarationBuilder(text, filename).visit(tree)


def parse_file(path: Union[str, Path]) -> ast.SourceFile:
    """
    Read and parse one source file (UTF-8).

    Line endings are kept as written, so span offsets index the file's
    own text.
    """
    path = Path(path)
    logger.debug("parsing %s", path)
    return parse_source(path.read_bytes().decode("utf-8-sig"), str(path))


__all__ = [
    "GO_DECL_GRAMMAR",
    "DeclarationBuilder",
    "parse_int_literal",
    "parse_source",
    "parse_file",
]

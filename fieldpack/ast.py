"""
fieldpack/ast.py
════════════════

Syntax tree for Go-style type declarations.

Only what the layout analysis needs is modeled:

  * top-level ``type`` declarations (plain, alias and grouped forms),
  * top-level integer ``const`` declarations, used for array lengths,
  * type expressions, with source spans on struct expressions so that a
    suggested fix can replace the exact text range.

Function signatures and interface bodies are kept as raw source text:
their contents never influence layout.

All nodes are frozen dataclasses; rewriting builds new nodes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Tuple

from fieldpack.errors import SourceSpan


# ═══════════════════════════════════════════════════════════════════════
#  Type expressions
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TypeExpr:
    """Base class for all type expression nodes."""


@dataclass(frozen=True)
class Ident(TypeExpr):
    """A (possibly package-qualified, possibly instantiated) type name."""
    name: str
    package: Optional[str] = None
    args: Tuple[TypeExpr, ...] = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.package}.{self.name}" if self.package else self.name


@dataclass(frozen=True)
class PointerType(TypeExpr):
    elem: TypeExpr


@dataclass(frozen=True)
class ArrayType(TypeExpr):
    """``[length]elem``; ``length`` is the source text of the length expression."""
    length: str
    elem: TypeExpr


@dataclass(frozen=True)
class SliceType(TypeExpr):
    """``[]elem``"""
    elem: TypeExpr


@dataclass(frozen=True)
class DynArrayType(TypeExpr):
    """``[...]elem``, a dynamic-array handle (data pointer and length)."""
    elem: TypeExpr


@dataclass(frozen=True)
class MapType(TypeExpr):
    key: TypeExpr
    value: TypeExpr


class ChanDir(Enum):
    BOTH = "chan"
    SEND = "chan<-"
    RECV = "<-chan"


@dataclass(frozen=True)
class ChanType(TypeExpr):
    elem: TypeExpr
    direction: ChanDir = ChanDir.BOTH


@dataclass(frozen=True)
class FuncType(TypeExpr):
    """``func`` followed by ``signature`` (parameters and results, verbatim)."""
    signature: str


@dataclass(frozen=True)
class InterfaceType(TypeExpr):
    """``interface`` followed by ``body`` (the braced method set, verbatim)."""
    body: str = "{}"


@dataclass(frozen=True)
class ParenType(TypeExpr):
    elem: TypeExpr


@dataclass(frozen=True)
class Field:
    """
    One field declaration of a struct.

    ``names`` is empty for an embedded field and has several entries for a
    multi-name declaration such as ``x, y int``.
    """
    names: Tuple[str, ...]
    type: TypeExpr
    tag: Optional[str] = None

    @property
    def embedded(self) -> bool:
        return not self.names

    @property
    def display_name(self) -> str:
        return self.names[0] if self.names else "Anonymous"

    def flatten(self) -> Tuple["Field", ...]:
        """Split a multi-name declaration into single-name fields."""
        if len(self.names) <= 1:
            return (self,)
        return tuple(Field((n,), self.type, self.tag) for n in self.names)


@dataclass(frozen=True)
class StructType(TypeExpr):
    fields: Tuple[Field, ...] = ()
    span: Optional[SourceSpan] = field(default=None, compare=False)

    @property
    def flat_fields(self) -> Tuple[Field, ...]:
        return tuple(f for decl in self.fields for f in decl.flatten())


# ═══════════════════════════════════════════════════════════════════════
#  Declarations
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TypeSpec:
    """``type Name[params] = Type`` (alias) or ``type Name Type``."""
    name: str
    type: TypeExpr
    alias: bool = False
    type_params: Optional[str] = None
    span: Optional[SourceSpan] = field(default=None, compare=False)

    @property
    def generic(self) -> bool:
        return self.type_params is not None


@dataclass(frozen=True)
class SourceFile:
    filename: str
    text: str
    package: Optional[str] = None
    types: Tuple[TypeSpec, ...] = ()
    consts: Mapping[str, int] = field(default_factory=dict)

    def line_indent(self, offset: int) -> str:
        """Leading whitespace of the line containing ``offset``."""
        start = self.text.rfind("\n", 0, offset) + 1
        end = start
        while end < len(self.text) and self.text[end] in " \t":
            end += 1
        return self.text[start:end]


__all__ = [
    "TypeExpr",
    "Ident",
    "PointerType",
    "ArrayType",
    "SliceType",
    "DynArrayType",
    "MapType",
    "ChanDir",
    "ChanType",
    "FuncType",
    "InterfaceType",
    "ParenType",
    "Field",
    "StructType",
    "TypeSpec",
    "SourceFile",
]

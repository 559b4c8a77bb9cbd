"""
fieldpack/types.py
══════════════════

Layout-level type representation for Go-style declarations.

We model types as a small term algebra:

    τ ::= basic(k)                   (bool, intN, uintN, floatN, complexN, ...)
        | string
        | array(τ, n)                (fixed-length array)
        | dynarray(τ)                (dynamic-array handle: pointer + length)
        | slice(τ)                   (pointer + length + capacity)
        | struct([f_i: τ_i])         (record)
        | interface                  (tagged-union handle)
        | map(τ_k, τ_v) | chan(τ) | func
        | ptr(τ) | unsafe_pointer

Only what influences memory layout is kept: function signatures, interface
method sets and channel directions are dropped. Every node is immutable and
hashable, so two structurally equal types compare equal.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Tuple


class TypeKind(Enum):
    """Discriminant for the type term algebra."""
    BASIC = auto()
    STRING = auto()
    ARRAY = auto()           # array(τ, n)
    DYNARRAY = auto()        # dynarray(τ)
    SLICE = auto()           # slice(τ)
    STRUCT = auto()          # struct(fields)
    INTERFACE = auto()
    MAP = auto()             # map(key, elem)
    CHAN = auto()            # chan(elem)
    FUNC = auto()
    POINTER = auto()         # ptr(τ)
    UNSAFE_POINTER = auto()


class BasicKind(Enum):
    """Predeclared numeric and boolean types."""
    BOOL = "bool"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    INT = "int"
    UINT = "uint"
    UINTPTR = "uintptr"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    COMPLEX64 = "complex64"
    COMPLEX128 = "complex128"


@dataclass(frozen=True)
class StructField:
    """One (single-name) field of a struct type. ``name`` is None when embedded."""
    name: Optional[str]
    type: GoType


@dataclass(frozen=True)
class GoType:
    """
    A node in the type term algebra.

    Kind-specific payload:
      - BASIC:    basic
      - ARRAY:    elem, length
      - DYNARRAY / SLICE / CHAN / POINTER: elem
      - MAP:      key, elem
      - STRUCT:   fields (declaration order)
    """

    kind: TypeKind
    basic: Optional[BasicKind] = None
    elem: Optional[GoType] = None
    key: Optional[GoType] = None
    length: int = 0
    fields: Tuple[StructField, ...] = ()

    # ── Factory methods ──────────────────────────────────────────────

    @classmethod
    def basic_type(cls, kind: BasicKind) -> GoType:
        return cls(kind=TypeKind.BASIC, basic=kind)

    @classmethod
    def string(cls) -> GoType:
        return cls(kind=TypeKind.STRING)

    @classmethod
    def array(cls, elem: GoType, length: int) -> GoType:
        return cls(kind=TypeKind.ARRAY, elem=elem, length=length)

    @classmethod
    def dynarray(cls, elem: GoType) -> GoType:
        return cls(kind=TypeKind.DYNARRAY, elem=elem)

    @classmethod
    def slice(cls, elem: GoType) -> GoType:
        return cls(kind=TypeKind.SLICE, elem=elem)

    @classmethod
    def struct(cls, fields=()) -> GoType:
        """
        Build a struct type.

        ``fields`` may hold :class:`StructField` objects or ``(name, type)``
        pairs.
        """
        normalized = tuple(
            f if isinstance(f, StructField) else StructField(f[0], f[1])
            for f in fields
        )
        return cls(kind=TypeKind.STRUCT, fields=normalized)

    @classmethod
    def interface(cls) -> GoType:
        return cls(kind=TypeKind.INTERFACE)

    @classmethod
    def map(cls, key: GoType, elem: GoType) -> GoType:
        return cls(kind=TypeKind.MAP, key=key, elem=elem)

    @classmethod
    def chan(cls, elem: GoType) -> GoType:
        return cls(kind=TypeKind.CHAN, elem=elem)

    @classmethod
    def func(cls) -> GoType:
        return cls(kind=TypeKind.FUNC)

    @classmethod
    def pointer(cls, elem: Optional[GoType] = None) -> GoType:
        return cls(kind=TypeKind.POINTER, elem=elem)

    @classmethod
    def unsafe_pointer(cls) -> GoType:
        return cls(kind=TypeKind.UNSAFE_POINTER)

    # ── Predicates ───────────────────────────────────────────────────

    @property
    def is_struct(self) -> bool:
        return self.kind is TypeKind.STRUCT

    @property
    def num_fields(self) -> int:
        return len(self.fields)

    def __repr__(self) -> str:
        return type_to_str(self)


# Convenience singletons for the predeclared types.
BOOL = GoType.basic_type(BasicKind.BOOL)
INT8 = GoType.basic_type(BasicKind.INT8)
INT16 = GoType.basic_type(BasicKind.INT16)
INT32 = GoType.basic_type(BasicKind.INT32)
INT64 = GoType.basic_type(BasicKind.INT64)
UINT8 = GoType.basic_type(BasicKind.UINT8)
UINT16 = GoType.basic_type(BasicKind.UINT16)
UINT32 = GoType.basic_type(BasicKind.UINT32)
UINT64 = GoType.basic_type(BasicKind.UINT64)
INT = GoType.basic_type(BasicKind.INT)
UINT = GoType.basic_type(BasicKind.UINT)
UINTPTR = GoType.basic_type(BasicKind.UINTPTR)
FLOAT32 = GoType.basic_type(BasicKind.FLOAT32)
FLOAT64 = GoType.basic_type(BasicKind.FLOAT64)
COMPLEX64 = GoType.basic_type(BasicKind.COMPLEX64)
COMPLEX128 = GoType.basic_type(BasicKind.COMPLEX128)
STRING = GoType.string()
INTERFACE = GoType.interface()
UNSAFE_POINTER = GoType.unsafe_pointer()


def type_to_str(t: Optional[GoType], depth: int = 0) -> str:
    """Pretty-print a GoType in Go-like syntax."""
    if t is None:
        return "?"
    if depth > 20:
        return "..."
    k = t.kind
    if k is TypeKind.BASIC:
        return t.basic.value if t.basic is not None else "<basic>"
    if k is TypeKind.STRING:
        return "string"
    if k is TypeKind.ARRAY:
        return f"[{t.length}]{type_to_str(t.elem, depth + 1)}"
    if k is TypeKind.DYNARRAY:
        return f"[...]{type_to_str(t.elem, depth + 1)}"
    if k is TypeKind.SLICE:
        return f"[]{type_to_str(t.elem, depth + 1)}"
    if k is TypeKind.STRUCT:
        parts = []
        for f in t.fields:
            ft = type_to_str(f.type, depth + 1)
            parts.append(f"{f.name} {ft}" if f.name else ft)
        return "struct{" + "; ".join(parts) + "}"
    if k is TypeKind.INTERFACE:
        return "interface{}"
    if k is TypeKind.MAP:
        return f"map[{type_to_str(t.key, depth + 1)}]{type_to_str(t.elem, depth + 1)}"
    if k is TypeKind.CHAN:
        return f"chan {type_to_str(t.elem, depth + 1)}"
    if k is TypeKind.FUNC:
        return "func()"
    if k is TypeKind.POINTER:
        return "*" + type_to_str(t.elem, depth + 1)
    if k is TypeKind.UNSAFE_POINTER:
        return "unsafe.Pointer"
    return f"<{k.name}>"


__all__ = [
    "TypeKind",
    "BasicKind",
    "StructField",
    "GoType",
    "type_to_str",
    "BOOL", "INT8", "INT16", "INT32", "INT64",
    "UINT8", "UINT16", "UINT32", "UINT64",
    "INT", "UINT", "UINTPTR",
    "FLOAT32", "FLOAT64", "COMPLEX64", "COMPLEX128",
    "STRING", "INTERFACE", "UNSAFE_POINTER",
]

"""
fieldpack/sizes.py
══════════════════

Memory-layout model of the Go ``gc`` toolchain.

Three pure queries over a :class:`~fieldpack.types.GoType`, parameterized
by an explicit :class:`ABIConfig`:

  alignof(T)   minimum address boundary of a value of type T
  sizeof(T)    bytes occupied by a value of type T, padding included
  ptrdata(T)   length of the prefix of a T value that may hold pointers,
               i.e. the bytes the garbage collector has to scan

The rules follow ``go/types.StdSizes`` as used by the ``fieldalignment``
analyzer:

  * padding is inserted only to satisfy the next field's alignment;
  * a zero-size final field of a non-empty struct occupies one byte so that
    taking its address never yields a pointer past the end of the object;
  * the struct size is rounded up to the struct's own alignment.

Each query is an exhaustive dispatch table keyed by ``TypeKind``. The
``ptrdata`` table is checked for completeness at import time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from fieldpack.errors import ConfigError, LayoutInvariantError
from fieldpack.types import BasicKind, GoType, TypeKind


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — ABI CONFIGURATION
# ═════════════════════════════════════════════════════════════════════════

# Sizes that do not depend on the target word size.
_FIXED_BASIC_SIZES: Dict[BasicKind, int] = {
    BasicKind.BOOL: 1,
    BasicKind.INT8: 1,
    BasicKind.INT16: 2,
    BasicKind.INT32: 4,
    BasicKind.INT64: 8,
    BasicKind.UINT8: 1,
    BasicKind.UINT16: 2,
    BasicKind.UINT32: 4,
    BasicKind.UINT64: 8,
    BasicKind.FLOAT32: 4,
    BasicKind.FLOAT64: 8,
    BasicKind.COMPLEX64: 8,
    BasicKind.COMPLEX128: 16,
}

_WORD_SIZED_BASICS = (BasicKind.INT, BasicKind.UINT, BasicKind.UINTPTR)

# GOARCH → (word size, max alignment), as in go/types gcArchSizes.
GC_ARCH_SIZES: Mapping[str, tuple] = MappingProxyType({
    "386": (4, 4),
    "amd64": (8, 8),
    "amd64p32": (4, 8),
    "arm": (4, 4),
    "arm64": (8, 8),
    "loong64": (8, 8),
    "mips": (4, 4),
    "mipsle": (4, 4),
    "mips64": (8, 8),
    "mips64le": (8, 8),
    "ppc64": (8, 8),
    "ppc64le": (8, 8),
    "riscv64": (8, 8),
    "s390x": (8, 8),
    "sparc64": (8, 8),
    "wasm": (8, 8),
})

DEFAULT_ARCH = "amd64"


@dataclass(frozen=True)
class ABIConfig:
    """
    Target-runtime parameters for layout computation.

    Attributes
    ----------
    word_size   : pointer width in bytes
    max_align   : upper bound on any type's alignment
    basic_sizes : BasicKind → size in bytes; kinds missing from the table
                  are word-sized
    """
    word_size: int
    max_align: int
    basic_sizes: Mapping[BasicKind, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for label, value in (("word size", self.word_size),
                             ("max alignment", self.max_align)):
            if value <= 0 or value & (value - 1):
                raise ConfigError(
                    f"{label} must be a positive power of two, got {value}"
                )
        object.__setattr__(
            self, "basic_sizes", MappingProxyType(dict(self.basic_sizes))
        )

    def __reduce__(self):
        # mappingproxy does not pickle; worker processes need a copy.
        return (type(self),
                (self.word_size, self.max_align, dict(self.basic_sizes)))

    @classmethod
    def for_word_size(
        cls, word_size: int, max_align: Optional[int] = None
    ) -> ABIConfig:
        """Go's basic-size table for a word size (``max_align`` defaults to it)."""
        sizes = dict(_FIXED_BASIC_SIZES)
        for kind in _WORD_SIZED_BASICS:
            sizes[kind] = word_size
        return cls(
            word_size=word_size,
            max_align=max_align if max_align is not None else word_size,
            basic_sizes=sizes,
        )

    @classmethod
    def for_arch(cls, goarch: str) -> ABIConfig:
        """Configuration of the gc compiler for ``goarch``."""
        try:
            word_size, max_align = GC_ARCH_SIZES[goarch]
        except KeyError:
            raise ConfigError(
                f"unknown GOARCH {goarch!r}",
                hint="one of: " + ", ".join(sorted(GC_ARCH_SIZES)),
            ) from None
        return cls.for_word_size(word_size, max_align)

    def basic_size(self, kind: BasicKind) -> int:
        return self.basic_sizes.get(kind, self.word_size)


def align(x: int, a: int) -> int:
    """Return the smallest y >= x such that y % a == 0."""
    y = x + a - 1
    return y - y % a


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — GC SIZES
# ═════════════════════════════════════════════════════════════════════════

class GcSizes:
    """
    Sizing oracle for one :class:`ABIConfig`.

    Usage
    -----
    >>> sizes = GcSizes(ABIConfig.for_arch("amd64"))
    >>> sizes.sizeof(GoType.struct([("a", INT8), ("b", INT64)]))
    16
    >>> sizes.ptrdata(GoType.struct([("s", STRING), ("n", UINT32)]))
    8
    """

    def __init__(self, abi: ABIConfig) -> None:
        self.abi = abi

    @property
    def word_size(self) -> int:
        return self.abi.word_size

    @property
    def max_align(self) -> int:
        return self.abi.max_align

    # ── alignof ──────────────────────────────────────────────────────

    def alignof(self, t: GoType) -> int:
        # For arrays and structs, alignment is defined in terms of the
        # element and the fields respectively.
        if t.kind is TypeKind.ARRAY:
            return self.alignof(t.elem)
        if t.kind is TypeKind.STRUCT:
            result = 1
            for f in t.fields:
                result = max(result, self.alignof(f.type))
            return result
        a = self.sizeof(t)  # may be 0
        if a < 1:
            return 1
        return min(a, self.max_align)

    # ── sizeof ───────────────────────────────────────────────────────

    def sizeof(self, t: GoType) -> int:
        return _SIZEOF[t.kind](self, t)

    def _sizeof_basic(self, t: GoType) -> int:
        return self.abi.basic_size(t.basic)

    def _sizeof_two_words(self, t: GoType) -> int:
        return 2 * self.word_size

    def _sizeof_three_words(self, t: GoType) -> int:
        return 3 * self.word_size

    def _sizeof_word(self, t: GoType) -> int:
        return self.word_size

    def _sizeof_array(self, t: GoType) -> int:
        return t.length * self.sizeof(t.elem)

    def _sizeof_struct(self, t: GoType) -> int:
        nf = len(t.fields)
        if nf == 0:
            return 0

        offset = 0
        max_align = 1
        for i, f in enumerate(t.fields):
            a, sz = self.alignof(f.type), self.sizeof(f.type)
            max_align = max(max_align, a)
            if i == nf - 1 and sz == 0 and offset != 0:
                sz = 1
            offset = align(offset, a) + sz
        return align(offset, max_align)

    # ── ptrdata ──────────────────────────────────────────────────────

    def ptrdata(self, t: GoType) -> int:
        rule = _PTRDATA.get(t.kind)
        if rule is None:
            raise LayoutInvariantError(
                f"no pointer-data rule for type kind {t.kind.name}"
            )
        return rule(self, t)

    def _ptrdata_none(self, t: GoType) -> int:
        return 0

    def _ptrdata_word(self, t: GoType) -> int:
        return self.word_size

    def _ptrdata_two_words(self, t: GoType) -> int:
        return 2 * self.word_size

    def _ptrdata_array(self, t: GoType) -> int:
        n = t.length
        if n == 0:
            return 0
        p = self.ptrdata(t.elem)
        if p == 0:
            return 0
        return (n - 1) * self.sizeof(t.elem) + p

    def _ptrdata_struct(self, t: GoType) -> int:
        offset = 0
        end = 0
        for f in t.fields:
            a, sz = self.alignof(f.type), self.sizeof(f.type)
            fp = self.ptrdata(f.type)
            offset = align(offset, a)
            if fp != 0:
                end = offset + fp
            offset += sz
        return end

    def __repr__(self) -> str:
        return (f"GcSizes(word_size={self.word_size}, "
                f"max_align={self.max_align})")


_Rule = Callable[[GcSizes, GoType], int]

_SIZEOF: Dict[TypeKind, _Rule] = {
    TypeKind.BASIC: GcSizes._sizeof_basic,
    TypeKind.STRING: GcSizes._sizeof_two_words,
    TypeKind.ARRAY: GcSizes._sizeof_array,
    TypeKind.DYNARRAY: GcSizes._sizeof_two_words,
    TypeKind.SLICE: GcSizes._sizeof_three_words,
    TypeKind.STRUCT: GcSizes._sizeof_struct,
    TypeKind.INTERFACE: GcSizes._sizeof_two_words,
    # Reference handles occupy one word.
    TypeKind.MAP: GcSizes._sizeof_word,
    TypeKind.CHAN: GcSizes._sizeof_word,
    TypeKind.FUNC: GcSizes._sizeof_word,
    TypeKind.POINTER: GcSizes._sizeof_word,
    TypeKind.UNSAFE_POINTER: GcSizes._sizeof_word,
}

_PTRDATA: Dict[TypeKind, _Rule] = {
    TypeKind.BASIC: GcSizes._ptrdata_none,
    TypeKind.STRING: GcSizes._ptrdata_word,
    TypeKind.ARRAY: GcSizes._ptrdata_array,
    TypeKind.DYNARRAY: GcSizes._ptrdata_word,
    TypeKind.SLICE: GcSizes._ptrdata_word,
    TypeKind.STRUCT: GcSizes._ptrdata_struct,
    TypeKind.INTERFACE: GcSizes._ptrdata_two_words,
    TypeKind.MAP: GcSizes._ptrdata_word,
    TypeKind.CHAN: GcSizes._ptrdata_word,
    TypeKind.FUNC: GcSizes._ptrdata_word,
    TypeKind.POINTER: GcSizes._ptrdata_word,
    TypeKind.UNSAFE_POINTER: GcSizes._ptrdata_word,
}


def _check_tables() -> None:
    for table_name, table in (("sizeof", _SIZEOF), ("ptrdata", _PTRDATA)):
        missing = [k.name for k in TypeKind if k not in table]
        if missing:
            raise LayoutInvariantError(
                f"{table_name} has no rule for: {', '.join(missing)}"
            )


_check_tables()


__all__ = [
    "ABIConfig",
    "GcSizes",
    "GC_ARCH_SIZES",
    "DEFAULT_ARCH",
    "align",
]

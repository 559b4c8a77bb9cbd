"""
fieldpack/layout.py
═══════════════════

Struct layout analysis: field descriptors, aggregate layouts, and the
comparison of a struct's declared order against its optimal order.

Pointer bytes
─────────────
Pointer bytes is how many bytes of the object the garbage collector has to
potentially scan for pointers, for example:

    struct { uint32; string }     has 16 pointer bytes
    struct { string; *uint32 }    has 24 pointer bytes
    struct { string; uint32 }     has 8

Be aware that the most compact order is not always the most efficient. In
rare cases it may cause two variables each updated by its own goroutine to
occupy the same CPU cache line, inducing a form of memory contention known
as "false sharing" that slows down both goroutines.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from fieldpack.optimizer import Permutation, optimal_order, reorder
from fieldpack.sizes import GcSizes, align
from fieldpack.types import GoType, StructField


@dataclass(frozen=True)
class FieldDescriptor:
    """
    The normalized, single-name unit of layout computation.

    ``name`` is None for an embedded field.
    """
    name: Optional[str]
    declared_type: GoType
    size: int
    alignment: int
    pointer_bytes: int
    original_index: int


@dataclass(frozen=True)
class RecordLayout:
    """An ordered field sequence with its aggregate size and pointer bytes."""
    fields: Tuple[FieldDescriptor, ...]
    total_size: int
    total_pointer_bytes: int

    @property
    def order(self) -> Permutation:
        return tuple(d.original_index for d in self.fields)


class Savings(Enum):
    NONE = "none"
    SIZE = "size"
    POINTER_BYTES = "pointer-bytes"


def describe_fields(
    fields: Sequence[StructField], sizes: GcSizes
) -> Tuple[FieldDescriptor, ...]:
    return tuple(
        FieldDescriptor(
            name=f.name,
            declared_type=f.type,
            size=sizes.sizeof(f.type),
            alignment=sizes.alignof(f.type),
            pointer_bytes=sizes.ptrdata(f.type),
            original_index=i,
        )
        for i, f in enumerate(fields)
    )


def layout_of(descriptors: Sequence[FieldDescriptor]) -> RecordLayout:
    """
    Lay the descriptors out in the given order.

    Uses the same accumulation as ``GcSizes.sizeof``/``ptrdata`` for a
    struct, so ``layout_of(describe_fields(s.fields, sizes)).total_size``
    equals ``sizes.sizeof(s)``.
    """
    n = len(descriptors)
    offset = 0
    max_align = 1
    ptr_end = 0
    for i, d in enumerate(descriptors):
        size = d.size
        max_align = max(max_align, d.alignment)
        if i == n - 1 and size == 0 and offset != 0:
            size = 1
        offset = align(offset, d.alignment)
        if d.pointer_bytes != 0:
            ptr_end = offset + d.pointer_bytes
        offset += size
    total = align(offset, max_align) if n else 0
    return RecordLayout(tuple(descriptors), total, ptr_end)


@dataclass(frozen=True)
class LayoutComparison:
    """Declared layout vs. optimal layout of one struct."""
    current: RecordLayout
    optimal: RecordLayout
    permutation: Permutation

    @property
    def savings(self) -> Savings:
        # Size dominates; pointer bytes only matter once sizes are equal.
        # An order that is not strictly better is no saving.
        current, optimal = self.current, self.optimal
        if optimal.total_size < current.total_size:
            return Savings.SIZE
        if (optimal.total_size == current.total_size
                and optimal.total_pointer_bytes < current.total_pointer_bytes):
            return Savings.POINTER_BYTES
        return Savings.NONE

    def percent_saved(self) -> float:
        """Savings as a percentage of the declared struct size."""
        size = self.current.total_size
        if self.savings is Savings.SIZE:
            saved = size - self.optimal.total_size
        elif self.savings is Savings.POINTER_BYTES:
            saved = (self.current.total_pointer_bytes
                     - self.optimal.total_pointer_bytes)
        else:
            return 0.0
        return saved * 100 / size


def analyze(struct_type: GoType, sizes: GcSizes) -> LayoutComparison:
    """Compare ``struct_type``'s declared field order against the optimal one."""
    if not struct_type.is_struct:
        raise TypeError(f"expected a struct type, got {struct_type!r}")
    descriptors = describe_fields(struct_type.fields, sizes)
    permutation = optimal_order(descriptors)
    return LayoutComparison(
        current=layout_of(descriptors),
        optimal=layout_of(reorder(descriptors, permutation)),
        permutation=permutation,
    )


__all__ = [
    "FieldDescriptor",
    "RecordLayout",
    "Savings",
    "LayoutComparison",
    "describe_fields",
    "layout_of",
    "analyze",
]

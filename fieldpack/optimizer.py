"""
fieldpack/optimizer.py
══════════════════════

Field-order optimizer.

Given the flattened field descriptors of one struct, compute the permutation
that minimizes the struct size and, among minimal-size orders, the number of
pointer bytes. The comparator is applied in strict priority order:

  1. zero-size fields first
  2. larger alignment first
  3. fields holding pointers before pointer-free fields
  4. among pointerful fields, fewer trailing non-pointer bytes
     (``size - ptrdata``) first, so the scannable region stays contiguous
  5. larger size first
  6. original declaration index

Rule 6 makes the result reproducible: fields that tie on every layout
criterion keep their declaration order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence, Tuple, TypeVar

if TYPE_CHECKING:
    from fieldpack.layout import FieldDescriptor

T = TypeVar("T")

# new position → original index
Permutation = Tuple[int, ...]


def _rank(d: FieldDescriptor) -> tuple:
    has_ptrs = d.pointer_bytes != 0
    return (
        d.size != 0,
        -d.alignment,
        not has_ptrs,
        d.size - d.pointer_bytes if has_ptrs else 0,
        -d.size,
        d.original_index,
    )


def optimal_order(descriptors: Sequence[FieldDescriptor]) -> Permutation:
    """Return the optimal permutation as ``new position → original_index``."""
    return tuple(d.original_index for d in sorted(descriptors, key=_rank))


def is_permutation(permutation: Sequence[int], n: int) -> bool:
    """True if ``permutation`` is a bijection over ``range(n)``."""
    return len(permutation) == n and sorted(permutation) == list(range(n))


def reorder(items: Sequence[T], permutation: Permutation) -> Tuple[T, ...]:
    """Arrange ``items`` so that position i holds ``items[permutation[i]]``."""
    if not is_permutation(permutation, len(items)):
        raise ValueError(
            f"{permutation!r} is not a permutation of {len(items)} items"
        )
    return tuple(items[i] for i in permutation)


__all__ = ["Permutation", "optimal_order", "is_permutation", "reorder"]

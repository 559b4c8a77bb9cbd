"""
fieldpack/rewriter.py
═════════════════════

Record rewriter: produce the optimally ordered version of a struct
expression, recursing into nested struct types.

Traversal is post-order. Nested struct expressions, including those that
appear as the element type of an array, slice or dynamic array, are
rewritten before the struct that contains them, and their messages come
first. A nested struct is named after the path that leads to it:
``Outer.field`` for a named field, ``Outer.Anonymous`` for an embedded one.

A level whose type cannot be resolved is left untouched and reports
nothing, together with everything nested inside it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple

from fieldpack import ast
from fieldpack.errors import LayoutInvariantError
from fieldpack.layout import (
    LayoutComparison,
    Savings,
    analyze,
    describe_fields,
    layout_of,
)
from fieldpack.optimizer import reorder
from fieldpack.sizes import GcSizes
from fieldpack.types import GoType

logger = logging.getLogger(__name__)

Resolver = Callable[[ast.TypeExpr], Optional[GoType]]


@dataclass(frozen=True)
class RewriteResult:
    """
    Outcome of rewriting one type expression.

    ``changed`` is True when ``expr`` differs from the input at this level
    or at any nested level; ``messages`` lists one message per rewritten
    struct, innermost first.
    """
    expr: ast.TypeExpr
    messages: Tuple[str, ...] = ()
    changed: bool = False

    @property
    def message(self) -> str:
        return ",".join(self.messages)


def format_message(name: str, comparison: LayoutComparison) -> str:
    """Human-readable description of one struct's possible savings."""
    pct = comparison.percent_saved()
    if comparison.savings is Savings.SIZE:
        return (f"{name} struct of size {comparison.current.total_size} "
                f"could be {comparison.optimal.total_size}, save {pct:.2f}%")
    if comparison.savings is Savings.POINTER_BYTES:
        return (f"{name} struct with {comparison.current.total_pointer_bytes} "
                f"pointer bytes could be "
                f"{comparison.optimal.total_pointer_bytes}, save {pct:.2f}%")
    return ""


class RecordRewriter:
    """
    Rewrite struct expressions into their optimal field order.

    ``resolve`` maps a type expression to its layout type, or to None when
    the expression cannot be resolved (see
    :meth:`fieldpack.typecheck.TypeChecker.resolve`).
    """

    def __init__(self, sizes: GcSizes, resolve: Resolver) -> None:
        self.sizes = sizes
        self.resolve = resolve

    def rewrite(self, name: str, expr: ast.TypeExpr) -> RewriteResult:
        if isinstance(expr, ast.StructType):
            return self._rewrite_struct(name, expr)
        if isinstance(expr, (ast.ArrayType, ast.SliceType, ast.DynArrayType)):
            inner = self.rewrite(name, expr.elem)
            if not inner.changed:
                return RewriteResult(expr)
            return RewriteResult(replace(expr, elem=inner.expr),
                                 inner.messages, True)
        return RewriteResult(expr)

    def _rewrite_struct(self, name: str, expr: ast.StructType) -> RewriteResult:
        messages: List[str] = []
        nested_changed = False
        decls = []
        for decl in expr.fields:
            sub = self.rewrite(f"{name}.{decl.display_name}", decl.type)
            if sub.changed:
                nested_changed = True
                messages.extend(sub.messages)
                decl = replace(decl, type=sub.expr)
            decls.append(decl)
        candidate = replace(expr, fields=tuple(decls))

        struct_type = self.resolve(candidate)
        if struct_type is None or not struct_type.is_struct:
            logger.debug("%s: cannot resolve struct type, skipped", name)
            return RewriteResult(expr)

        flat = candidate.flat_fields
        if len(flat) != struct_type.num_fields:
            raise LayoutInvariantError(
                f"{name}: {len(flat)} syntactic fields but "
                f"{struct_type.num_fields} resolved fields"
            )

        comparison = analyze(struct_type, self.sizes)
        if comparison.savings is Savings.NONE:
            if nested_changed:
                return RewriteResult(candidate, tuple(messages), True)
            return RewriteResult(expr)

        reported = comparison
        if nested_changed:
            # Report against the struct as declared, so the message covers
            # the nested savings too.
            declared = self.resolve(expr)
            if declared is None:
                return RewriteResult(expr)
            against_declared = LayoutComparison(
                current=layout_of(describe_fields(declared.fields, self.sizes)),
                optimal=comparison.optimal,
                permutation=comparison.permutation,
            )
            if against_declared.savings is not Savings.NONE:
                reported = against_declared
        message = format_message(name, reported)
        if message:
            messages.append(message)
        logger.debug("%s: optimal order %s", name, comparison.permutation)
        optimal = ast.StructType(
            fields=reorder(flat, comparison.permutation), span=expr.span
        )
        return RewriteResult(optimal, tuple(messages), True)


__all__ = ["RewriteResult", "RecordRewriter", "Resolver", "format_message"]

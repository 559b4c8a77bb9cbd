"""
fieldpack/typecheck.py
══════════════════════

Resolution of syntactic type expressions to layout types.

:class:`TypeChecker` maps an :class:`~fieldpack.ast.TypeExpr` to a
:class:`~fieldpack.types.GoType`, looking names up in three scopes:

  1. the predeclared types (``bool``, ``int64``, ``string``, ``error``, ...)
  2. the file's own ``type`` declarations
  3. a table of well-known external types (``unsafe.Pointer``,
     ``sync.Mutex``, ``time.Time``, ...)

Resolution is partial. A name that is not in scope, an array length that is
not an integer constant, a generic declaration or a recursive value type
makes the expression unresolvable, and :meth:`TypeChecker.resolve` returns
``None``. Callers skip such declarations.

Types reached through a reference (pointer, map, channel, slice and
dynamic-array elements) never influence layout, so they are resolved on a
best-effort basis and left as ``None`` when unknown.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Set

from fieldpack import ast
from fieldpack.errors import TypeCheckError
from fieldpack.parser import parse_int_literal
from fieldpack.types import (
    BasicKind,
    GoType,
    INT32,
    INT64,
    INTERFACE,
    STRING,
    UINT32,
    UINT64,
    UINT8,
    UNSAFE_POINTER,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  SCOPES
# ═══════════════════════════════════════════════════════════════════

PREDECLARED: Mapping[str, GoType] = MappingProxyType({
    **{k.value: GoType.basic_type(k) for k in BasicKind},
    "byte": UINT8,
    "rune": INT32,
    "string": STRING,
    "error": INTERFACE,
    "any": INTERFACE,
    "comparable": INTERFACE,
})

_MUTEX = GoType.struct([("state", INT32), ("sema", UINT32)])

# Layouts of the standard library types most often embedded in structs.
WELL_KNOWN: Mapping[str, GoType] = MappingProxyType({
    "unsafe.Pointer": UNSAFE_POINTER,
    "sync.Mutex": _MUTEX,
    "sync.RWMutex": GoType.struct([
        ("w", _MUTEX),
        ("writerSem", UINT32),
        ("readerSem", UINT32),
        ("readerCount", INT32),
        ("readerWait", INT32),
    ]),
    "sync.Once": GoType.struct([("done", UINT32), ("m", _MUTEX)]),
    "time.Duration": INT64,
    "time.Month": GoType.basic_type(BasicKind.INT),
    "time.Time": GoType.struct([
        ("wall", UINT64),
        ("ext", INT64),
        ("loc", GoType.pointer()),
    ]),
    "context.Context": INTERFACE,
    "io.Reader": INTERFACE,
    "io.Writer": INTERFACE,
    "fmt.Stringer": INTERFACE,
})


# ═══════════════════════════════════════════════════════════════════
#  TYPE CHECKER
# ═══════════════════════════════════════════════════════════════════

class TypeChecker:
    """
    Resolve type expressions in the scope of one source file.

    Usage
    -----
    >>> checker = TypeChecker(parse_source(text))
    >>> checker.resolve(spec.type)          # GoType or None
    """

    def __init__(
        self,
        source: ast.SourceFile,
        extern: Optional[Mapping[str, GoType]] = None,
    ) -> None:
        self.source = source
        self.extern = WELL_KNOWN if extern is None else extern
        self._specs: Dict[str, ast.TypeSpec] = {}
        for spec in source.types:
            if spec.name in self._specs:
                logger.debug("%s: duplicate declaration of %s",
                             source.filename, spec.name)
            self._specs.setdefault(spec.name, spec)
        self._named: Dict[str, Optional[GoType]] = {}
        self._resolving: Set[str] = set()

    # ── public API ───────────────────────────────────────────────────

    def resolve(self, expr: ast.TypeExpr) -> Optional[GoType]:
        """The layout type of ``expr``, or None when it cannot be resolved."""
        try:
            return self.check(expr)
        except TypeCheckError as exc:
            logger.debug("%s: %s", self.source.filename or "<input>",
                         exc.message)
            return None

    def check(self, expr: ast.TypeExpr) -> GoType:
        """Like :meth:`resolve` but raises :class:`TypeCheckError`."""
        method = getattr(self, "_check_" + type(expr).__name__, None)
        if method is None:
            raise TypeCheckError(f"unsupported type expression {expr!r}")
        return method(expr)

    def external_layouts(self, expr: ast.TypeExpr) -> Set[str]:
        """
        Qualified names of the external types whose assumed layout
        ``expr``'s own layout depends on. Types behind a reference are not
        followed.
        """
        found: Set[str] = set()
        self._collect_external(expr, found, set())
        return found

    def _collect_external(self, expr: ast.TypeExpr, found: Set[str],
                          seen: Set[str]) -> None:
        if isinstance(expr, ast.Ident):
            if expr.package is not None:
                found.add(expr.qualified_name)
            elif expr.name in self._specs and expr.name not in seen:
                seen.add(expr.name)
                self._collect_external(self._specs[expr.name].type, found, seen)
        elif isinstance(expr, (ast.ArrayType, ast.ParenType)):
            self._collect_external(expr.elem, found, seen)
        elif isinstance(expr, ast.StructType):
            for decl in expr.fields:
                self._collect_external(decl.type, found, seen)

    # ── names ────────────────────────────────────────────────────────

    def lookup(self, name: str) -> GoType:
        """Resolve a declared or predeclared type name."""
        if name in self._specs:
            return self._declared(name)
        if name in PREDECLARED:
            return PREDECLARED[name]
        raise TypeCheckError(f"undefined type {name}")

    def _declared(self, name: str) -> GoType:
        if name in self._named:
            cached = self._named[name]
            if cached is None:
                raise TypeCheckError(f"type {name} is unresolvable")
            return cached
        if name in self._resolving:
            raise TypeCheckError(f"invalid recursive type {name}")
        spec = self._specs[name]
        if spec.generic:
            self._named[name] = None
            raise TypeCheckError(f"generic type {name} has no fixed layout")
        self._resolving.add(name)
        try:
            result = self.check(spec.type)
        except TypeCheckError:
            # A failure inside an outer resolution may be caused by that
            # outer declaration, so only the outermost result is cached.
            if len(self._resolving) == 1:
                self._named[name] = None
            raise
        finally:
            self._resolving.discard(name)
        self._named[name] = result
        return result

    def _check_Ident(self, expr: ast.Ident) -> GoType:
        if expr.args:
            raise TypeCheckError(
                f"instantiated generic type {expr.qualified_name} has no fixed layout"
            )
        if expr.package is None:
            return self.lookup(expr.name)
        try:
            return self.extern[expr.qualified_name]
        except KeyError:
            raise TypeCheckError(
                f"unknown external type {expr.qualified_name}"
            ) from None

    # ── composite types ──────────────────────────────────────────────

    def _reference(self, expr: ast.TypeExpr) -> Optional[GoType]:
        # Referenced types may legitimately be recursive or external.
        if isinstance(expr, ast.Ident) and expr.package is None \
                and expr.name in self._resolving:
            return None
        return self.resolve(expr)

    def _check_PointerType(self, expr: ast.PointerType) -> GoType:
        return GoType.pointer(self._reference(expr.elem))

    def _check_SliceType(self, expr: ast.SliceType) -> GoType:
        return GoType.slice(self._reference(expr.elem))

    def _check_DynArrayType(self, expr: ast.DynArrayType) -> GoType:
        return GoType.dynarray(self._reference(expr.elem))

    def _check_MapType(self, expr: ast.MapType) -> GoType:
        return GoType.map(self._reference(expr.key),
                          self._reference(expr.value))

    def _check_ChanType(self, expr: ast.ChanType) -> GoType:
        return GoType.chan(self._reference(expr.elem))

    def _check_FuncType(self, expr: ast.FuncType) -> GoType:
        return GoType.func()

    def _check_InterfaceType(self, expr: ast.InterfaceType) -> GoType:
        return INTERFACE

    def _check_ParenType(self, expr: ast.ParenType) -> GoType:
        return self.check(expr.elem)

    def _check_ArrayType(self, expr: ast.ArrayType) -> GoType:
        return GoType.array(self.check(expr.elem), self.array_length(expr.length))

    def array_length(self, text: str) -> int:
        """Evaluate an array length: an integer literal or integer constant."""
        text = text.strip()
        if text in self.source.consts:
            value = self.source.consts[text]
        else:
            try:
                value = parse_int_literal(text)
            except ValueError:
                raise TypeCheckError(
                    f"array length {text!r} is not an integer constant"
                ) from None
        if value < 0:
            raise TypeCheckError(f"invalid array length {value}")
        return value

    def _check_StructType(self, expr: ast.StructType) -> GoType:
        fields = []
        for decl in expr.fields:
            t = self.check(decl.type)
            for name in decl.names or (None,):
                fields.append((name, t))
        return GoType.struct(fields)


__all__ = ["TypeChecker", "PREDECLARED", "WELL_KNOWN"]

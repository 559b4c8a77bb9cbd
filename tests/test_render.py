# tests/test_render.py
"""
Tests for printing type expressions and rewritten structs back to source.
"""

import pytest

from fieldpack import ast
from fieldpack.errors import RenderError
from fieldpack.parser import parse_source
from fieldpack.render import render_struct, render_type


def field(name, type_name, tag=None):
    names = (name,) if name else ()
    return ast.Field(names, ast.Ident(type_name), tag)


class TestRenderType:

    @pytest.mark.parametrize("expr, text", [
        (ast.Ident("int64"), "int64"),
        (ast.Ident("Mutex", "sync"), "sync.Mutex"),
        (ast.Ident("Map", args=(ast.Ident("string"), ast.Ident("int"))),
         "Map[string, int]"),
        (ast.PointerType(ast.Ident("T")), "*T"),
        (ast.ArrayType("N", ast.Ident("byte")), "[N]byte"),
        (ast.SliceType(ast.Ident("string")), "[]string"),
        (ast.DynArrayType(ast.Ident("int32")), "[...]int32"),
        (ast.MapType(ast.Ident("string"), ast.PointerType(ast.Ident("T"))),
         "map[string]*T"),
        (ast.ChanType(ast.Ident("int")), "chan int"),
        (ast.ChanType(ast.Ident("int"), ast.ChanDir.RECV), "<-chan int"),
        (ast.ChanType(ast.Ident("int"), ast.ChanDir.SEND), "chan<- int"),
        (ast.FuncType("(int) error"), "func(int) error"),
        (ast.InterfaceType(), "interface{}"),
        (ast.ParenType(ast.Ident("T")), "(T)"),
    ])
    def test_expressions(self, expr, text):
        assert render_type(expr) == text

    def test_unknown_node(self):
        with pytest.raises(RenderError, match="cannot render"):
            render_type(ast.TypeExpr())

    def test_invalid_identifier(self):
        with pytest.raises(RenderError, match="invalid identifier"):
            render_type(ast.Ident("1st"))


class TestRenderStruct:
    """gofmt-style field layout."""

    def test_empty(self):
        assert render_struct(ast.StructType()) == "struct{}"

    def test_name_column(self):
        s = ast.StructType((field("a", "int64"), field("bb", "bool")))
        assert render_struct(s) == "struct {\n\ta  int64\n\tbb bool\n}"

    def test_multi_name_field(self):
        s = ast.StructType((ast.Field(("x", "y"), ast.Ident("int")),
                            field("z", "bool")))
        assert render_struct(s) == "struct {\n\tx, y int\n\tz    bool\n}"

    def test_embedded_breaks_alignment(self):
        s = ast.StructType((
            field("long", "int64"),
            field(None, "Base"),
            field("a", "bool"),
        ))
        assert render_struct(s) == (
            "struct {\n\tlong int64\n\tBase\n\ta bool\n}"
        )

    def test_tag_column(self):
        s = ast.StructType((
            field("a", "int64", '`json:"a"`'),
            field("bb", "bool", '`json:"bb"`'),
            field("c", "string"),
        ))
        assert render_struct(s) == (
            'struct {\n'
            '\ta  int64 `json:"a"`\n'
            '\tbb bool  `json:"bb"`\n'
            '\tc  string\n'
            '}'
        )

    def test_embedded_tag(self):
        s = ast.StructType((field(None, "Base", '`json:"-"`'),))
        assert render_struct(s) == 'struct {\n\tBase `json:"-"`\n}'

    def test_nested_indentation(self):
        inner = ast.StructType((field("a", "int32"),))
        s = ast.StructType((ast.Field(("in",), inner), field("n", "int")))
        assert render_struct(s, "\t") == (
            "struct {\n"
            "\t\tin struct {\n"
            "\t\t\ta int32\n"
            "\t\t}\n"
            "\t\tn int\n"
            "\t}"
        )

    def test_multi_line_field_joins_preceding_section(self):
        inner = ast.StructType((field("a", "int32"),))
        s = ast.StructType((
            field("id", "int64"),
            ast.Field(("inner",), inner),
            field("code", "int16"),
            field("ok", "bool"),
        ))
        assert render_struct(s) == (
            "struct {\n"
            "\tid    int64\n"
            "\tinner struct {\n"
            "\t\ta int32\n"
            "\t}\n"
            "\tcode int16\n"
            "\tok   bool\n"
            "}"
        )

    def test_multi_line_field_tag_follows_brace(self):
        inner = ast.StructType((field("a", "int32"),))
        s = ast.StructType((
            field("x", "int64", '`json:"x"`'),
            ast.Field(("in",), inner, '`json:"in"`'),
        ))
        assert render_struct(s) == (
            "struct {\n"
            '\tx  int64 `json:"x"`\n'
            "\tin struct {\n"
            "\t\ta int32\n"
            '\t} `json:"in"`\n'
            "}"
        )

    def test_round_trip(self):
        text = ("package p\ntype T struct {\n"
                "\tname  string            `json:\"name\"`\n"
                "\tattrs map[string]string `json:\"attrs\"`\n"
                "\tcb    func(int) error\n"
                "}\n")
        struct = parse_source(text).types[0].type
        assert render_struct(struct) == text[len("package p\ntype T "):-1]

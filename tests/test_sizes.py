# tests/test_sizes.py
"""
Tests for the gc layout model: alignof / sizeof / ptrdata and the ABI
configuration they are parameterized by.
"""

import pickle

import pytest

from fieldpack.errors import ConfigError
from fieldpack.sizes import ABIConfig, GcSizes, align
from fieldpack.types import (
    BOOL,
    COMPLEX128,
    INT,
    INT8,
    INT16,
    INT32,
    INT64,
    INTERFACE,
    STRING,
    UINT32,
    BasicKind,
    GoType,
)


def struct(*types):
    return GoType.struct([(f"f{i}", t) for i, t in enumerate(types)])


@pytest.fixture
def i386():
    return GcSizes(ABIConfig.for_arch("386"))


class TestABIConfig:
    """Construction and validation of target parameters."""

    def test_amd64_parameters(self):
        abi = ABIConfig.for_arch("amd64")
        assert abi.word_size == 8
        assert abi.max_align == 8
        assert abi.basic_size(BasicKind.INT) == 8
        assert abi.basic_size(BasicKind.INT16) == 2

    def test_amd64p32_has_wide_alignment(self):
        abi = ABIConfig.for_arch("amd64p32")
        assert (abi.word_size, abi.max_align) == (4, 8)

    def test_word_sized_basics_follow_word_size(self):
        abi = ABIConfig.for_word_size(4)
        assert abi.basic_size(BasicKind.UINTPTR) == 4
        assert abi.basic_size(BasicKind.INT64) == 8
        assert abi.max_align == 4

    def test_missing_basic_defaults_to_word(self):
        abi = ABIConfig(word_size=8, max_align=8)
        assert abi.basic_size(BasicKind.COMPLEX128) == 8

    def test_unknown_arch(self):
        with pytest.raises(ConfigError, match="unknown GOARCH"):
            ABIConfig.for_arch("z80")

    @pytest.mark.parametrize("word_size", [0, 3, -8])
    def test_word_size_must_be_power_of_two(self, word_size):
        with pytest.raises(ConfigError):
            ABIConfig.for_word_size(word_size)

    def test_basic_sizes_are_read_only(self):
        abi = ABIConfig.for_arch("amd64")
        with pytest.raises(TypeError):
            abi.basic_sizes[BasicKind.INT] = 4

    def test_survives_pickling(self):
        abi = pickle.loads(pickle.dumps(ABIConfig.for_arch("arm")))
        assert abi.word_size == 4
        assert abi.basic_size(BasicKind.INT64) == 8


class TestAlign:

    @pytest.mark.parametrize("x, a, expected", [
        (0, 8, 0), (1, 8, 8), (8, 8, 8), (5, 4, 8), (13, 1, 13),
    ])
    def test_align(self, x, a, expected):
        assert align(x, a) == expected


class TestSizeof:
    """Sizes of basic, reference and composite types on amd64."""

    @pytest.mark.parametrize("t, expected", [
        (BOOL, 1), (INT16, 2), (INT, 8), (COMPLEX128, 16),
        (STRING, 16), (INTERFACE, 16),
        (GoType.slice(INT8), 24), (GoType.dynarray(INT32), 16),
        (GoType.map(STRING, INT), 8), (GoType.chan(INT), 8),
        (GoType.func(), 8), (GoType.pointer(INT), 8),
        (GoType.unsafe_pointer(), 8),
    ])
    def test_leaf_sizes(self, amd64, t, expected):
        assert amd64.sizeof(t) == expected

    def test_array(self, amd64):
        assert amd64.sizeof(GoType.array(INT32, 3)) == 12
        assert amd64.sizeof(GoType.array(INT64, 0)) == 0

    def test_struct_padding(self, amd64):
        assert amd64.sizeof(struct(INT8, INT64)) == 16
        assert amd64.sizeof(struct(INT64, INT8)) == 16
        assert amd64.sizeof(struct(INT16, INT32, INT8)) == 12

    def test_empty_struct(self, amd64):
        assert amd64.sizeof(struct()) == 0
        assert amd64.alignof(struct()) == 1

    def test_trailing_zero_size_field_takes_a_byte(self, amd64):
        assert amd64.sizeof(struct(INT64, struct())) == 16

    def test_only_zero_size_field_takes_nothing(self, amd64):
        assert amd64.sizeof(struct(struct())) == 0

    def test_leading_zero_size_field_is_free(self, amd64):
        assert amd64.sizeof(struct(struct(), INT64)) == 8

    def test_32bit_int64_alignment(self, i386):
        assert i386.sizeof(struct(BOOL, INT64)) == 12
        assert i386.alignof(INT64) == 4


class TestAlignof:

    def test_capped_by_max_align(self, amd64):
        assert amd64.alignof(COMPLEX128) == 8

    def test_array_aligns_as_element(self, amd64):
        assert amd64.alignof(GoType.array(INT16, 7)) == 2

    def test_struct_aligns_as_widest_field(self, amd64):
        assert amd64.alignof(struct(BOOL, UINT32, INT8)) == 4

    def test_empty_array_aligns_as_element(self, amd64):
        assert amd64.alignof(GoType.array(INT64, 0)) == 8


class TestPtrdata:
    """Length of the pointer-holding prefix."""

    @pytest.mark.parametrize("t, expected", [
        (INT64, 0), (STRING, 8), (INTERFACE, 16),
        (GoType.slice(INT), 8), (GoType.dynarray(INT), 8),
        (GoType.pointer(), 8), (GoType.map(INT, INT), 8),
    ])
    def test_leaves(self, amd64, t, expected):
        assert amd64.ptrdata(t) == expected

    def test_struct_examples(self, amd64):
        assert amd64.ptrdata(struct(UINT32, STRING)) == 16
        assert amd64.ptrdata(struct(STRING, GoType.pointer(UINT32))) == 24
        assert amd64.ptrdata(struct(STRING, UINT32)) == 8

    def test_array_of_strings(self, amd64):
        assert amd64.ptrdata(GoType.array(STRING, 3)) == 40

    def test_pointer_free_array(self, amd64):
        assert amd64.ptrdata(GoType.array(INT64, 4)) == 0
        assert amd64.ptrdata(GoType.array(STRING, 0)) == 0

    def test_never_exceeds_size(self, amd64):
        t = struct(INT8, STRING, INT16, GoType.pointer(), BOOL)
        assert 0 < amd64.ptrdata(t) <= amd64.sizeof(t)

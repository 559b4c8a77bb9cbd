# tests/conftest.py
"""
Shared fixtures and sample sources for the fieldpack test suite.
"""

import pytest

from fieldpack.parser import parse_source
from fieldpack.rewriter import RecordRewriter
from fieldpack.sizes import ABIConfig, GcSizes
from fieldpack.typecheck import TypeChecker


# Event: 64 bytes as declared, 48 once reordered (amd64).
E2E_SOURCE = """\
package events

type Event struct {
\tid      int64
\tinner   struct {
\t\ta int16
\t\tb int32
\t\tc int8
\t}
\tsamples [...]int32
\tcode    int16
\tattrs   map[string]string
\tok      bool
}
"""

E2E_MESSAGES = (
    "Event.inner struct of size 12 could be 8, save 33.33%",
    "Event struct of size 64 could be 48, save 25.00%",
)

E2E_FIX = """\
struct {
\tattrs   map[string]string
\tsamples [...]int32
\tid      int64
\tinner   struct {
\t\tb int32
\t\ta int16
\t\tc int8
\t}
\tcode int16
\tok   bool
}"""

# bool/int64/bool: 24 bytes on amd64, 16 once reordered.
PADDED_SOURCE = """\
package p

type T struct {
\ta bool
\tb int64
\tc bool
}
"""

CLEAN_SOURCE = """\
package p

import "sync"

type Good struct {
\tname  string
\tcount int64
\tmu    sync.Mutex
\tok    bool
}

func (g *Good) Name() string { return g.name }
"""


@pytest.fixture
def amd64():
    return GcSizes(ABIConfig.for_arch("amd64"))


@pytest.fixture
def rewrite(amd64):
    """Rewrite the declaration ``name`` of ``text`` with amd64 sizes."""
    def _rewrite(text, name):
        source = parse_source(text)
        checker = TypeChecker(source)
        spec = next(s for s in source.types if s.name == name)
        return RecordRewriter(amd64, checker.resolve).rewrite(name, spec.type)
    return _rewrite


@pytest.fixture
def go_file(tmp_path):
    """Write ``text`` to ``tmp_path/name`` and return the path as a string."""
    def _write(text, name="types.go"):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return str(path)
    return _write

# tests/test_checkers.py
"""
Tests for the checker framework and FieldAlignmentChecker: diagnostics,
suggested fixes, suppressions, output formats and failure handling.
"""

import json

import pytest

from fieldpack import analyze_source
from fieldpack.checkers import (
    CheckerRegistry,
    CheckerRunner,
    CheckerRunResults,
    Confidence,
    Diagnostic,
    DiagnosticSeverity,
    FieldAlignmentChecker,
    SourceLocation,
    SuppressionManager,
)
from fieldpack.errors import LayoutInvariantError, RenderError
from fieldpack.parser import parse_source
from fieldpack.patcher import apply_edits
from fieldpack.rewriter import RecordRewriter
from fieldpack.sizes import ABIConfig
from tests.conftest import (
    CLEAN_SOURCE,
    E2E_FIX,
    E2E_MESSAGES,
    E2E_SOURCE,
    PADDED_SOURCE,
)


def run(text, filename="types.go", suppressions=None, **options):
    runner = CheckerRunner(suppressions=suppressions, options=options)
    return runner.run(parse_source(text, filename))


class TestFieldAlignmentChecker:
    """Findings for top-level struct declarations."""

    def test_event_diagnostic(self):
        results = run(E2E_SOURCE, "events.go")
        assert len(results.findings) == 1
        diag = results.findings[0]
        assert diag.error_id == "fieldAlignment"
        assert diag.severity is DiagnosticSeverity.PERFORMANCE
        assert diag.confidence is Confidence.HIGH
        assert diag.message == ",".join(E2E_MESSAGES)
        assert str(diag.location) == "events.go:3:12"
        assert diag.evidence["type"] == "Event"

    def test_suggested_fix(self):
        diag = run(E2E_SOURCE, "events.go").findings[0]
        (fix,) = diag.fixes
        assert fix.message == "Rearrange fields"
        (edit,) = fix.edits
        assert edit.file == "events.go"
        assert edit.new_text == E2E_FIX
        assert E2E_SOURCE[edit.start:edit.end].startswith("struct {\n\tid")

    def test_fix_is_idempotent(self):
        diag = run(E2E_SOURCE).findings[0]
        fixed = apply_edits(E2E_SOURCE, diag.fixes[0].edits)
        assert run(fixed).findings == []

    def test_clean_source(self):
        assert run(CLEAN_SOURCE).findings == []

    def test_one_diagnostic_per_declaration(self):
        text = PADDED_SOURCE + "\ntype U struct {\n\tx bool\n\ty string\n}\n"
        results = run(text)
        assert [d.evidence["type"] for d in results.findings] == ["T", "U"]
        assert results.stats["structs_rewritten"] == 2

    def test_indented_declaration(self):
        text = "package p\n\ntype (\n\tT struct {\n\t\ta bool\n\t\tb int64\n\t\tc bool\n\t}\n)\n"
        diag = run(text).findings[0]
        assert diag.fixes[0].edits[0].new_text == (
            "struct {\n\t\tb int64\n\t\ta bool\n\t\tc bool\n\t}"
        )

    def test_external_layout_lowers_confidence(self):
        text = ("package p\n\nimport \"sync\"\n\ntype S struct {\n\tok bool\n"
                "\tn int64\n\tmu sync.Mutex\n\tdone bool\n}\n")
        (diag,) = run(text).findings
        assert diag.message == "S struct of size 32 could be 24, save 25.00%"
        assert diag.confidence is Confidence.MEDIUM
        assert diag.evidence["external"] == ["sync.Mutex"]

    def test_generic_struct_skipped(self):
        text = "package p\ntype Box[T any] struct {\n\ta bool\n\tb int64\n\tc bool\n}\n"
        assert run(text).findings == []

    def test_non_struct_declarations_ignored(self):
        text = "package p\ntype IDs []struct {\n\ta bool\n\tb int64\n\tc bool\n}\n"
        assert run(text).findings == []

    def test_target_abi(self):
        diag = run(PADDED_SOURCE, abi=ABIConfig.for_arch("386")).findings[0]
        assert diag.message == "T struct of size 16 could be 12, save 25.00%"

    def test_default_abi_is_amd64(self):
        diag = run(PADDED_SOURCE).findings[0]
        assert diag.message == "T struct of size 24 could be 16, save 33.33%"

    def test_render_failure_drops_diagnostic(self, monkeypatch):
        def fail(expr, indent=""):
            raise RenderError("cannot render")
        monkeypatch.setattr("fieldpack.checkers.render_type", fail)
        results = run(PADDED_SOURCE)
        assert results.diagnostics == []


class TestSuppressions:

    def test_inline_on_previous_line(self):
        text = PADDED_SOURCE.replace(
            "type T", "// fieldpack-suppress fieldAlignment\ntype T")
        assert run(text).findings == []

    def test_inline_on_same_line(self):
        text = PADDED_SOURCE.replace("struct {", "struct { // fieldpack-suppress")
        assert run(text).findings == []

    def test_inline_other_id(self):
        text = PADDED_SOURCE.replace(
            "type T", "// fieldpack-suppress somethingElse\ntype T")
        assert len(run(text).findings) == 1

    def test_global(self):
        sm = SuppressionManager()
        sm.add_from_spec("fieldAlignment")
        assert run(PADDED_SOURCE, suppressions=sm).findings == []

    def test_file_pattern(self):
        sm = SuppressionManager()
        sm.add_from_spec("fieldAlignment:gen/*.go")
        assert run(PADDED_SOURCE, "gen/types.go", suppressions=sm).findings == []
        assert len(run(PADDED_SOURCE, "src/types.go", suppressions=sm).findings) == 1

    def test_is_suppressed_wildcard(self):
        sm = SuppressionManager()
        sm.add_global_suppression("*")
        diag = Diagnostic("x", "m", DiagnosticSeverity.STYLE, SourceLocation("a.go", 1))
        assert sm.is_suppressed(diag)


class TestOutputFormats:

    def test_cppcheck_json(self):
        diag = run(E2E_SOURCE, "events.go").findings[0]
        payload = json.loads(diag.to_json_str())
        assert payload["file"] == "events.go"
        assert payload["linenr"] == 3
        assert payload["column"] == 12
        assert payload["severity"] == "performance"
        assert payload["errorId"] == "fieldAlignment"
        assert payload["addon"] == "fieldpack"
        assert payload["fixes"][0]["edits"][0]["newText"] == E2E_FIX

    def test_gcc_format(self):
        diag = run(PADDED_SOURCE, "t.go").findings[0]
        assert diag.to_gcc_format() == (
            "t.go:3:8: performance: "
            "T struct of size 24 could be 16, save 33.33% [fieldAlignment]"
        )

    def test_no_fixes_key_without_fixes(self):
        diag = Diagnostic("x", "m", DiagnosticSeverity.STYLE, SourceLocation("a.go", 1))
        assert "fixes" not in diag.to_cppcheck_json()


class TestCheckerRunner:

    def test_internal_error_is_reported(self, monkeypatch):
        def boom(self, name, expr):
            raise RuntimeError("boom")
        monkeypatch.setattr(RecordRewriter, "rewrite", boom)
        results = run(PADDED_SOURCE)
        assert results.findings == []
        (diag,) = results.diagnostics
        assert diag.error_id == "checkerInternalError"
        assert diag.severity is DiagnosticSeverity.INFORMATION
        assert "boom" in diag.message

    def test_layout_invariant_error_propagates(self, monkeypatch):
        def broken(self, name, expr):
            raise LayoutInvariantError("no rule")
        monkeypatch.setattr(RecordRewriter, "rewrite", broken)
        with pytest.raises(LayoutInvariantError):
            run(PADDED_SOURCE)

    def test_select_checkers_by_name(self):
        runner = CheckerRunner()
        source = parse_source(PADDED_SOURCE)
        assert runner.run(source, checkers=["nope"]).diagnostics == []
        assert len(runner.run(source, checkers=["fieldalignment"]).findings) == 1

    def test_disabled_checker(self):
        registry = CheckerRegistry()
        registry.register(FieldAlignmentChecker)
        registry.disable("fieldalignment")
        runner = CheckerRunner(registry=registry)
        assert runner.run(parse_source(PADDED_SOURCE)).diagnostics == []
        assert registry.names == ["fieldalignment"]

    def test_merge_and_summary(self):
        combined = CheckerRunResults()
        combined.merge(run(PADDED_SOURCE, "a.go"))
        combined.merge(run(E2E_SOURCE, "b.go"))
        assert combined.total_count == 2
        assert len(combined.by_file("b.go")) == 1
        assert combined.stats["structs_rewritten"] == 2
        assert combined.summary().startswith("Checker run complete: 2 diagnostics")
        assert len(combined.to_json_lines().splitlines()) == 2


class TestAnalyzeSource:

    def test_package_entry_point(self):
        results = analyze_source(E2E_SOURCE, "events.go")
        assert [d.message for d in results.findings] == [",".join(E2E_MESSAGES)]

    def test_abi_argument(self):
        results = analyze_source(PADDED_SOURCE, abi=ABIConfig.for_arch("arm"))
        assert results.findings[0].message.startswith("T struct of size 16")

    def test_no_finding_when_reorder_scans_more_pointer_bytes(self):
        text = "package p\ntype T struct {\n\tp *int\n\tx int32\n\ty int64\n}\n"
        results = analyze_source(text, abi=ABIConfig.for_arch("amd64p32"))
        assert results.findings == []

# tests/test_cli.py
"""
Tests for the fieldpack command line: exit codes, output formats, --fix,
suppressions, target options and parallel runs.
"""

import json
import logging
from pathlib import Path

import pytest

from fieldpack import __version__
from fieldpack.main import EXIT_FINDINGS, EXIT_INFRA, EXIT_OK, analyze_paths, main
from tests.conftest import CLEAN_SOURCE, E2E_FIX, E2E_SOURCE, PADDED_SOURCE

PADDED_MESSAGE = "T struct of size 24 could be 16, save 33.33% [fieldAlignment]"


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.getLogger("fieldpack").handlers.clear()


class TestExitCodes:

    def test_clean(self, go_file, capsys):
        assert main([go_file(CLEAN_SOURCE)]) == EXIT_OK
        assert capsys.readouterr().out == ""

    def test_findings(self, go_file, capsys):
        path = go_file(PADDED_SOURCE)
        assert main([path]) == EXIT_FINDINGS
        out = capsys.readouterr().out
        assert out == f"{path}:3:8: performance: {PADDED_MESSAGE}\n"

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "nope.go")]) == EXIT_INFRA
        assert "error:" in capsys.readouterr().err

    def test_parse_error(self, go_file, capsys):
        path = go_file("package p\ntype = int\n", "bad.go")
        assert main([path]) == EXIT_INFRA
        assert f"{path}:2:1: error:" in capsys.readouterr().err

    def test_infra_failure_wins(self, go_file, tmp_path, capsys):
        path = go_file(PADDED_SOURCE)
        assert main([path, str(tmp_path / "nope.go")]) == EXIT_INFRA
        assert PADDED_MESSAGE in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["--version"])
        assert excinfo.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_no_files(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 2


class TestOutput:

    def test_json(self, go_file, capsys):
        path = go_file(E2E_SOURCE)
        assert main(["--format", "json", path]) == EXIT_FINDINGS
        (line,) = capsys.readouterr().out.splitlines()
        payload = json.loads(line)
        assert payload["file"] == path
        assert payload["fixes"][0]["edits"][0]["newText"] == E2E_FIX

    def test_show_fix(self, go_file, capsys):
        main(["--show-fix", go_file(PADDED_SOURCE)])
        out = capsys.readouterr().out
        assert "    struct {\n    \tb int64\n    \ta bool\n    \tc bool\n    }\n" in out


class TestFix:

    def test_rewrites_in_place(self, go_file, capsys):
        path = go_file(E2E_SOURCE)
        assert main(["--fix", path]) == EXIT_FINDINGS
        assert Path(path).read_text(encoding="utf-8").endswith(E2E_FIX + "\n")
        assert main([path]) == EXIT_OK

    def test_crlf_file_keeps_line_endings(self, tmp_path):
        path = tmp_path / "crlf.go"
        path.write_bytes(PADDED_SOURCE.replace("\n", "\r\n").encode("utf-8")
                         + b"\r\nfunc f() {}\r\n")
        assert main(["--fix", str(path)]) == EXIT_FINDINGS
        data = path.read_bytes()
        assert b"\r\n" in data
        assert b"\n" not in data.replace(b"\r\n", b"")
        assert data.endswith(b"}\r\n\r\nfunc f() {}\r\n")
        assert main([str(path)]) == EXIT_OK

    def test_suppressed_findings_are_not_fixed(self, go_file):
        path = go_file(PADDED_SOURCE)
        assert main(["--fix", "--suppress", "fieldAlignment", path]) == EXIT_OK
        assert Path(path).read_text(encoding="utf-8") == PADDED_SOURCE


class TestOptions:

    def test_arch(self, go_file, capsys):
        main(["--arch", "386", go_file(PADDED_SOURCE)])
        assert "T struct of size 16 could be 12, save 25.00%" in capsys.readouterr().out

    def test_word_size_override(self, go_file, capsys):
        main(["--word-size", "4", go_file(PADDED_SOURCE)])
        assert "T struct of size 16 could be 12" in capsys.readouterr().out

    @pytest.mark.parametrize("argv", [
        ["--arch", "z80"],
        ["--word-size", "3"],
        ["--max-align", "6"],
        ["--jobs", "0"],
    ])
    def test_bad_options(self, go_file, argv):
        assert main(argv + [go_file(PADDED_SOURCE)]) == EXIT_INFRA

    def test_suppress_pattern(self, go_file):
        path = go_file(PADDED_SOURCE, "gen/types.go")
        assert main(["--suppress", "fieldAlignment:*/gen/*.go", path]) == EXIT_OK


class TestParallel:

    def test_jobs(self, go_file, capsys):
        first = go_file(PADDED_SOURCE, "a.go")
        second = go_file(E2E_SOURCE, "b.go")
        assert main(["-j", "2", first, second]) == EXIT_FINDINGS
        lines = capsys.readouterr().out.splitlines()
        assert [line.split(":")[0] for line in lines] == [first, second]

    def test_results_keep_input_order(self, go_file):
        paths = [go_file(PADDED_SOURCE, f"f{i}.go") for i in range(4)]
        outcomes = analyze_paths(paths, {}, jobs=2)
        assert [o.path for o in outcomes] == paths
        assert all(len(o.results.findings) == 1 for o in outcomes)

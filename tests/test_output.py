"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline and quiet/verbose rules
- print_body for JSON, text, and output files
- print_record and print_table in plain and JSON modes
- Global instance management
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from swrcache.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("swrcache.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("swrcache.output._is_tty", lambda: True)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


# ------------------------------------------------------------------ #
# Format resolution and colour
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty):
        assert OutputManager().format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_format_kept(self, non_tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# stdout vs stderr
# ------------------------------------------------------------------ #


class TestStreams:
    def test_diagnostics_go_to_stderr(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.info("hello")
        mgr.warning("careful")
        mgr.error("broken")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "hello" in captured.err
        assert "Warning: careful" in captured.err
        assert "Error: broken" in captured.err

    def test_quiet_suppresses_info_not_errors(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.info("hidden")
        mgr.success("hidden too")
        mgr.error("shown")
        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err

    def test_debug_only_when_verbose(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).debug("nope")
        OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True).debug("yes")
        err = capsys.readouterr().err
        assert "nope" not in err
        assert "[debug] yes" in err


# ------------------------------------------------------------------ #
# print_body
# ------------------------------------------------------------------ #


class TestPrintBody:
    def test_plain_prints_text_verbatim(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_body(b'{"a": 1}', "application/json")
        assert capsys.readouterr().out == '{"a": 1}\n'

    def test_json_mode_pretty_prints(self, capsys):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_body(b'{"a":[1,2]}', "application/json")
        out = capsys.readouterr().out
        assert json.loads(out) == {"a": [1, 2]}
        assert '\n  "a"' in out

    def test_json_mode_non_json_body(self, capsys):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_body(b"plain words", "text/plain")
        assert capsys.readouterr().out == "plain words\n"

    def test_rich_text_is_not_markup(self, capsys):
        mgr = OutputManager(format=OutputFormat.RICH, no_color=True)
        mgr.print_body(b"[bold]literal[/bold]", "text/plain")
        assert "[bold]literal[/bold]" in capsys.readouterr().out

    def test_invalid_utf8_replaced(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_body(b"ok\xff")
        assert capsys.readouterr().out.startswith("ok")

    def test_output_file_receives_exact_bytes(self, tmp_path: Path, capsys):
        target = tmp_path / "body.bin"
        mgr = OutputManager(format=OutputFormat.PLAIN, output_file=str(target))
        mgr.print_body(b"\x00\x01binary")
        assert target.read_bytes() == b"\x00\x01binary"
        assert capsys.readouterr().out == ""

    def test_output_file_overwritten_by_later_body(self, tmp_path: Path):
        target = tmp_path / "body.txt"
        mgr = OutputManager(format=OutputFormat.PLAIN, output_file=str(target))
        mgr.print_body(b"stale")
        mgr.print_body(b"fresh")
        assert target.read_bytes() == b"fresh"


# ------------------------------------------------------------------ #
# Records and tables
# ------------------------------------------------------------------ #


class TestStructured:
    def test_record_plain(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_record({"entries": 2, "directory": None})
        assert capsys.readouterr().out == "entries\t2\ndirectory\t\n"

    def test_record_json(self, capsys):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_record({"entries": 2})
        assert json.loads(capsys.readouterr().out) == {"entries": 2}

    def test_table_plain(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_table(["URL", "Status"], [["https://x.test/", "200"]])
        assert capsys.readouterr().out == "URL\tStatus\nhttps://x.test/\t200\n"

    def test_table_json(self, capsys):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_table(["URL", "Status"], [["https://x.test/", "200"]])
        assert json.loads(capsys.readouterr().out) == [{"URL": "https://x.test/", "Status": "200"}]


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_output_creates_lazily(self):
        reset_output()
        first = get_output()
        assert first is get_output()

    def test_set_and_reset(self):
        mgr = OutputManager(format=OutputFormat.JSON)
        set_output(mgr)
        assert get_output() is mgr
        reset_output()
        assert get_output() is not mgr

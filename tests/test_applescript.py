"""Tests for AppleScript generation and execution."""

import subprocess

import pytest

from notesnap import applescript
from notesnap.applescript import (
    AppleScriptExecutionError,
    AppleScriptPermissionError,
    NoteMatch,
    as_applescript_string_expr,
    escape_for_applescript,
    parse_note_summaries,
    run_applescript,
    unique_notes_by_id,
)


class TestEscaping:
    def test_quotes_and_backslashes(self):
        assert escape_for_applescript('say "hi" \\o/') == 'say \\"hi\\" \\\\o/'

    def test_multiline_expression(self):
        assert as_applescript_string_expr("a\r\nb\nc") == '"a" & linefeed & "b" & linefeed & "c"'

    def test_empty(self):
        assert as_applescript_string_expr("") == '""'


class TestRunAppleScript:
    def _fail_with(self, monkeypatch, stderr):
        def fake_run(args, **kwargs):
            raise subprocess.CalledProcessError(1, args, output="", stderr=stderr)

        monkeypatch.setattr(subprocess, "run", fake_run)

    def test_returns_stripped_stdout(self, monkeypatch):
        calls = []

        def fake_run(args, **kwargs):
            calls.append(args)
            return subprocess.CompletedProcess(args, 0, stdout="  result\n", stderr="")

        monkeypatch.setattr(subprocess, "run", fake_run)
        assert run_applescript("return 1") == "result"
        assert calls == [["osascript", "-e", "return 1"]]

    def test_permission_denied(self, monkeypatch):
        self._fail_with(monkeypatch, "Not allowed to send Apple events to Notes.")
        with pytest.raises(AppleScriptPermissionError):
            run_applescript("return 1")

    def test_notes_error(self, monkeypatch):
        self._fail_with(monkeypatch, "Notes got an error: Notes doesn't understand the message.")
        with pytest.raises(AppleScriptExecutionError, match="Notes app error"):
            run_applescript("return 1")

    def test_generic_error(self, monkeypatch):
        self._fail_with(monkeypatch, "syntax error")
        with pytest.raises(AppleScriptExecutionError, match="AppleScript failed: syntax error"):
            run_applescript("return 1")

    def test_missing_osascript(self, monkeypatch):
        def fake_run(args, **kwargs):
            raise FileNotFoundError("osascript")

        monkeypatch.setattr(subprocess, "run", fake_run)
        with pytest.raises(AppleScriptExecutionError, match="requires macOS"):
            run_applescript("return 1")


class TestScripts:
    def test_add_note_embeds_escaped_values(self):
        script = applescript.add_note('My "note"', "<div>x</div>", folder="Work", account="iCloud")
        assert 'set titleText to "My \\"note\\""' in script
        assert 'set folderName to "Work"' in script
        assert 'set accountName to "iCloud"' in script

    def test_update_note_flags(self):
        script = applescript.update_note("x-coredata://A/ICNote/p1", title="New")
        assert "set shouldUpdateTitle to true" in script
        assert "set shouldUpdateBody to false" in script

    def test_set_note_body_multiline(self):
        script = applescript.set_note_body("id", "<div>a</div>\n<div>b</div>")
        assert '"<div>a</div>" & linefeed & "<div>b</div>"' in script

    def test_find_notes_skips_trash_by_default(self):
        script = applescript.find_notes_by_title("Plan")
        assert 'set trashName to "Recently Deleted"' in script
        assert "set includeDeleted to (folderName is trashName)" in script


class TestSummaries:
    def test_parse(self):
        output = "id-1\tFirst\nnot a summary\nid-2\tSecond\twith tab"
        assert parse_note_summaries(output) == [
            NoteMatch(id="id-1", title="First"),
            NoteMatch(id="id-2", title="Second\twith tab"),
        ]

    def test_unique(self):
        notes = [NoteMatch("a", "x"), NoteMatch("b", "y"), NoteMatch("a", "x")]
        assert unique_notes_by_id(notes) == [NoteMatch("a", "x"), NoteMatch("b", "y")]

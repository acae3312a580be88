"""Tests for external script execution and exit code classification."""

import logging

import pytest

from segmented_archive.exceptions import ScriptError
from segmented_archive.utils.scripts import ScriptHook, run_script

from conftest import write_script


def test_script_success(tmp_path, recording_script):
    script, log = recording_script
    assert run_script(script, tmp_path / "archive.tar.gz") == 0
    assert log.read_text().splitlines() == [str(tmp_path / "archive.tar.gz")]


@pytest.mark.parametrize("exit_code", [1, 64, 127])
def test_script_non_fatal_failure(tmp_path, caplog, exit_code):
    script = write_script(tmp_path / "fail.sh", f"exit {exit_code}")
    with caplog.at_level(logging.WARNING):
        assert run_script(script, "arg", label="post-script") == exit_code
    assert f"exit code {exit_code}" in caplog.text


@pytest.mark.parametrize("exit_code", [128, 200, 255])
def test_script_fatal_failure(tmp_path, exit_code):
    script = write_script(tmp_path / "panic.sh", f"exit {exit_code}")
    with pytest.raises(ScriptError) as excinfo:
        run_script(script, "arg")
    assert excinfo.value.exit_code == exit_code
    assert excinfo.value.path == script


def test_script_killed_by_signal_is_fatal(tmp_path):
    script = write_script(tmp_path / "killed.sh", "kill -9 $$")
    with pytest.raises(ScriptError) as excinfo:
        run_script(script, "arg")
    assert excinfo.value.exit_code == 128 + 9
    assert "signal 9" in str(excinfo.value)


def test_script_not_found(tmp_path):
    with pytest.raises(ScriptError) as excinfo:
        run_script(tmp_path / "missing.sh", "arg", label="skip-script")
    assert "not found" in str(excinfo.value)


def test_script_permission_denied(tmp_path):
    script = tmp_path / "not_executable.sh"
    script.write_text("#!/bin/sh\nexit 0\n")
    script.chmod(0o644)
    with pytest.raises(ScriptError) as excinfo:
        run_script(script, "arg")
    assert "Permission denied" in str(excinfo.value)


def test_script_hook_is_callable(tmp_path, recording_script):
    script, log = recording_script
    hook = ScriptHook(script, "post-script")
    assert hook(tmp_path / "a.tar.gz.part001") == 0
    assert hook(tmp_path / "a.tar.gz.part002") == 0
    assert log.read_text().splitlines() == [
        str(tmp_path / "a.tar.gz.part001"),
        str(tmp_path / "a.tar.gz.part002"),
    ]

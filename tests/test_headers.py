"""Tests for HeaderRecovery — staging headers found elsewhere in the project."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from z_ir_generator.build.headers import HeaderRecovery
from z_ir_generator.exceptions import HeaderRecoveryError
from z_ir_generator.models.command import ShellCommand, VectorCommand
from z_ir_generator.process import SpawnResult

NOT_FOUND = "src/main.c:3:10: fatal error: '{}' file not found\n#include \"{}\"\n1 error generated.\n"


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Project with headers living away from the source that needs them."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.c").write_text("int main(void) { return 0; }\n")
    (tmp_path / "include").mkdir()
    (tmp_path / "include" / "config.h").write_text("#define CONFIG 1\n")
    (tmp_path / "include" / "extra.h").write_text("#define EXTRA 1\n")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "extra.h").write_text("stale\n")
    return tmp_path


def _cmd(project: Path, include: str = "config.h") -> ShellCommand:
    return ShellCommand(
        directory=str(project),
        command=f"clang -include {include} -emit-llvm -c -o src/main.bc src/main.c",
        file=str(project / "src" / "main.c"),
    )


class TestApplies:
    def test_relative_include(self, project: Path):
        recovery = HeaderRecovery(str(project))
        cmd = _cmd(project)
        assert recovery.applies(cmd)
        assert recovery.include_headers(cmd) == {"config.h"}

    def test_nested_relative_include_uses_basename(self, project: Path):
        assert HeaderRecovery.include_headers(_cmd(project, "gen/config.h")) == {"config.h"}

    def test_absolute_include_excluded(self, project: Path):
        recovery = HeaderRecovery(str(project))
        assert not recovery.applies(_cmd(project, "/usr/include/stdio.h"))

    def test_vector_form_not_handled(self, project: Path):
        cmd = VectorCommand(
            directory=str(project),
            arguments=["clang", "-include", "config.h", "-c", "src/main.c"],
            file=str(project / "src" / "main.c"),
        )
        assert not HeaderRecovery(str(project)).applies(cmd)

    def test_no_include(self, project: Path):
        cmd = ShellCommand(directory=str(project), command="clang -c src/main.c", file="src/main.c")
        assert not HeaderRecovery(str(project)).applies(cmd)


class TestDiagnostics:
    def test_header_not_found_needs_both_markers(self):
        assert HeaderRecovery.is_header_not_found(NOT_FOUND.format("a.h", "a.h"))
        assert not HeaderRecovery.is_header_not_found("fatal error: too many errors emitted")
        assert not HeaderRecovery.is_header_not_found("warning: 'a.h' file not found")

    def test_missing_headers_parses_every_occurrence(self):
        output = NOT_FOUND.format("a.h", "a.h") + NOT_FOUND.format("sys/b.h", "sys/b.h")
        assert HeaderRecovery.missing_headers(output) == {"a.h", "b.h"}


class TestStage:
    def test_copies_next_to_source(self, project: Path):
        recovery = HeaderRecovery(str(project))
        staged = recovery.stage(_cmd(project), {"config.h"})

        dest = project / "src" / "config.h"
        assert staged == [str(dest)]
        assert dest.read_text() == "#define CONFIG 1\n"

    def test_skips_vcs_directories(self, project: Path):
        HeaderRecovery(str(project)).stage(_cmd(project), {"extra.h"})
        assert (project / "src" / "extra.h").read_text() == "#define EXTRA 1\n"

    def test_header_already_in_place(self, project: Path):
        (project / "include" / "config.h").rename(project / "src" / "config.h")
        assert HeaderRecovery(str(project)).stage(_cmd(project), {"config.h"}) == []

    def test_copy_errors_ignored(self, project: Path):
        with patch("z_ir_generator.build.headers.shutil.copyfile", side_effect=PermissionError):
            assert HeaderRecovery(str(project)).stage(_cmd(project), {"config.h"}) == []

    def test_nothing_requested(self, project: Path):
        assert HeaderRecovery(str(project)).stage(_cmd(project), set()) == []


class TestRepair:
    def test_success_first_attempt(self, project: Path):
        cmd = _cmd(project)
        with patch.object(ShellCommand, "try_run", return_value=SpawnResult(0)) as try_run:
            result = HeaderRecovery(str(project)).repair(cmd)
        assert result.ok
        assert try_run.call_count == 1
        assert (project / "src" / "config.h").exists()

    def test_second_attempt_stages_reported_header(self, project: Path):
        cmd = _cmd(project)
        outcomes = [SpawnResult(1, NOT_FOUND.format("extra.h", "extra.h")), SpawnResult(0)]
        with patch.object(ShellCommand, "try_run", side_effect=outcomes) as try_run:
            result = HeaderRecovery(str(project)).repair(cmd)
        assert result.ok
        assert try_run.call_count == 2
        assert (project / "src" / "extra.h").exists()

    def test_other_failure_returned(self, project: Path):
        cmd = _cmd(project)
        failure = SpawnResult(1, "src/main.c:1:1: error: expected ';'")
        with patch.object(ShellCommand, "try_run", return_value=failure) as try_run:
            result = HeaderRecovery(str(project)).repair(cmd)
        assert result is failure
        assert try_run.call_count == 1

    def test_attempts_exhausted(self, project: Path):
        cmd = _cmd(project)
        missing = SpawnResult(1, NOT_FOUND.format("nowhere.h", "nowhere.h"))
        with patch.object(ShellCommand, "try_run", return_value=missing) as try_run:
            with pytest.raises(HeaderRecoveryError) as exc_info:
                HeaderRecovery(str(project)).repair(cmd)
        assert try_run.call_count == 2
        assert "nowhere.h" in exc_info.value.output
        assert exc_info.value.target == "src/main.bc"


class TestDatabaseIntegration:
    def _records(self, project: Path) -> list[dict]:
        return [_cmd(project).to_dict()]

    def test_recovery_used_when_enabled(self, make_db, project: Path, fake_run):
        db = make_db(self._records(project), top_dir=str(project), solve_header_not_found=True)
        db.run()

        assert (project / "src" / "config.h").exists()
        assert len(fake_run.calls) == 1

    def test_recovery_off_by_default(self, make_db, project: Path, fake_run):
        db = make_db(self._records(project), top_dir=str(project))
        db.run()
        assert not (project / "src" / "config.h").exists()

    def test_other_failure_follows_tolerance(self, make_db, project: Path, fake_run):
        fake_run.fail_when = lambda argv: True
        fake_run.output = "error: unknown type name 'foo'"
        db = make_db(
            self._records(project),
            top_dir=str(project),
            solve_header_not_found=True,
            skip_failure=True,
        )
        summary = db.run()
        assert summary.failed == ["src/main.bc"]

    def test_exhausted_attempts_fatal_even_when_skipping(self, make_db, project: Path, fake_run):
        fake_run.fail_when = lambda argv: True
        fake_run.output = NOT_FOUND.format("nowhere.h", "nowhere.h")
        db = make_db(
            json.dumps(self._records(project)),
            top_dir=str(project),
            solve_header_not_found=True,
            skip_failure=True,
        )
        with pytest.raises(HeaderRecoveryError):
            db.run()

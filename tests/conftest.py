"""Shared pytest fixtures for z-ir-generator tests."""

import json
import subprocess
from unittest.mock import patch

import pytest

from z_ir_generator.build.database import CompilationDatabase
from z_ir_generator.build.progress import BuildProgress
from z_ir_generator.config import BuildOptions

LINUX_DIR = "/home/yuanting/linux/linux-6.2.8"

# Two records from a Linux kernel build (scripts/kconfig), CMake-style
LINUX_SHELL_RECORDS = [
    {
        "command": "gcc -Wp,-MMD,scripts/kconfig/.confdata.o.d -Wall -Wmissing-prototypes "
        "-Wstrict-prototypes -O2 -fomit-frame-pointer -std=gnu11 -Wdeclaration-after-statement "
        "-c -o scripts/kconfig/confdata.o scripts/kconfig/confdata.c",
        "directory": LINUX_DIR,
        "file": f"{LINUX_DIR}/scripts/kconfig/confdata.c",
    },
    {
        "command": "gcc -Wp,-MMD,scripts/kconfig/.util.o.d -Wall -Wmissing-prototypes "
        "-Wstrict-prototypes -O2 -fomit-frame-pointer -std=gnu11 -Wdeclaration-after-statement "
        "-c -o scripts/kconfig/util.o scripts/kconfig/util.c",
        "directory": LINUX_DIR,
        "file": f"{LINUX_DIR}/scripts/kconfig/util.c",
    },
]

# The same records as bear writes them
LINUX_VECTOR_RECORDS = [
    {
        "directory": r["directory"],
        "arguments": r["command"].split(" "),
        "file": r["file"],
    }
    for r in LINUX_SHELL_RECORDS
]


@pytest.fixture
def linux_shell_json() -> str:
    return json.dumps(LINUX_SHELL_RECORDS)


@pytest.fixture
def linux_vector_json() -> str:
    return json.dumps(LINUX_VECTOR_RECORDS)


@pytest.fixture
def make_db():
    """Build a quiet CompilationDatabase from records or raw JSON."""

    def _make(records, top_dir=None, **option_kwargs) -> CompilationDatabase:
        option_kwargs.setdefault("jobs", 1)
        db = CompilationDatabase(
            options=BuildOptions(**option_kwargs),
            top_dir=top_dir,
            progress=BuildProgress(echo=False),
        )
        db.loads(records if isinstance(records, str) else json.dumps(records))
        return db

    return _make


@pytest.fixture
def fake_run():
    """Patch subprocess.run behind the spawner; every call succeeds by default.

    Set ``fake_run.fail_when`` to a predicate over argv to make calls fail.
    Recorded argv lists are in ``fake_run.calls``.
    """

    class _FakeRun:
        def __init__(self) -> None:
            self.calls: list[list[str]] = []
            self.fail_when = lambda argv: False
            self.output = ""

        def __call__(self, argv, **kwargs):
            self.calls.append(list(argv))
            rc = 1 if self.fail_when(argv) else 0
            stdout = self.output if "stdout" in kwargs else None
            return subprocess.CompletedProcess(argv, rc, stdout=stdout)

    fake = _FakeRun()
    with patch("z_ir_generator.process.subprocess.run", side_effect=fake):
        yield fake


@pytest.fixture
def make_records(tmp_path):
    """One record per source name, compiled inside ``tmp_path``."""

    def _make(names, shell=True) -> list[dict]:
        records = []
        for name in names:
            stem = name.rsplit(".", 1)[0]
            command = f"cc -O2 -c -o {stem}.o {name}"
            record = {"directory": str(tmp_path), "file": str(tmp_path / name)}
            if shell:
                record["command"] = command
            else:
                record["arguments"] = command.split(" ")
            records.append(record)
        return records

    return _make

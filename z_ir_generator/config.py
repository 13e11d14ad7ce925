"""Build configuration — options dataclasses and environment defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

# Tool defaults (overridable via env vars, then CLI options)
DEFAULT_CLANG = os.environ.get("ZIRGEN_CLANG", "clang")
DEFAULT_OPT = os.environ.get("ZIRGEN_OPT", "opt")
DEFAULT_LLVM_LINK = os.environ.get("ZIRGEN_LLVM_LINK", "llvm-link")
DEFAULT_LLVM_DIS = os.environ.get("ZIRGEN_LLVM_DIS", "llvm-dis")


class CommandStyle(Enum):
    """Recorded compilation database format."""

    VECTOR = "vector"  # {"directory", "arguments": [...], "file"} (bear)
    SHELL = "shell"  # {"directory", "command": "...", "file"} (CMake)
    AUTO = "auto"


def default_jobs() -> int:
    """Half of the available CPUs, at least one worker."""
    env = os.environ.get("ZIRGEN_JOBS")
    if env:
        try:
            return max(1, int(env))
        except ValueError:
            logger.warning("Ignoring non-integer ZIRGEN_JOBS=%r", env)
    return max(1, (os.cpu_count() or 2) // 2)


@dataclass
class OptOptions:
    """Post-compile IR passes run by ``opt`` on each freshly built target."""

    module_summary: bool = False  # -module-summary + canonicalize-aliases,name-anon-globals
    mem2reg: bool = False
    name: str = DEFAULT_OPT

    @property
    def enabled(self) -> bool:
        return self.module_summary or self.mem2reg


@dataclass
class BuildOptions:
    style: CommandStyle = CommandStyle.AUTO
    incremental: bool = False
    skip_failure: bool = False
    solve_header_not_found: bool = False
    jobs: int = field(default_factory=default_jobs)
    opt: OptOptions = field(default_factory=OptOptions)
    # Optional rewrites applied by emit_llvm / emit_clang_ast
    switch_to_o0: bool = False
    switch_to_c99: bool = False

    @classmethod
    def from_env(cls) -> BuildOptions:
        """Build options from ZIRGEN_* environment variables."""

        def flag(key: str) -> bool:
            return os.environ.get(key, "0").lower() in ("1", "true", "yes")

        return cls(
            incremental=flag("ZIRGEN_INCREMENTAL"),
            skip_failure=flag("ZIRGEN_SKIP_FAILURE"),
            solve_header_not_found=flag("ZIRGEN_SOLVE_HEADER_NOT_FOUND"),
            opt=OptOptions(
                module_summary=flag("ZIRGEN_OPT_MODULE_SUMMARY"),
                mem2reg=flag("ZIRGEN_OPT_MEM2REG"),
            ),
        )

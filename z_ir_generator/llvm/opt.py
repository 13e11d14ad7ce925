"""LLVM ``opt`` wrapper for per-target IR passes."""

from __future__ import annotations

import logging
import shutil

from z_ir_generator.config import OptOptions
from z_ir_generator.process import SpawnResult, spawn

logger = logging.getLogger(__name__)


class Opt:
    """Run ``opt`` in place on one bitcode file.

    module_summary adds ``-module-summary`` and the
    canonicalize-aliases/name-anon-globals passes; mem2reg adds mem2reg.
    Instances are stateless, so one can be shared across worker threads.
    """

    def __init__(self, options: OptOptions) -> None:
        self.options = options

    @property
    def name(self) -> str:
        return self.options.name

    def analysis_options(self) -> list[str]:
        return ["-module-summary"] if self.options.module_summary else []

    def passes(self) -> list[str]:
        passes = []
        if self.options.module_summary:
            passes += ["canonicalize-aliases", "name-anon-globals"]
        if self.options.mem2reg:
            passes.append("mem2reg")
        return passes

    def args(self, target: str) -> list[str]:
        return [
            self.name,
            *self.analysis_options(),
            "-passes=" + ",".join(self.passes()),
            target,
            "-o",
            target,
        ]

    def needs_run(self) -> bool:
        """True when a pass is enabled and the tool is on PATH."""
        if not self.options.enabled:
            return False
        if shutil.which(self.name) is None:
            logger.debug("%s not found on PATH, skipping IR passes", self.name)
            return False
        return True

    def run(self, target: str, directory: str | None = None) -> SpawnResult:
        return spawn(self.args(target), cwd=directory)

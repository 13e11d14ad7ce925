"""Whole-program bitcode linking with ``llvm-link``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from z_ir_generator.config import DEFAULT_LLVM_LINK
from z_ir_generator.exceptions import LinkError
from z_ir_generator.process import spawn

logger = logging.getLogger(__name__)


@dataclass
class Linker:
    """
    Join per-file bitcode into one module.

    With override chaining (the default) every target except the last is
    passed as ``-override=<target>``; the last one is the base module whose
    definitions are kept.
    """

    output: str
    targets: list[str] = field(default_factory=list)
    name: str = DEFAULT_LLVM_LINK
    disable_override: bool = False

    def args(self) -> list[str]:
        targets = list(self.targets)
        if not self.disable_override:
            targets = [f"-override={t}" for t in targets[:-1]] + targets[-1:]
        return [self.name, "--internalize", *targets, "-o", self.output]

    def link(self) -> None:
        if not self.targets:
            raise LinkError("No bitcode targets to link")

        args = self.args()
        logger.info("Linking %d bitcode files into %s", len(self.targets), self.output)
        result = spawn(args)
        if not result.ok:
            raise LinkError(
                f"{self.name} failed (rc={result.returncode}) while producing {self.output}"
            )

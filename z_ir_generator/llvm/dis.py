"""``llvm-dis`` wrapper: bitcode -> textual IR."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from z_ir_generator.config import DEFAULT_LLVM_DIS
from z_ir_generator.exceptions import DisassembleError
from z_ir_generator.process import spawn

logger = logging.getLogger(__name__)


class LLVMDis:
    def __init__(self, input_path: str, output_path: str | None = None, name: str = DEFAULT_LLVM_DIS) -> None:
        self.name = name
        self.input_path = input_path
        self.output_path = output_path or str(Path(input_path).with_suffix(".ll"))

    def needs_run(self) -> bool:
        if shutil.which(self.name) is None:
            return False
        return Path(self.input_path).exists()

    def run(self) -> str:
        """Disassemble and return the output path."""
        result = spawn([self.name, self.input_path, "-o", self.output_path])
        if not result.ok:
            raise DisassembleError(
                f"{self.name} failed (rc={result.returncode}) on {self.input_path}"
            )
        logger.info("Disassembled %s -> %s", self.input_path, self.output_path)
        return self.output_path

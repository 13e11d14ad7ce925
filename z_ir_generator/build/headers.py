"""Missing-header recovery for replayed commands.

Heuristic, not a preprocessor: when a command force-includes a header by
relative path (``-include foo.h``) and the compiler cannot find it, look for
a file with the same basename anywhere under the project root and copy it
next to the source file, then retry. Bounded to ``max_attempts`` runs.
"""

from __future__ import annotations

import logging
import os
import re
import shutil

from z_ir_generator.build import flags
from z_ir_generator.exceptions import HeaderRecoveryError
from z_ir_generator.models.command import CompileCommand, ShellCommand
from z_ir_generator.process import SpawnResult

logger = logging.getLogger(__name__)

FATAL_MARKER = "fatal error:"
NOT_FOUND_SUFFIX = "' file not found"

# Example: fatal error: 'config.h' file not found
_NOT_FOUND_RE = re.compile(r"'([^']+)' file not found")

_SKIP_DIRS = {".git", ".svn", ".hg"}


class HeaderRecovery:
    """Stage missing headers into the source directory and retry the command."""

    def __init__(self, top_dir: str, max_attempts: int = 2) -> None:
        self.top_dir = top_dir
        self.max_attempts = max_attempts

    def applies(self, cmd: CompileCommand) -> bool:
        """Only string-form commands with a relative ``-include`` qualify."""
        return isinstance(cmd, ShellCommand) and bool(self.include_headers(cmd))

    @staticmethod
    def include_headers(cmd: CompileCommand) -> set[str]:
        return {
            os.path.basename(header)
            for header in flags.include_arguments(cmd.tokens())
            if not os.path.isabs(header)
        }

    @staticmethod
    def is_header_not_found(output: str) -> bool:
        return FATAL_MARKER in output and NOT_FOUND_SUFFIX in output

    @staticmethod
    def missing_headers(output: str) -> set[str]:
        return {os.path.basename(name) for name in _NOT_FOUND_RE.findall(output)}

    @staticmethod
    def _source_dir(cmd: CompileCommand) -> str:
        return os.path.dirname(os.path.join(cmd.directory, cmd.file))

    def stage(self, cmd: CompileCommand, names: set[str]) -> list[str]:
        """Copy every project file named in ``names`` next to the source file.

        Returns the destinations written. Copy failures are skipped.
        """
        if not names:
            return []

        dest_dir = self._source_dir(cmd)
        staged = []
        for dirpath, dirnames, filenames in os.walk(self.top_dir):
            dirnames[:] = [d for d in dirnames if d not in _SKIP_DIRS]
            for filename in filenames:
                if filename not in names:
                    continue
                found = os.path.join(dirpath, filename)
                dest = os.path.join(dest_dir, filename)
                if os.path.abspath(found) == os.path.abspath(dest):
                    continue
                try:
                    shutil.copyfile(found, dest)
                except OSError:
                    logger.debug("Could not stage %s -> %s", found, dest, exc_info=True)
                    continue
                staged.append(dest)
                logger.info("Staged header %s -> %s", found, dest)
        return staged

    def repair(self, cmd: CompileCommand) -> SpawnResult:
        """Run ``cmd`` with header staging.

        Returns the last run's result when it succeeded or failed for some
        other reason. Raises HeaderRecoveryError when headers are still
        missing after the last attempt.
        """
        names = self.include_headers(cmd)
        result = SpawnResult(returncode=-1)
        for attempt in range(1, self.max_attempts + 1):
            self.stage(cmd, names)
            result = cmd.try_run()
            if result.ok:
                return result
            if not self.is_header_not_found(result.output):
                return result
            names = self.missing_headers(result.output)
            logger.info(
                "Attempt %d/%d for %s: missing headers %s",
                attempt,
                self.max_attempts,
                cmd.file,
                sorted(names),
            )

        raise HeaderRecoveryError(
            cmd.target(),
            cmd.tokens(),
            result.returncode,
            result.output,
            message=f"Headers still missing for {cmd.file} after "
            f"{self.max_attempts} attempts:\n{result.output}",
        )

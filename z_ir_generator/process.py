"""Process spawning primitive shared by commands and LLVM tool wrappers."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Exit status reported when the executable itself cannot be started
SPAWN_FAILED = 127


@dataclass
class SpawnResult:
    returncode: int
    output: str = ""  # combined stdout+stderr, only when captured

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def spawn(argv: list[str], cwd: str | None = None, capture: bool = False) -> SpawnResult:
    """Run ``argv`` in ``cwd`` and wait for it.

    Without ``capture`` the child inherits stdout/stderr. With ``capture``
    stderr is folded into stdout and returned as text. No timeout is applied.
    """
    logger.debug("spawn: %s (cwd=%s)", " ".join(argv), cwd)
    try:
        if capture:
            result = subprocess.run(
                argv,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
            return SpawnResult(returncode=result.returncode, output=result.stdout or "")
        result = subprocess.run(argv, cwd=cwd)
        return SpawnResult(returncode=result.returncode)
    except (OSError, ValueError) as e:
        # Missing executable or working directory, or an argv subprocess rejects
        # (embedded NUL, unencodable characters)
        logger.warning("Could not start %s: %s", argv[0] if argv else "<empty>", e)
        return SpawnResult(returncode=SPAWN_FAILED, output=str(e))

"""Custom exceptions for z-ir-generator."""

from __future__ import annotations


class IRGeneratorError(Exception):
    """Base exception for all IR generator errors."""


class MalformedCommandError(IRGeneratorError):
    """Raised when a recorded command is structurally broken (e.g. `-o` with no filename)."""


class DatabaseLoadError(IRGeneratorError):
    """Raised when a compilation database cannot be decoded in any supported style."""


class CompileError(IRGeneratorError):
    """Raised when replaying a command fails and failures are not tolerated."""

    def __init__(
        self,
        target: str,
        tokens: list[str],
        returncode: int | None = None,
        output: str = "",
        message: str | None = None,
    ):
        self.target = target
        self.tokens = tokens
        self.returncode = returncode
        self.output = output
        if message is None:
            message = f"Failed to build {target}"
            if returncode is not None:
                message += f" (exit status {returncode})"
        super().__init__(message)


class OptError(CompileError):
    """Raised when the post-compile opt pass fails on a freshly built target."""


class HeaderRecoveryError(CompileError):
    """Raised when missing headers are still not found after the last attempt."""


class LinkError(IRGeneratorError):
    """Raised when llvm-link fails or there is nothing to link."""


class DisassembleError(IRGeneratorError):
    """Raised when llvm-dis fails."""

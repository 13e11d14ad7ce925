"""Recorded compiler invocations in their two compilation database shapes."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from z_ir_generator.build import flags
from z_ir_generator.process import SpawnResult, spawn


class CompileCommand(ABC):
    """
    One compiler invocation from a compilation database.

    Identity is (file, directory). Subclasses only provide token access;
    every flag rewrite is shared and goes through ``tokens()`` /
    ``_set_tokens()``.
    """

    directory: str
    file: str

    @abstractmethod
    def tokens(self) -> list[str]:
        """Whitespace-delimited invocation, compiler first."""
        ...

    @abstractmethod
    def _set_tokens(self, tokens: list[str]) -> None: ...

    @abstractmethod
    def argv(self) -> list[str]:
        """Argument vector handed to the process spawner."""
        ...

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """The record in its compilation database JSON shape."""
        ...

    def __str__(self) -> str:
        return " ".join(self.tokens())

    def target(self) -> str:
        return flags.find_target(self.tokens(), self.file)

    def target_path(self) -> str:
        """Target resolved against the command's working directory."""
        return os.path.join(self.directory, self.target())

    def replace_compiler(self, compiler: str) -> None:
        self._set_tokens(flags.replace_compiler(self.tokens(), compiler))

    def retarget_extension(self, ext: str) -> None:
        self._set_tokens(flags.retarget_extension(self.tokens(), self.file, ext))

    def insert_flags(self, *new_flags: str) -> None:
        self._set_tokens(flags.insert_flags(self.tokens(), *new_flags))

    def drop_flags(self, *names: str) -> None:
        self._set_tokens(flags.drop_flags(self.tokens(), *names))

    def normalize_opt_level(self) -> None:
        self._set_tokens(flags.normalize_opt_level(self.tokens()))

    def normalize_standard(self) -> None:
        self._set_tokens(flags.normalize_standard(self.tokens()))

    def run(self) -> bool:
        """Replay in ``directory`` with inherited stdio."""
        return spawn(self.argv(), cwd=self.directory).ok

    def try_run(self) -> SpawnResult:
        """Replay capturing combined output (used for diagnostic parsing)."""
        return spawn(self.argv(), cwd=self.directory, capture=True)


@dataclass
class VectorCommand(CompileCommand):
    """``{"directory", "arguments": [...], "file"}`` record, as written by bear."""

    directory: str
    arguments: list[str]
    file: str

    def tokens(self) -> list[str]:
        return self.arguments

    def _set_tokens(self, tokens: list[str]) -> None:
        self.arguments = tokens

    def argv(self) -> list[str]:
        return list(self.arguments)

    def to_dict(self) -> dict[str, Any]:
        return {"directory": self.directory, "arguments": self.arguments, "file": self.file}

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> VectorCommand:
        arguments = record.get("arguments")
        if not isinstance(arguments, list):
            arguments = []
        return cls(
            directory=str(record.get("directory", "")),
            arguments=[str(a) for a in arguments],
            file=str(record.get("file", "")),
        )


@dataclass
class ShellCommand(CompileCommand):
    """``{"directory", "command": "...", "file"}`` record, as written by CMake.

    The command string is tokenized on single spaces whenever a flag
    operation needs it; rewrites are joined back with single spaces.
    """

    directory: str
    command: str
    file: str

    def tokens(self) -> list[str]:
        return [tok for tok in self.command.split(" ") if tok.strip()]

    def _set_tokens(self, tokens: list[str]) -> None:
        self.command = " ".join(tokens)

    def argv(self) -> list[str]:
        return ["sh", "-c", self.command]

    def __str__(self) -> str:
        return self.command

    def to_dict(self) -> dict[str, Any]:
        return {"directory": self.directory, "command": self.command, "file": self.file}

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> ShellCommand:
        command = record.get("command")
        return cls(
            directory=str(record.get("directory", "")),
            command=command if isinstance(command, str) else "",
            file=str(record.get("file", "")),
        )

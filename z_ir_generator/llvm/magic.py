"""File type sniffing through the ``file`` utility."""

from __future__ import annotations

from enum import Enum

from z_ir_generator.process import spawn


class FileType(Enum):
    BITCODE = "bitcode"
    UNKNOWN = "unknown"


def classify(description: str) -> FileType:
    if "LLVM IR bitcode" in description:
        return FileType.BITCODE
    return FileType.UNKNOWN


def file_type(path: str) -> FileType:
    result = spawn(["file", path], capture=True)
    return classify(result.output)


def is_bitcode(path: str) -> bool:
    return file_type(path) is FileType.BITCODE

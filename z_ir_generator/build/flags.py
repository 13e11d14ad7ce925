"""Flag rewriting over compiler argument lists.

Pure functions: each takes a token list and returns a new one, leaving the
input untouched. ``tokens[0]`` is always the compiler executable.
"""

from __future__ import annotations

import os

from z_ir_generator.exceptions import MalformedCommandError

OUTPUT_FLAG = "-o"
COMPILE_ONLY_FLAG = "-c"

_OPT_LEVELS = {"-O1", "-O2", "-O3", "-Os", "-Oz", "-Ofast"}
_STD_REWRITES = {"-std=gnu99": "-std=c99"}


def _output_index(tokens: list[str]) -> int | None:
    """Index of the filename following the first ``-o``, or None."""
    for i, tok in enumerate(tokens):
        if tok != OUTPUT_FLAG:
            continue
        if i + 1 >= len(tokens):
            raise MalformedCommandError("There should be a valid filename behind `-o` flag")
        return i + 1
    return None


def strip_ext(path: str) -> str:
    return os.path.splitext(path)[0]


def find_target(tokens: list[str], source_file: str) -> str:
    """Output of the command: the ``-o`` argument, else ``<source stem>.o``."""
    idx = _output_index(tokens)
    if idx is not None:
        return tokens[idx]
    return strip_ext(source_file) + ".o"


def replace_compiler(tokens: list[str], compiler: str) -> list[str]:
    return [compiler] + tokens[1:]


def retarget_extension(tokens: list[str], source_file: str, ext: str) -> list[str]:
    """Swap the output extension for ``ext``, adding ``-o`` when there is none."""
    result = list(tokens)
    idx = _output_index(result)
    if idx is not None:
        result[idx] = strip_ext(result[idx]) + ext
    else:
        result += [OUTPUT_FLAG, strip_ext(source_file) + ext]
    return result


def insert_flags(tokens: list[str], *flags: str) -> list[str]:
    """Splice ``flags`` right before the first ``-c`` (or at the end)."""
    try:
        index = tokens.index(COMPILE_ONLY_FLAG)
    except ValueError:
        index = len(tokens)
    return tokens[:index] + list(flags) + tokens[index:]


def drop_flags(tokens: list[str], *flags: str) -> list[str]:
    dropped = set(flags)
    return [tok for tok in tokens if tok not in dropped]


def normalize_opt_level(tokens: list[str]) -> list[str]:
    return ["-O0" if tok in _OPT_LEVELS else tok for tok in tokens]


def normalize_standard(tokens: list[str]) -> list[str]:
    return [_STD_REWRITES.get(tok, tok) for tok in tokens]


def include_arguments(tokens: list[str]) -> list[str]:
    """Arguments of every ``-include <header>`` pair, in order."""
    return [
        tokens[i + 1]
        for i, tok in enumerate(tokens)
        if tok == "-include" and i + 1 < len(tokens)
    ]

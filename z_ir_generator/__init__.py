"""z-ir-generator: replay a compilation database as LLVM IR and link it."""

__version__ = "0.1.0"

from z_ir_generator.build.database import (
    EMIT_AST_FLAGS,
    EMIT_LLVM_FLAGS,
    CompilationDatabase,
)
from z_ir_generator.build.headers import HeaderRecovery
from z_ir_generator.build.progress import BuildProgress, BuildSummary
from z_ir_generator.config import BuildOptions, CommandStyle, OptOptions
from z_ir_generator.llvm.linker import Linker
from z_ir_generator.models.command import CompileCommand, ShellCommand, VectorCommand

__all__ = [
    "BuildOptions",
    "BuildProgress",
    "BuildSummary",
    "CommandStyle",
    "CompilationDatabase",
    "CompileCommand",
    "EMIT_AST_FLAGS",
    "EMIT_LLVM_FLAGS",
    "HeaderRecovery",
    "Linker",
    "OptOptions",
    "ShellCommand",
    "VectorCommand",
]

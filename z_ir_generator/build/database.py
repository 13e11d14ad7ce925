"""Compilation database — load, rewrite to emit IR, replay, link.

Pipeline:
1. load()/loads(): decode vector- or string-form records (auto-detected),
   drop assembly sources, dedup by target
2. emit_llvm()/emit_clang_ast(): retarget every command to .bc/.ast
3. run()/run_parallel()/run_only(): replay commands with incremental skip,
   failure tolerance, optional opt passes and header recovery
4. llvm_link(): join the produced bitcode into one module
"""

from __future__ import annotations

import json
import logging
import os
import queue
import threading
from pathlib import Path

from z_ir_generator.build.headers import HeaderRecovery
from z_ir_generator.build.progress import BuildProgress, BuildSummary, FailureSet
from z_ir_generator.config import DEFAULT_LLVM_LINK, BuildOptions, CommandStyle
from z_ir_generator.exceptions import CompileError, DatabaseLoadError, OptError
from z_ir_generator.llvm.linker import Linker
from z_ir_generator.llvm.magic import is_bitcode
from z_ir_generator.llvm.opt import Opt
from z_ir_generator.models.command import CompileCommand, ShellCommand, VectorCommand
from z_ir_generator.process import SpawnResult

logger = logging.getLogger(__name__)

# Inserted before `-c`. Warnings that clang turns into errors in IR mode are
# silenced; optnone is kept off so later passes can still run on -O0 code.
EMIT_LLVM_FLAGS = (
    "-emit-llvm",
    "-g",
    "-Wno-shift-count-negative",
    "-Wno-division-by-zero",
    "-fno-inline-functions",
    "-Wno-ignored-optimization-argument",
    "-Xclang",
    "-disable-O0-optnone",
    "-flto",
    "-Xclang",
    "-disable-llvm-passes",
    "-Wno-everything",
)

EMIT_AST_FLAGS = (
    "-emit-ast",
    "-g",
    "-Wno-shift-count-negative",
    "-Wno-division-by-zero",
    "-fno-inline-functions",
    "-Wno-ignored-optimization-argument",
    "-Xclang",
    "-disable-O0-optnone",
    "-Wno-everything",
)

_ASM_SUFFIXES = (".s", ".S")

_COMMAND_TYPES: dict[CommandStyle, type[VectorCommand] | type[ShellCommand]] = {
    CommandStyle.VECTOR: VectorCommand,
    CommandStyle.SHELL: ShellCommand,
}


def _decode(records: list, style: CommandStyle) -> list[CompileCommand] | None:
    """Decode records in one style; None if any record has no tokens."""
    command_type = _COMMAND_TYPES[style]
    commands: list[CompileCommand] = []
    for record in records:
        if not isinstance(record, dict):
            raise DatabaseLoadError(f"Compilation database entry is not an object: {record!r}")
        cmd = command_type.from_dict(record)
        if not cmd.tokens():
            return None
        commands.append(cmd)
    return commands


class CompilationDatabase:
    """Ordered recorded commands plus the options for replaying them."""

    def __init__(
        self,
        options: BuildOptions | None = None,
        top_dir: str | None = None,
        progress: BuildProgress | None = None,
    ) -> None:
        self.options = options or BuildOptions()
        self.top_dir = top_dir or os.getcwd()
        self.progress = progress or BuildProgress()
        self.commands: list[CompileCommand] = []
        self.failures = FailureSet()

    # ── Loading / saving ──

    def load(self, path: str) -> None:
        self.loads(Path(path).read_text())

    def loads(self, raw: str) -> None:
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DatabaseLoadError(f"Invalid compilation database JSON: {e}") from e
        if not isinstance(records, list):
            raise DatabaseLoadError("Compilation database must be a JSON array")

        style = self.options.style
        if style is CommandStyle.AUTO:
            for candidate in (CommandStyle.VECTOR, CommandStyle.SHELL):
                commands = _decode(records, candidate)
                if commands:
                    self.options.style = candidate
                    break
            else:
                raise DatabaseLoadError(
                    "Compilation database matches neither the `arguments` nor the `command` style"
                )
        else:
            commands = _decode(records, style)
            if commands is None:
                raise DatabaseLoadError(f"Empty command found in {style.value}-style database")

        self.commands = self._filter(commands)
        logger.info(
            "Loaded %d commands (%s style, %d records)",
            len(self.commands),
            self.options.style.value,
            len(records),
        )

    @staticmethod
    def _filter(commands: list[CompileCommand]) -> list[CompileCommand]:
        """Drop assembly sources, then keep the first command per target."""
        seen: set[str] = set()
        kept = []
        for cmd in commands:
            if cmd.file.endswith(_ASM_SUFFIXES):
                logger.debug("Skipping assembly source %s", cmd.file)
                continue
            target = cmd.target()
            if target in seen:
                logger.debug("Skipping duplicate target %s", target)
                continue
            seen.add(target)
            kept.append(cmd)
        return kept

    def dumps(self) -> str:
        return json.dumps([c.to_dict() for c in self.commands], indent=4)

    def rewrite(self, path: str) -> None:
        Path(path).write_text(self.dumps() + "\n")
        logger.info("Wrote %d commands to %s", len(self.commands), path)

    # ── Transforms ──

    def _emit(self, compiler: str, ext: str, emit_flags: tuple[str, ...]) -> None:
        for cmd in self.commands:
            cmd.replace_compiler(compiler)
            cmd.retarget_extension(ext)
            if self.options.switch_to_o0:
                cmd.normalize_opt_level()
            if self.options.switch_to_c99:
                cmd.normalize_standard()
            cmd.insert_flags(*emit_flags)

    def emit_llvm(self, compiler: str) -> None:
        self._emit(compiler, ".bc", EMIT_LLVM_FLAGS)

    def emit_clang_ast(self, compiler: str) -> None:
        self._emit(compiler, ".ast", EMIT_AST_FLAGS)

    # ── Replay ──

    def needs_replay(self, cmd: CompileCommand) -> bool:
        """False only for incremental builds whose target exists and is non-empty."""
        if not self.options.incremental:
            return True
        try:
            return os.path.getsize(cmd.target_path()) == 0
        except OSError:
            return True

    def _execute(self, cmd: CompileCommand) -> SpawnResult:
        """Run ``cmd``; output is only captured on the header recovery path."""
        if self.options.solve_header_not_found:
            recovery = HeaderRecovery(self.top_dir)
            if recovery.applies(cmd):
                result = recovery.repair(cmd)
                if not result.ok:
                    logger.warning("Compiler output for %s:\n%s", cmd.file, result.output)
                return result
        return SpawnResult(returncode=0 if cmd.run() else 1)

    def _fail(self, index: int, error: CompileError) -> None:
        if not self.options.skip_failure:
            raise error
        self.failures.add(error.target)
        self.progress.emit("failed", index, len(self.commands), error.target)

    def _replay(self, index: int, opt: Opt) -> None:
        """Replay one command. Raises CompileError unless failures are skipped."""
        cmd = self.commands[index]
        total = len(self.commands)
        target = cmd.target()

        if not self.needs_replay(cmd):
            self.progress.emit("built", index, total, target)
            return

        self.progress.emit("building", index, total, target)
        result = self._execute(cmd)
        if not result.ok:
            self._fail(index, CompileError(target, cmd.tokens(), output=result.output))
            return
        self.progress.emit("built", index, total, target)

        if not opt.needs_run():
            return
        opt_result = opt.run(target, cmd.directory)
        if not opt_result.ok:
            self._fail(
                index,
                OptError(
                    target,
                    opt.args(target),
                    opt_result.returncode,
                    message=f"{opt.name} failed on {target} (rc={opt_result.returncode})",
                ),
            )
            return
        self.progress.emit("opt", index, total, target)

    def _finish(self) -> BuildSummary:
        summary = BuildSummary(total=len(self.commands), failed=self.failures.snapshot())
        if self.options.skip_failure:
            self.progress.summarize(summary)
        return summary

    def run(self) -> BuildSummary:
        """Replay every command in order."""
        self.failures = FailureSet()
        opt = Opt(self.options.opt)
        for index in range(len(self.commands)):
            self._replay(index, opt)
        return self._finish()

    def run_only(self, suffix: str) -> BuildSummary:
        """Replay only commands whose source file ends with ``suffix``.

        A debugging aid: the returned summary covers the selected commands
        only and nothing is printed for it.
        """
        self.failures = FailureSet()
        opt = Opt(self.options.opt)
        selected = 0
        for index, cmd in enumerate(self.commands):
            if cmd.file.endswith(suffix):
                selected += 1
                self.progress.note(str(cmd))
                self._replay(index, opt)
        return BuildSummary(total=selected, failed=self.failures.snapshot())

    def run_parallel(self) -> BuildSummary:
        """Replay commands on ``options.jobs`` worker threads.

        Commands that need no replay are marked built by the producer. On a
        fatal failure no new work is dispatched, in-flight commands finish,
        and the first error is raised once every worker has exited.
        """
        self.failures = FailureSet()
        opt = Opt(self.options.opt)
        total = len(self.commands)
        jobs = max(1, self.options.jobs)

        tasks: queue.Queue[int | None] = queue.Queue(maxsize=jobs)
        abort = threading.Event()
        errors: list[Exception] = []
        errors_lock = threading.Lock()

        def worker() -> None:
            while True:
                index = tasks.get()
                try:
                    if index is None:
                        return
                    if abort.is_set():
                        continue
                    self._replay(index, opt)
                except Exception as e:
                    # Workers outlive any error so the producer never blocks on the queue
                    with errors_lock:
                        errors.append(e)
                    abort.set()
                finally:
                    tasks.task_done()

        workers = [
            threading.Thread(target=worker, name=f"z-irgen-worker-{i}", daemon=True)
            for i in range(jobs)
        ]
        for t in workers:
            t.start()

        try:
            for index, cmd in enumerate(self.commands):
                if abort.is_set():
                    break
                if not self.needs_replay(cmd):
                    self.progress.emit("built", index, total, cmd.target())
                    continue
                tasks.put(index)
        finally:
            for _ in workers:
                tasks.put(None)
            for t in workers:
                t.join()

        if errors:
            raise errors[0]
        return self._finish()

    # ── Linking ──

    def existing_targets(self, bitcode_only: bool = False) -> list[str]:
        """Targets present on disk, in database order."""
        targets = []
        for cmd in self.commands:
            path = cmd.target_path()
            if not os.path.exists(path):
                continue
            if bitcode_only and not is_bitcode(path):
                logger.debug("Skipping non-bitcode target %s", path)
                continue
            targets.append(path)
        return targets

    def llvm_link(
        self,
        output: str,
        disable_override: bool = False,
        bitcode_only: bool = False,
        name: str = DEFAULT_LLVM_LINK,
    ) -> None:
        linker = Linker(
            output=output,
            targets=self.existing_targets(bitcode_only=bitcode_only),
            name=name,
            disable_override=disable_override,
        )
        linker.link()

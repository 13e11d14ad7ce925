"""CLI entry point: z-irgen.

Subcommands:
    z-irgen build compile_commands.json -o program.bc   # replay as IR + link
    z-irgen rewrite compile_commands.json out.json      # save transformed database
    z-irgen dump compile_commands.json                  # print transformed database
    z-irgen link -o program.bc a.bc b.bc                # override-chain link
    z-irgen dis program.bc                              # bitcode -> .ll
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from z_ir_generator.build.database import CompilationDatabase
from z_ir_generator.config import (
    DEFAULT_CLANG,
    DEFAULT_LLVM_DIS,
    DEFAULT_LLVM_LINK,
    DEFAULT_OPT,
    BuildOptions,
    CommandStyle,
    OptOptions,
)
from z_ir_generator.exceptions import CompileError, IRGeneratorError
from z_ir_generator.llvm.dis import LLVMDis
from z_ir_generator.llvm.linker import Linker
from z_ir_generator.log import setup_logging

_STYLE_CHOICES = [s.value for s in CommandStyle]


def _abort(error: IRGeneratorError) -> None:
    """Report an engine error and exit non-zero."""
    click.secho(f"Error: {error}", fg="red", err=True)
    if isinstance(error, CompileError):
        click.secho("Failed command:", fg="red", err=True)
        for token in error.tokens:
            click.echo(token, err=True)
    sys.exit(1)


def _load(
    ccjson: str,
    options: BuildOptions,
    clang: str,
    ast: bool,
    top_dir: str | None = None,
) -> CompilationDatabase:
    db = CompilationDatabase(
        options=options,
        top_dir=top_dir or str(Path(ccjson).resolve().parent),
    )
    db.load(ccjson)
    if ast:
        db.emit_clang_ast(clang)
    else:
        db.emit_llvm(clang)
    return db


def transform_options(func):
    """Options shared by every command that rewrites a database."""
    func = click.option("--c99", "switch_to_c99", is_flag=True, help="Rewrite -std=gnu99 to -std=c99")(func)
    func = click.option("--o0", "switch_to_o0", is_flag=True, help="Rewrite -O1..-Ofast to -O0")(func)
    func = click.option("--ast", is_flag=True, help="Emit Clang ASTs instead of bitcode")(func)
    func = click.option("--clang", default=DEFAULT_CLANG, show_default=True, help="Compiler to use")(func)
    func = click.option(
        "--style",
        type=click.Choice(_STYLE_CHOICES),
        default=CommandStyle.AUTO.value,
        show_default=True,
        help="Database format: vector (arguments), shell (command) or auto",
    )(func)
    return func


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """Z-IR-Generator: whole-program LLVM IR from a compilation database."""
    setup_logging(verbose)


@main.command("build")
@click.argument("ccjson", type=click.Path(exists=True, dir_okay=False))
@transform_options
@click.option("-o", "--output", default="whole-program.bc", show_default=True, help="Linked module")
@click.option("-j", "--jobs", type=int, default=None, help="Parallel workers (default: half the CPUs)")
@click.option("--incremental", is_flag=True, help="Skip commands whose target already exists")
@click.option("--skip-failure", is_flag=True, help="Record failed commands and keep going")
@click.option("--solve-header-not-found", is_flag=True, help="Stage missing -include headers")
@click.option("--top-dir", type=click.Path(file_okay=False), default=None, help="Header search root")
@click.option("--opt-module-summary", is_flag=True, help="Run opt -module-summary on each target")
@click.option("--opt-mem2reg", is_flag=True, help="Run opt mem2reg on each target")
@click.option("--opt", "opt_name", default=DEFAULT_OPT, show_default=True, help="opt executable")
@click.option("--only", default=None, help="Only replay sources ending with this suffix")
@click.option("--rewrite", "rewrite_path", default=None, help="Also save the transformed database")
@click.option("--no-link", is_flag=True, help="Stop after replaying commands")
@click.option("--disable-override", is_flag=True, help="Link without -override= chaining")
@click.option("--bitcode-only", is_flag=True, help="Link only targets `file` reports as bitcode")
@click.option("--llvm-link", "llvm_link", default=DEFAULT_LLVM_LINK, show_default=True)
@click.option("--disassemble", is_flag=True, help="Also write the linked module as .ll")
def build(
    ccjson: str,
    style: str,
    clang: str,
    ast: bool,
    switch_to_o0: bool,
    switch_to_c99: bool,
    output: str,
    jobs: int | None,
    incremental: bool,
    skip_failure: bool,
    solve_header_not_found: bool,
    top_dir: str | None,
    opt_module_summary: bool,
    opt_mem2reg: bool,
    opt_name: str,
    only: str | None,
    rewrite_path: str | None,
    no_link: bool,
    disable_override: bool,
    bitcode_only: bool,
    llvm_link: str,
    disassemble: bool,
) -> None:
    """Replay CCJSON emitting LLVM IR, then link the result."""
    # Flags only switch behaviour on; ZIRGEN_* env vars supply the defaults
    options = BuildOptions.from_env()
    options.style = CommandStyle(style)
    options.incremental = incremental or options.incremental
    options.skip_failure = skip_failure or options.skip_failure
    options.solve_header_not_found = solve_header_not_found or options.solve_header_not_found
    if jobs is not None:
        options.jobs = jobs
    options.opt = OptOptions(
        module_summary=opt_module_summary or options.opt.module_summary,
        mem2reg=opt_mem2reg or options.opt.mem2reg,
        name=opt_name,
    )
    options.switch_to_o0 = switch_to_o0
    options.switch_to_c99 = switch_to_c99

    try:
        db = _load(ccjson, options, clang, ast, top_dir)
        if rewrite_path:
            db.rewrite(rewrite_path)

        if only:
            db.run_only(only)
        elif options.jobs > 1:
            db.run_parallel()
        else:
            db.run()

        if ast or no_link:
            return

        db.llvm_link(
            output,
            disable_override=disable_override,
            bitcode_only=bitcode_only,
            name=llvm_link,
        )
        click.echo(f"Linked {output}")

        if disassemble:
            dis = LLVMDis(output, name=DEFAULT_LLVM_DIS)
            if dis.needs_run():
                click.echo(f"Disassembled {dis.run()}")
            else:
                click.echo(f"{dis.name} not available, skipping disassembly", err=True)
    except IRGeneratorError as e:
        _abort(e)


@main.command("rewrite")
@click.argument("ccjson", type=click.Path(exists=True, dir_okay=False))
@click.argument("output")
@transform_options
def rewrite(
    ccjson: str,
    output: str,
    style: str,
    clang: str,
    ast: bool,
    switch_to_o0: bool,
    switch_to_c99: bool,
) -> None:
    """Write the IR-emitting version of CCJSON to OUTPUT."""
    options = BuildOptions(
        style=CommandStyle(style),
        switch_to_o0=switch_to_o0,
        switch_to_c99=switch_to_c99,
    )
    try:
        db = _load(ccjson, options, clang, ast)
        db.rewrite(output)
    except IRGeneratorError as e:
        _abort(e)
    click.echo(f"Rewrote {len(db.commands)} commands to {output}")


@main.command("dump")
@click.argument("ccjson", type=click.Path(exists=True, dir_okay=False))
@transform_options
def dump(
    ccjson: str,
    style: str,
    clang: str,
    ast: bool,
    switch_to_o0: bool,
    switch_to_c99: bool,
) -> None:
    """Print the IR-emitting version of CCJSON."""
    options = BuildOptions(
        style=CommandStyle(style),
        switch_to_o0=switch_to_o0,
        switch_to_c99=switch_to_c99,
    )
    try:
        db = _load(ccjson, options, clang, ast)
    except IRGeneratorError as e:
        _abort(e)
    click.echo(db.dumps())


@main.command("link")
@click.argument("inputs", nargs=-1, required=True)
@click.option("-o", "--output", required=True, help="Linked module")
@click.option("--disable-override", is_flag=True, help="Link without -override= chaining")
@click.option("--llvm-link", "llvm_link", default=DEFAULT_LLVM_LINK, show_default=True)
def link(inputs: tuple[str, ...], output: str, disable_override: bool, llvm_link: str) -> None:
    """Link INPUTS into one module; the last input is the base module."""
    linker = Linker(
        output=output,
        targets=list(inputs),
        name=llvm_link,
        disable_override=disable_override,
    )
    try:
        linker.link()
    except IRGeneratorError as e:
        _abort(e)
    click.echo(f"Linked {output}")


@main.command("dis")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", default=None, help="Output .ll (default: next to input)")
@click.option("--llvm-dis", "llvm_dis", default=DEFAULT_LLVM_DIS, show_default=True)
def dis(input_path: str, output: str | None, llvm_dis: str) -> None:
    """Disassemble a bitcode file."""
    disassembler = LLVMDis(input_path, output, name=llvm_dis)
    try:
        click.echo(f"Disassembled {disassembler.run()}")
    except IRGeneratorError as e:
        _abort(e)


if __name__ == "__main__":
    main()

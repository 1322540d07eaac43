## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# awwforth — A small interactive Forth with devices, redefinable words and suspendable lines.
#

import sys
import time
import logging
import threading
from dataclasses import dataclass

import click

from .errors import ForthError, ForthParseError, DictionaryError, CompileError
from .runtime import Engine, EngineConfig, LineResult
from .formatting import write_without_ansi, show_stack, format_dictionary, format_memory_map, format_devices


@dataclass(frozen=True)
class RuntimeConfig:
    verbose: int
    ignore: bool
    stats: bool
    plain: bool


class ForthRunner:
    def __init__(self, config: RuntimeConfig):
        self.verbose = config.verbose
        self.ignore = config.ignore
        self.stats_enabled = config.stats
        self.plain = config.plain

        if self.plain:
            writer = write_without_ansi(sys.stdout.write)
            sys.stdout.write, sys.stderr.write = writer, writer

        if self.verbose:
            logging.basicConfig(stream=sys.stderr, format="\033[90m%(levelname)s %(name)s:\033[0m %(message)s")
        level = 'DEBUG' if self.verbose > 1 else ('INFO' if self.verbose else 'WARNING')
        self.engine = Engine(EngineConfig(log_level=level))

        self.start = time.time()
        self.failure = False
        self.executed_lines = 0
        self._finished: LineResult | None = None
        self._done = threading.Event()
        self.engine.on_line(self._on_line)

    def _on_line(self, result: LineResult) -> None:
        self._finished = result
        self._done.set()

    def _maybe_fatal_error(self, message: str, detail: str, exc_type: str = None, is_repl: bool = False) -> None:
        header = detail if not exc_type else f"{detail} (Exception: \033[33m{exc_type}\033[0m)"
        print(f'\033[30;43m {message} \033[0m {header}', file=sys.stderr)
        if not is_repl and not self.ignore: sys.exit(1)

    def _handle_exception(self, exc: Exception, filename: str, lineno: int, is_repl: bool = False) -> None:
        where = f"line {lineno} of `\033[97m{filename}\033[0m`"
        match exc:
            case ForthParseError():
                column = f", column {exc.column}" if exc.column else ""
                self._maybe_fatal_error("SYNTAX ERROR.", f"Reading {where}{column} caused a problem!", type(exc).__name__, is_repl)
            case DictionaryError():
                self._maybe_fatal_error("DICTIONARY ERROR.", f"Word `\033[1;97m{exc.token}\033[0m` on {where} could not be resolved.", type(exc).__name__, is_repl)
            case CompileError():
                self._maybe_fatal_error("COMPILE ERROR.", f"Definition on {where} is malformed.", type(exc).__name__, is_repl)
            case ForthError():
                name = getattr(exc.word, 'name', None) or exc.token or '?'
                self._maybe_fatal_error("RUNTIME ERROR.", f"Word \033[1;97m`{name}`\033[0m on {where} raised an error.", type(exc).__name__, is_repl)
            case _:
                self._maybe_fatal_error("RUNTIME ERROR.", f"Python raised an error on {where}.", type(exc).__name__, is_repl)

    def read(self, line: str) -> LineResult:
        """Read one line and block until it finished, feeding keypresses to a waiting `key`."""
        self._done.clear()
        result = self.engine.read_line(line)
        if not result.paused:
            return result
        while not self._done.wait(0.05):
            if self.engine.context.waiting_for_key is not None:
                self.engine.send_key(ord(click.getchar(echo=False)[0]))
        return self._finished

    def execute_lines(self, lines, filename: str, is_repl: bool = False) -> None:
        for lineno, line in enumerate(lines, start=1):
            result = self.read(line)
            self.executed_lines += 1
            if result.output:
                print(result.output)
            if result.error is not None:
                self.failure = True
                self._handle_exception(result.error, filename, lineno, is_repl=is_repl)

    def repl(self) -> None:
        if sys.platform != "win32": import readline

        print('awwforth - Interactive Forth REPL; %words %memory %devices %stack inspect, Ctrl+C exits.')
        lineno = 0
        while True:
            try:
                prompt = "\033[36m... \033[0m" if self.engine.current_definition else "\033[36m<<< \033[0m"
                line = input(prompt)
                if line.strip() in ('quit', 'exit', 'bye'): break
                if self._inspect(line.strip()): continue
                lineno += 1
                result = self.read(line)
                self.executed_lines += 1
                print(result.output)
                if result.error is not None:
                    self._handle_exception(result.error, '<REPL>', lineno, is_repl=True)
                elif self.verbose:
                    show_stack(result.stack, width=None)

            except (KeyboardInterrupt, EOFError):
                print(""); break

    def _inspect(self, command: str) -> bool:
        match command:
            case '%words': print(format_dictionary(self.engine.get_dictionary()))
            case '%memory': print(format_memory_map(self.engine.get_memory()))
            case '%devices': print(format_devices(self.engine.devices.describe()))
            case '%stack': show_stack(self.engine.get_stack(), width=None)
            case _: return False
        return True

    def finalize(self) -> int:
        if self.stats_enabled and self.executed_lines > 0:
            elapsed_time = time.time() - self.start
            stats = self.engine.stats
            print(f"\n\033[97m\033[48;5;30m STATISTICS. \033[0m")
            print(f"lines\t\033[97m{stats['lines']:,}\033[0m")
            print(f"step\t\033[97m{stats['steps']:,}\033[0m")
            print(f"time\t\033[97m{elapsed_time:.3f}s\033[0m")
        return 1 if self.failure and not self.ignore else 0


@click.group(invoke_without_command=True)
@click.option('--verbose', '-v', default=0, count=True, help='Log interpreter activity to stderr; repeat for debug detail.')
@click.option('--ignore', '-i', is_flag=True, help='Ignore errors and continue executing.')
@click.option('--stats', is_flag=True, help='Display execution statistics (e.g., number of steps).')
@click.option('--plain', '-p', is_flag=True, help='Strip ANSI color codes and redirect stderr to stdout.')
@click.option('--command', '-c', 'commands', multiple=True, help='Execute one line of code; may be repeated.')
@click.pass_context
def cli(ctx: click.Context, verbose: int, ignore: bool, stats: bool, plain: bool, commands: tuple[str, ...]) -> None:
    ctx.ensure_object(dict)
    ctx.obj['config'] = config = RuntimeConfig(verbose=verbose, ignore=ignore, stats=stats, plain=plain)

    if ctx.invoked_subcommand is not None:
        return

    runner = ForthRunner(config)
    if commands:
        runner.execute_lines(commands, '<INPUT>')
    elif not sys.stdin.isatty():
        runner.execute_lines(sys.stdin.read().splitlines(), '<STDIN>')
    else:
        runner.repl()
    ctx.exit(runner.finalize())


@cli.command('run-file')
@click.argument('script', type=click.File('r', encoding='utf-8'))
@click.pass_context
def run_file(ctx: click.Context, script) -> None:
    runner = ForthRunner(ctx.obj['config'])
    runner.execute_lines(script.read().splitlines(), script.name or '<STDIN>')
    ctx.exit(runner.finalize())


@cli.command('run-repl')
@click.pass_context
def run_repl(ctx: click.Context) -> None:
    runner = ForthRunner(ctx.obj['config'])
    runner.repl()
    ctx.exit(runner.finalize())


def main(argv: list[str] | None = None) -> None:
    cli.main(args=list(sys.argv[1:] if argv is None else argv), prog_name='awwforth')


if __name__ == "__main__":
    main()

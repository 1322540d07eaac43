## awwforth — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import math
import logging
import itertools
import threading
from typing import Any, Callable
from dataclasses import dataclass, field

from .types import Token, Stack, Word, NativeProcedure, ControlCode, CompiledDefinition
from .errors import EmptyName, InvalidAction, EngineSuspended
from .lexer import Lexer
from .memory import Memory, MEMORY_SIZE, HEAP_START
from .dictionary import Dictionary
from .compiler import compile_actions
from .interpreter import ExecutionContext, Executor
from .devices import Device, DeviceManager, DEVICE_BASE
from .builtins import load_builtins, stdlib_lines
from .loader import make_native


def default_scheduler(delay: float, callback: Callable[[], Any]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


@dataclass(frozen=True)
class EngineConfig:
    memory_size: int = MEMORY_SIZE
    heap_start: int = HEAP_START
    device_base: int = DEVICE_BASE
    completion_marker: str = " ok"
    log_level: str = "INFO"
    load_stdlib: bool = True
    scheduler: Callable[[float, Callable[[], Any]], Any] = default_scheduler


@dataclass
class LineResult:
    line: str
    output: str
    stack: list
    parsed_tokens: list[str]
    memory: dict
    dictionary: dict
    paused: bool = False
    error: Exception | None = None


class LogBuffer(logging.Handler):
    """Keeps every record of one engine as a plain entry, and forwards new entries to listeners."""

    def __init__(self, level=logging.NOTSET):
        super().__init__(level)
        self.entries: list[dict] = []
        self.listeners: list[Callable[[dict], None]] = []

    def emit(self, record: logging.LogRecord) -> None:
        entry = {
            'timestamp': record.created,
            'level': record.levelname,
            'category': getattr(record, 'category', 'Runtime'),
            'message': record.getMessage(),
        }
        self.entries.append(entry)
        for listener in list(self.listeners):
            listener(entry)


@dataclass
class _PendingDefinition:
    name: str
    actions: list = field(default_factory=list)
    is_permanent: bool = False


@dataclass
class _LineState:
    text: str
    return_depth: int
    parsed_tokens: list = field(default_factory=list)


def parse_number(text: str) -> int | float | None:
    """Numeric literal to value, integral results become `int`; anything else is None."""
    if '_' in text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    # Prefixed literals such as `0x1F` are unsigned.
    if not text.startswith(('-', '+')):
        try:
            return int(text, 0)
        except ValueError:
            pass
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value) if value.is_integer() else value


def _make_pusher(name: str, value, group: str) -> NativeProcedure:
    def push(ctx):
        ctx.stack.push(value)
    return NativeProcedure(name, push, {'group': group, 'value': value})


_ENGINE_IDS = itertools.count()


class Engine:
    """One interpreter instance: stacks, memory, dictionary, devices, and the line driver."""

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()

        self.log = logging.getLogger(f"awwforth.engine.{next(_ENGINE_IDS)}")
        self.log.setLevel(self.config.log_level)
        self.log_buffer = LogBuffer()
        self.log.addHandler(self.log_buffer)

        self.stack = Stack("Stack")
        self.return_stack = Stack("Return Stack")
        self.memory = Memory(self.config.memory_size, self.config.heap_start, logger=self.log,
                             heap_limit=self.config.device_base)
        self.dictionary = Dictionary(logger=self.log)
        self.devices = DeviceManager(self.memory, self.config.device_base, logger=self.log)
        self.context = ExecutionContext(stack=self.stack, return_stack=self.return_stack, memory=self.memory,
                                        dictionary=self.dictionary, devices=self.devices, logger=self.log,
                                        scheduler=self.config.scheduler)
        self.context.on_resume = self._resume
        self.executor = Executor()

        self.current_definition: _PendingDefinition | None = None
        self.last_result: LineResult | None = None
        self.lines_read = 0
        self._line: _LineState | None = None
        self._line_listeners: list[Callable[[LineResult], None]] = []

        self.load_all_words()

    # Loading ─────────────────────────────────────────────────────────────────────────────────
    def load_all_words(self) -> None:
        load_builtins(self.dictionary)
        if self.config.load_stdlib:
            for result in self.read_lines(stdlib_lines()):
                if result.error is not None:
                    raise result.error
            self.lines_read, self.executor.steps, self.last_result = 0, 0, None
        self.log.debug("Loaded %d words.", len(self.dictionary.words), extra={'category': 'Dictionary'})

    def add_word(self, name: str, word: Word | Callable, is_permanent: bool = False) -> Word:
        """Install a Word, or a Python function wrapped according to its annotations."""
        if not isinstance(word, (NativeProcedure, ControlCode, CompiledDefinition)):
            word = make_native(name, word, {'group': 'user'})
        self.dictionary.add(name, word, is_permanent)
        return word

    # Execution ───────────────────────────────────────────────────────────────────────────────
    def read_line(self, text: str) -> LineResult:
        with self.context.lock:
            # A resumed line keeps running on the thread that woke it until it completes.
            if self._line is not None or self.context.paused or self.context.running:
                raise EngineSuspended("A line is still in flight; wait for it before reading another one.")
            self._line = _LineState(text, return_depth=len(self.return_stack))
        self.log.info("Processing line: %s", text, extra={'category': 'Input'})

        self.lines_read += 1
        self.context.output = []
        self.context.lexer = Lexer(text)
        return self._drive()

    def read_lines(self, lines) -> list[LineResult]:
        return [self.read_line(line) for line in lines]

    def _resume(self) -> LineResult | None:
        if self._line is None:
            return None
        self.log.debug("Resuming line: %s", self._line.text, extra={'category': 'Runtime'})
        return self._drive()

    def _drive(self) -> LineResult:
        ctx = self.context
        with ctx.lock:
            ctx.running = True
        while True:
            try:
                completed = self._run_tokens()
            except Exception as exc:
                with ctx.lock:
                    ctx.running = False
                return self._fail(exc)
            with ctx.lock:
                # A resume that arrived while stopping clears `paused` again, so keep going.
                if completed or ctx.paused:
                    ctx.running = False
                    break
        return self._finish() if completed else self._suspended()

    def _run_tokens(self) -> bool:
        ctx = self.context
        if not self.executor.run(ctx):
            return False
        while (token := ctx.lexer.next_token()) is not None:
            if (word := self._resolve(token)) is None:
                continue
            self._line.parsed_tokens.append(token.value)
            if not self.executor.execute(word, ctx):
                return False
        return True

    def _resolve(self, token: Token) -> Word | None:
        """Turn one token into the word to run now, or handle it entirely at the line level."""
        if self.current_definition is None and not token.is_string_literal and self._try_redefinition(token):
            return None

        if token.is_string_literal:
            word = _make_pusher(token.value, token.value, 'literal')
        elif (word := self.dictionary.lookup(token.value)) is None:
            if (number := parse_number(token.value)) is None:
                self.log.warning("Skipping unknown token `%s`.", token.value, extra={'category': 'Input'})
                return None
            word = _make_pusher(token.value, number, 'literal')

        if self.current_definition is not None:
            if isinstance(word, ControlCode) and word.code == ';':
                self._end_definition()
            else:
                self.current_definition.actions.append(word)
            return None

        match word:
            case ControlCode(code='variable'):
                name = self._expect_name('variable')
                address = self.memory.add_variable(name)
                self.dictionary.add(name, _make_pusher(name, address, 'variable'))
            case ControlCode(code='constant'):
                name = self._expect_name('constant')
                value = self.stack.pop()
                self.log.debug("Creating constant `%s` = %s.", name, value, extra={'category': 'Memory'})
                self.dictionary.add(name, _make_pusher(name, value, 'constant'))
            case ControlCode(code=':'):
                name = self._expect_name(':')
                self.log.debug("Starting definition `%s`.", name, extra={'category': 'Compiler'})
                self.current_definition = _PendingDefinition(name)
            case _:
                return word
        return None

    def _expect_name(self, code: str) -> str:
        if (token := self.context.lexer.next_token()) is None:
            raise EmptyName(f"`{code}` must be followed by a name.", token=code)
        return token.value

    def _try_redefinition(self, token: Token) -> bool:
        """Handle `Name is word`, `Name isNow word` and their `~` permanent forms."""
        lexer, is_permanent, name = self.context.lexer, False, token
        if token.value == '~':
            if (name := lexer.next_token()) is None:
                raise InvalidAction("`~` must be followed by a redefinition.", token='~')
            is_permanent = True

        following = lexer.peek_token()
        mode = following.value.lower() if following is not None and not following.is_string_literal else None
        if mode not in ('is', 'isnow'):
            if is_permanent:
                raise InvalidAction("`~` must be followed by `Name is word` or `Name isNow word`.", token='~')
            return False

        lexer.next_token()
        if (target := lexer.next_token()) is None:
            raise InvalidAction(f"`{following.value}` expects a target word.", token=following.value)

        if mode == 'isnow':
            self.dictionary.redefine(name.value, self.dictionary.get(target.value), is_permanent)
        else:
            self.dictionary.redefine(name.value, target.value, is_permanent)
        return True

    def _end_definition(self) -> None:
        pending, self.current_definition = self.current_definition, None
        ast = compile_actions(pending.actions, pending.name)
        self.dictionary.add(pending.name, CompiledDefinition(pending.name, ast, pending.is_permanent), pending.is_permanent)
        self.log.debug("Ending definition `%s`.", pending.name, extra={'category': 'Compiler'})

    # Line results ────────────────────────────────────────────────────────────────────────────
    def _snapshot(self, *, paused=False, error=None) -> LineResult:
        return LineResult(
            line=self._line.text,
            output=''.join(self.context.output),
            stack=self.stack.snapshot(),
            parsed_tokens=list(self._line.parsed_tokens),
            memory=self.memory.memory_map(),
            dictionary=self.dictionary.resolved(),
            paused=paused,
            error=error)

    def _finish(self) -> LineResult:
        if self.current_definition is None:
            self.context.write(self.config.completion_marker)
        return self._complete(self._snapshot())

    def _suspended(self) -> LineResult:
        self.log.debug("Line suspended: %s", self._line.text, extra={'category': 'Runtime'})
        return self._snapshot(paused=True)

    def _fail(self, exc: Exception) -> LineResult:
        if self.current_definition is not None:
            self.log.debug("Discarding definition `%s`.", self.current_definition.name, extra={'category': 'Compiler'})
        self.current_definition = None
        self.executor.reset()
        self.return_stack.truncate(self._line.return_depth)
        self.context.paused = False
        self.context.waiting_for_key = None

        self.context.write(str(exc) or type(exc).__name__)
        self.log.error("%s: %s", type(exc).__name__, exc, extra={'category': 'Runtime'})
        return self._complete(self._snapshot(error=exc))

    def _complete(self, result: LineResult) -> LineResult:
        self._line = None
        self.context.lexer = None
        self.last_result = result
        for callback in list(self._line_listeners):
            callback(result)
        return result

    # Devices ─────────────────────────────────────────────────────────────────────────────────
    def attach_device(self, device: Device) -> Device:
        first_address = self.devices.next_port_address
        binding = self.devices.register_device(device)
        try:
            if (initialize := getattr(device, 'initialize', None)) is not None:
                initialize(binding)
            self.devices.register_device_words(self.add_word, device.namespace)
        except Exception:
            self.log.error("Attaching device `%s` failed, unregistering it.", device.namespace, extra={'category': 'Device'})
            self.devices.unregister_device(device.namespace)
            self.devices.next_port_address = first_address
            raise
        return device

    def detach_device(self, namespace: str) -> Device:
        device = self.devices.devices.get(namespace)
        if device is not None and (cleanup := getattr(device, 'cleanup', None)) is not None:
            cleanup()
        return self.devices.unregister_device(namespace)

    # External events ─────────────────────────────────────────────────────────────────────────
    def send_key(self, code: int) -> LineResult | None:
        """Deliver a key code: stored in `last-key`, and handed to a waiting `key` if there is one."""
        if (address := self.memory.get_variable('last-key')) is not None:
            self.memory.set_value(address, code)
        if (continuation := self.context.waiting_for_key) is None:
            return None
        self.context.waiting_for_key = None
        self.stack.push(code)
        return continuation()

    def on_line(self, callback: Callable[[LineResult], None]) -> Callable[[], None]:
        self._line_listeners.append(callback)
        return lambda: self._line_listeners.remove(callback)

    def on_log(self, callback: Callable[[dict], None]) -> Callable[[], None]:
        self.log_buffer.listeners.append(callback)
        return lambda: self.log_buffer.listeners.remove(callback)

    # Introspection ───────────────────────────────────────────────────────────────────────────
    @property
    def paused(self) -> bool:
        return self.context.paused

    def get_stack(self) -> list:
        return self.stack.snapshot()

    def get_return_stack(self) -> list:
        return self.return_stack.snapshot()

    def get_dictionary(self) -> dict:
        return self.dictionary.resolved()

    def get_memory(self) -> dict:
        return self.memory.memory_map()

    def get_output(self) -> str:
        return self.last_result.output if self.last_result is not None else ''

    def get_logs(self, level: str | None = None) -> list[dict]:
        if level is None:
            return list(self.log_buffer.entries)
        threshold = logging.getLevelName(level.upper())
        return [e for e in self.log_buffer.entries if logging.getLevelName(e['level']) >= threshold]

    @property
    def stats(self) -> dict:
        return {'lines': self.lines_read, 'steps': self.executor.steps, 'words': len(self.dictionary.words)}

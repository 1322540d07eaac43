## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import logging
import threading
from typing import Any, Callable
from dataclasses import dataclass, field

from .types import (TRUE, FALSE, Token, Stack, Word, NativeProcedure, ControlCode, CompiledDefinition,
                    Action, Conditional, CountedLoop, IndefiniteLoop, Main, Node)
from .errors import ForthError, UnknownControlCode, InvalidAction, ContinuationSpent
from .memory import Memory
from .dictionary import Dictionary


class Continuation:
    """Single-shot handle that resumes a suspended line."""

    def __init__(self, context: "ExecutionContext"):
        self._context = context
        self.spent = False

    def __call__(self):
        if self.spent:
            raise ContinuationSpent("This continuation has already resumed its line.")
        self.spent = True
        return self._context._wake()


class ExecutionContext:
    """Everything a native word may touch while a line runs."""

    def __init__(self, *, stack: Stack, return_stack: Stack, memory: Memory, dictionary: Dictionary,
                 devices=None, logger: logging.Logger | None = None,
                 scheduler: Callable[[float, Callable[[], Any]], Any] | None = None):
        self.stack = stack
        self.return_stack = return_stack
        self.memory = memory
        self.dictionary = dictionary
        self.devices = devices
        self.log = logger or logging.getLogger(__name__)
        self.scheduler = scheduler
        self.output: list[str] = []
        self.paused = False
        self.running = False
        self.lexer = None
        self.waiting_for_key: Continuation | None = None
        self.on_resume: Callable[[], Any] | None = None
        self.lock = threading.Lock()

    def write(self, text) -> None:
        self.output.append(str(text))

    def next_token(self) -> Token | None:
        return self.lexer.next_token() if self.lexer is not None else None

    def pause(self) -> Continuation:
        self.paused = True
        return Continuation(self)

    def schedule(self, delay: float, callback: Callable[[], Any]) -> None:
        self.scheduler(delay, callback)

    def _wake(self):
        with self.lock:
            self.paused = False
            # Whoever is driving the line notices the cleared flag and carries on.
            if self.running or self.on_resume is None:
                return None
        return self.on_resume()


## FRAMES
@dataclass(eq=False)
class _Sequence:
    body: list
    pos: int = 0


@dataclass(eq=False)
class _CountedLoop:
    node: CountedLoop
    index: Any
    limit: Any
    forwards: bool
    running: bool = False


@dataclass(eq=False)
class _IndefiniteLoop:
    node: IndefiniteLoop
    running: bool = False


@dataclass
class Executor:
    """Runs Control ASTs with an explicit frame stack, so that execution can stop after any
    word that pauses and later continue from the same position, in the same loop iteration.
    """
    frames: list = field(default_factory=list)
    steps: int = 0

    @property
    def idle(self) -> bool:
        return not self.frames

    def reset(self) -> None:
        self.frames.clear()

    def execute(self, word: Word, context: ExecutionContext) -> bool:
        self.frames.append(_Sequence([Action(word)]))
        return self.run(context)

    def call(self, definition: Main) -> None:
        self.frames.append(_Sequence(definition.body))

    def run(self, context: ExecutionContext) -> bool:
        """Execute until all frames are done (True) or a word requested a pause (False)."""
        while self.frames:
            if context.paused:
                return False

            frame = self.frames[-1]
            match frame:
                case _Sequence(body=body, pos=pos) if pos < len(body):
                    frame.pos += 1
                    self._dispatch(body[pos], context)
                case _Sequence():
                    self.frames.pop()
                case _CountedLoop():
                    self._iterate_counted(frame, context)
                case _IndefiniteLoop():
                    self._iterate_indefinite(frame, context)

        return not context.paused

    def _dispatch(self, node: Node, context: ExecutionContext) -> None:
        self.steps += 1
        match node:
            case Action(word=word):
                self._execute_word(word, context)
            case Conditional():
                branch = node.consequent if context.stack.pop() != FALSE else node.alternative
                self.frames.append(_Sequence(branch))
            case CountedLoop():
                start = context.stack.pop()
                limit = context.stack.pop()
                self.frames.append(_CountedLoop(node, start, limit, forwards=limit > start))
            case IndefiniteLoop():
                self.frames.append(_IndefiniteLoop(node))
            case _:
                raise InvalidAction(f"Invalid action encountered during execution: {node!r}")

    def _execute_word(self, word: Word, context: ExecutionContext) -> None:
        match word:
            case NativeProcedure():
                try:
                    output = word.fn(context)
                except ForthError as exc:
                    if exc.word is None: exc.word = word
                    raise
                if output is not None:
                    context.write(output)
            case CompiledDefinition():
                self.call(word.ast)
            case ControlCode(code=code):
                raise UnknownControlCode(f"Unknown control code: {code}", token=code, word=word)
            case _:
                raise InvalidAction(f"Invalid action encountered during execution: {word!r}")

    def _iterate_counted(self, frame: _CountedLoop, context: ExecutionContext) -> None:
        if frame.running:
            context.return_stack.pop()
            frame.index += context.stack.pop() if frame.node.step_from_stack else 1

        if (frame.forwards and frame.index < frame.limit) or (not frame.forwards and frame.index >= frame.limit):
            context.return_stack.push(frame.index)
            frame.running = True
            self.frames.append(_Sequence(frame.node.body))
        else:
            self.frames.pop()

    def _iterate_indefinite(self, frame: _IndefiniteLoop, context: ExecutionContext) -> None:
        if frame.running and context.stack.pop() == TRUE:
            self.frames.pop()
            return
        frame.running = True
        self.frames.append(_Sequence(frame.node.body))

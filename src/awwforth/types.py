## awwforth — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from typing import Any, Callable, Literal, NamedTuple
from dataclasses import dataclass, field

from .errors import StackUnderflow


# Booleans are two's complement so that bitwise `and`/`or`/`invert` stay consistent.
TRUE = -1
FALSE = 0

Value = int | float | str

CONTROL_CODES = (":", ";", "if", "else", "then", "do", "loop", "+loop", "begin", "until",
                 "variable", "constant", "is", "isNow", "~")


class Token(NamedTuple):
    value: str
    is_string_literal: bool = False
    column: int | None = None


class Output(str):
    """Return annotation for native words whose result is written to the line output."""
    pass


class Stack:
    """Mutable LIFO used both for operands and for the return (control) stack."""

    __slots__ = ('name', '_items')

    def __init__(self, name: str = "Stack", items=()):
        self.name = name
        self._items: list = list(items)

    def __repr__(self):
        return "< " + " ".join(repr(x) for x in self._items) + " >"

    def __len__(self):
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def push(self, item: Value) -> None:
        self._items.append(item)

    def pop(self) -> Value:
        if not self._items:
            raise StackUnderflow(f"Stack underflow in {self.name}", stack_name=self.name)
        return self._items.pop()

    def peek(self, offset: int = 1) -> Value:
        if offset < 1 or offset > len(self._items):
            raise StackUnderflow(f"Stack underflow in {self.name}", stack_name=self.name)
        return self._items[-offset]

    def get_args(self, count: int, defaults) -> list:
        """Pop up to `count` values, top first; underflowing positions take the matching default.

        Values popped before an underflow are not put back.
        """
        args = []
        try:
            for _ in range(count):
                args.append(self.pop())
        except StackUnderflow:
            while len(args) < count:
                args.append(defaults[len(args)])
        return args

    def snapshot(self) -> list:
        """Bottom-to-top copy of the content."""
        return list(self._items)

    def truncate(self, depth: int) -> None:
        del self._items[depth:]

    def clear(self) -> None:
        self._items.clear()


## WORDS
@dataclass(eq=False)
class NativeProcedure:
    name: str
    fn: Callable[[Any], str | None]    # fn(context) -> optional output
    meta: dict = field(default_factory=dict)

    def __repr__(self):
        return f"<native {self.name}>"


@dataclass(frozen=True)
class ControlCode:
    code: str

    def __repr__(self):
        return f"<control {self.code}>"


@dataclass(eq=False)
class CompiledDefinition:
    name: str
    ast: "Main"
    is_permanent: bool = False

    def __repr__(self):
        return f"<definition {self.name}>"


Word = NativeProcedure | ControlCode | CompiledDefinition


## CONTROL AST
@dataclass
class Action:
    word: Word


@dataclass
class Conditional:
    consequent: list = field(default_factory=list)
    alternative: list = field(default_factory=list)


@dataclass
class CountedLoop:
    body: list = field(default_factory=list)
    step_from_stack: bool = False


@dataclass
class IndefiniteLoop:
    body: list = field(default_factory=list)


@dataclass
class Main:
    body: list = field(default_factory=list)


Node = Action | Conditional | CountedLoop | IndefiniteLoop


## DEVICES
Access = Literal["read", "write", "readwrite"]


@dataclass(frozen=True)
class Port:
    name: str
    size: int = 1
    access: Access = "readwrite"
    description: str = ""

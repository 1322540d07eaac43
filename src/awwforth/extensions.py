## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import math
import random
from typing import Any

from .types import Output
from .errors import ForthParseError
from .interpreter import ExecutionContext
from .formatting import format_value


def op_define(ctx: ExecutionContext) -> None:
    """( target name -- ) bind `name` to whatever `target` currently resolves to."""
    name = ctx.stack.pop()
    target = ctx.stack.pop()
    ctx.dictionary.add(str(name), ctx.dictionary.get(str(target)))

def op_transform(ctx: ExecutionContext) -> None:
    """( target name -- ) make `name` an alias that follows `target` at every lookup."""
    name = ctx.stack.pop()
    target = ctx.stack.pop()
    ctx.dictionary.redefine(str(name), str(target))

def op_echo(x: Any) -> Output:
    return Output(format_value(x))

def op_random(n: int | float) -> int:
    return math.floor(random.random() * n)


## SUSPENDING WORDS
def op_sleep(ctx: ExecutionContext) -> None:
    """( ms -- ) suspend the line, the scheduler resumes it after the delay."""
    delay = ctx.stack.pop()
    ctx.log.debug("Sleeping for %s ms.", delay, extra={'category': 'Runtime'})
    ctx.schedule(float(delay) / 1000.0, ctx.pause())

def op_key(ctx: ExecutionContext) -> None:
    """( -- code ) suspend the line until a key code is delivered by the host."""
    ctx.log.debug("Waiting for a key.", extra={'category': 'Runtime'})
    ctx.waiting_for_key = ctx.pause()


## STRINGS
def op_quote(ctx: ExecutionContext) -> None:
    """Push the next token of the line as a string."""
    token = ctx.next_token()
    if token is None:
        raise ForthParseError("Unexpected end of input after quote.", token='"')
    ctx.stack.push(token.value)

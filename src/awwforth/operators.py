## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import math
from typing import Any, TypeVar

from .types import TRUE, FALSE, Output
from .interpreter import ExecutionContext
from .formatting import format_value, format_stack


num = int | float

def _flag(cond: bool) -> int:
    return TRUE if cond else FALSE

def _floor_div(b: num, a: num) -> num:
    if isinstance(b, int) and isinstance(a, int): return b // a
    return math.floor(b / a)

def _trunc_rem(b: num, a: num) -> num:
    # Remainder takes the sign of the dividend.
    if isinstance(b, int) and isinstance(a, int):
        r = abs(b) % abs(a)
        return -r if b < 0 else r
    return math.fmod(b, a)


## ARITHMETIC
def op_add(b: num, a: num) -> num: return a + b
def op_sub(b: num, a: num) -> num: return b - a
def op_mul(b: num, a: num) -> num: return a * b
def op_div(b: num, a: num) -> num: return _floor_div(b, a)
def op_mod(b: num, a: num) -> num: return _trunc_rem(b, a)
def op_divmod(b: num, a: num) -> tuple[num, num]: return (_trunc_rem(b, a), _floor_div(b, a))
## COMPARISON & BITWISE LOGIC
def op_equal(b: Any, a: Any) -> int: return _flag(b == a)
def op_lt(b: num, a: num) -> int: return _flag(b < a)
def op_gt(b: num, a: num) -> int: return _flag(b > a)
def op_and(b: int, a: int) -> int: return int(b) & int(a)
def op_or(b: int, a: int) -> int: return int(b) | int(a)
def op_invert(x: int) -> int: return ~int(x)
# STACK OPERATIONS
X, Y, Z = (TypeVar(v, bound=Any) for v in ('X', 'Y', 'Z'))
def op_swap(b: Y, a: X) -> tuple[X, Y]: return (a, b)
def op_dup(x: X) -> tuple[X, X]: return (x, x)
def op_over(b: Y, a: X) -> tuple[Y, X, Y]: return (b, a, b)
def op_rot(c: Z, b: Y, a: X) -> tuple[Y, X, Z]: return (b, a, c)
def op_drop(_: Any) -> None: return None
# INPUT/OUTPUT
def op_emit(x: int) -> Output: return Output(chr(int(x)))

def op_dot(ctx: ExecutionContext) -> Output:
    """Pop the top of the stack and print it followed by a space."""
    return Output(format_value(ctx.stack.pop()) + ' ')

def op_dot_s(ctx: ExecutionContext) -> Output:
    """Print the whole stack without changing it."""
    return Output('\n' + format_stack(ctx.stack))


## RETURN STACK
def op_i(ctx: ExecutionContext) -> None:
    ctx.stack.push(ctx.return_stack.peek(1))

def op_j(ctx: ExecutionContext) -> None:
    ctx.stack.push(ctx.return_stack.peek(2))

def op_r_fetch(ctx: ExecutionContext) -> None:
    ctx.stack.push(ctx.return_stack.peek(1))

def op_to_r(ctx: ExecutionContext) -> None:
    ctx.return_stack.push(ctx.stack.pop())

def op_r_from(ctx: ExecutionContext) -> None:
    ctx.stack.push(ctx.return_stack.pop())


## MEMORY
def op_store(ctx: ExecutionContext) -> None:
    """( value address -- ) write one cell; ports mapped by devices are access-checked first."""
    address = ctx.stack.pop()
    value = ctx.stack.pop()
    if ctx.devices is not None:
        ctx.devices.check_write(address)
    ctx.memory.set_value(address, value)

def op_fetch(ctx: ExecutionContext) -> None:
    ctx.stack.push(ctx.memory.get_value(ctx.stack.pop()))

def op_allot(ctx: ExecutionContext) -> None:
    ctx.memory.allot(int(ctx.stack.pop()))

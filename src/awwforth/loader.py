## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import inspect
from types import UnionType
from typing import Any, ForwardRef, TypeVar, Callable, get_origin, get_args

from .types import Output, NativeProcedure
from .errors import WordSignatureError


def get_python_name(forth_name: str) -> str:
    """Map a word name to its Python function name."""
    return 'op_' + forth_name.replace('-', '_').replace('!', '_b').replace('?', '_q')


def get_forth_name(py_name: str) -> str:
    """Inverse of `get_python_name` for well-formed operator names."""
    if not py_name.startswith("op_"):
        raise WordSignatureError(f"Operator function `{py_name}` requires prefix `op_` by convention.", token=py_name)
    return py_name[3:].replace('_b', '!').replace('_q', '?').replace('_', '-')


def _normalize_expected_type(tp):
    if tp is Any: return Any
    if isinstance(tp, TypeVar):
        return _normalize_expected_type(tp.__bound__) if tp.__bound__ else Any
    if isinstance(tp, UnionType): return tp
    if (origin := get_origin(tp)) is not None and isinstance(origin, type):
        return origin
    if isinstance(tp, (type, tuple)): return tp
    if isinstance(tp, (ForwardRef, str)):
        raise WordSignatureError("Forward references and strings-as-types not supported.")
    raise WordSignatureError(f"Unknown type to normalize: {tp} {type(tp)}")


def _is_context_annotation(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation == 'ExecutionContext' or annotation.endswith('.ExecutionContext')
    return getattr(annotation, '__name__', None) == 'ExecutionContext'


def get_stack_effects(*, fn: Callable, name: str = None) -> dict:
    """Parse the type annotations of a Python function to determine its stack effects.

    Arity (input) conventions:
        -2: pass the execution context as-is to the function
        >=0: pop that many items from the stack, top of stack is the last argument

    Valency (output) conventions:
        -1: returned text is written to the line output
        0: no changes to stack
        1: single output pushed
        >=1: tuple of multiple outputs pushed in order
    """
    sig = inspect.signature(fn)
    params = list(sig.parameters.values())
    op_name = name or getattr(fn, '__name__', '<unnamed>')

    if any(p.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD) for p in params):
        raise WordSignatureError(f"Operation `{op_name}` cannot take variadic arguments.", token=op_name)
    positional = [p for p in params if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)]

    ret_ann = sig.return_annotation
    if ret_ann is inspect.Signature.empty:
        raise WordSignatureError(f"Operation `{op_name}` must declare a return annotation.", token=op_name)
    if missing := [p.name for p in positional if p.annotation is inspect.Parameter.empty]:
        raise WordSignatureError(f"Operation `{op_name}` must annotate parameters: {', '.join(missing)}.", token=op_name)

    pass_context = len(positional) == 1 and _is_context_annotation(positional[0].annotation)
    returns_none = (ret_ann is type(None) or ret_ann is None)
    returns_output = (ret_ann is Output or ret_ann == 'Output')
    returns_tuple = (ret_ann is tuple or get_origin(ret_ann) is tuple)

    if returns_none:
        outputs = []
    elif returns_output:
        outputs = [Output]
    else:
        outputs = [_normalize_expected_type(t) for t in (get_args(ret_ann) if returns_tuple else (ret_ann,))]

    return {
        'arity': -2 if pass_context else len(positional),
        'valency': -1 if returns_output else (0 if returns_none else (len(outputs) if returns_tuple else 1)),
        'inputs': [] if pass_context else list(reversed([_normalize_expected_type(p.annotation) for p in positional])),
        'outputs': list(reversed(outputs)),
    }


def make_native(name: str, fn: Callable, meta: dict | None = None) -> NativeProcedure:
    """Wrap a Python function as a word that pops its arguments and pushes its results."""
    effects = get_stack_effects(fn=fn, name=name)

    match effects['valency']:
        case -1:
            def push(_, res): return res
        case 0:
            def push(_, res): return None
        case 1:
            def push(ctx, res): ctx.stack.push(res)
        case _:
            def push(ctx, res):
                for v in res: ctx.stack.push(v)

    match effects['arity']:
        case -2:
            def w_c(ctx):
                return push(ctx, fn(ctx))
            wrapper = w_c
        case 0:
            def w_0(ctx):
                return push(ctx, fn())
            wrapper = w_0
        case 1:
            def w_1(ctx):
                return push(ctx, fn(ctx.stack.pop()))
            wrapper = w_1
        case 2:
            def w_2(ctx):
                a = ctx.stack.pop()
                b = ctx.stack.pop()
                return push(ctx, fn(b, a))
            wrapper = w_2
        case n:
            def w_x(ctx):
                args = [ctx.stack.pop() for _ in range(n)]
                return push(ctx, fn(*reversed(args)))
            wrapper = w_x

    return NativeProcedure(name, wrapper, {**effects, **(meta or {}), 'doc': inspect.getdoc(fn)})

## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import re

from .types import NativeProcedure, ControlCode, CompiledDefinition


def format_value(value) -> str:
    # Integral floats print like integers, the way `.` shows them in the browser version.
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_stack(items, end=' ') -> str:
    return ' '.join(format_value(v) for v in items) + ' ← Top' + end


def write_without_ansi(write_fn):
    """Wrapper function that strips ANSI codes before calling the original writer."""
    ansi_re = re.compile(r'\033\[[0-9;]*m')
    return lambda text: write_fn(ansi_re.sub('', text))


def format_word(word) -> str:
    match word:
        case NativeProcedure(name=name):
            return f"native {name}"
        case ControlCode(code=code):
            return f"control {code}"
        case CompiledDefinition(name=name):
            return f"definition {name}"
    return repr(word)


def format_dictionary(view: dict) -> str:
    lines = []
    for name, (word, is_permanent) in sorted(view.items()):
        flag = ' \033[33m~\033[0m' if is_permanent else ''
        lines.append(f"  \033[97m{name:<12}\033[0m {format_word(word)}{flag}")
    return '\n'.join(lines)


def format_memory_map(memory_map: dict) -> str:
    lines = [f"  {'name':<20} {'address':>8} {'size':>5}  value"]
    for block in memory_map['blocks']:
        lines.append(f"  {block['name']:<20} {block['address']:>#8x} {block['size']:>5}  {format_value(block['value'])}")
    lines.append(f"  next free: {memory_map['next_address']:#x}, {memory_map['free_space']} cell(s) left")
    return '\n'.join(lines)


def show_stack(items, width=72, end='\n', file=None):
    stack_str = ' '.join(format_value(v) for v in items) if items else '∅'
    if width is not None and len(stack_str) > width:
        stack_str = '… ' + stack_str[-width+2:]
    print(f"{stack_str:>{width}}" if width else stack_str, end=end, file=file)


def format_devices(overview: list[dict]) -> str:
    if not overview:
        return "  no devices attached"
    lines = []
    for device in overview:
        lines.append(f"  \033[97m{device['namespace']}\033[0m {device['description']}".rstrip())
        for port in device['ports']:
            lines.append(f"    {port['name']:<12} {port['address']:>#8x} {port['access']:<9} {format_value(port['value'])}")
    return '\n'.join(lines)

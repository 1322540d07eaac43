## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from pathlib import Path

from . import operators
from . import extensions
from .types import CONTROL_CODES, ControlCode
from .loader import get_forth_name, make_native
from .dictionary import Dictionary


# Python-side names whose word is spelled with symbols.
SYMBOLS = {
    'add': '+', 'sub': '-', 'mul': '*', 'div': '/', 'divmod': '/mod',
    'equal': '=', 'lt': '<', 'gt': '>',
    'dot': '.', 'dot-s': '.s', 'store': '!', 'fetch': '@',
    'r-fetch': 'r@', 'to-r': '>r', 'r-from': 'r>',
    'quote': '"',
}


def iter_native_words(*modules):
    for module in modules:
        for k in dir(module):
            if not k.startswith('op_'): continue
            name = get_forth_name(k)
            yield SYMBOLS.get(name, name), getattr(module, k)


def load_builtins(dictionary: Dictionary) -> Dictionary:
    """Install control codes, the native core words and the extension words."""
    for code in CONTROL_CODES:
        dictionary.add(code, ControlCode(code))

    for name, fn in iter_native_words(operators):
        dictionary.add(name, make_native(name, fn, {'group': 'core'}))
    for name, fn in iter_native_words(extensions):
        dictionary.add(name, make_native(name, fn, {'group': 'extension'}))
    return dictionary


def find_stdlib() -> Path:
    base = Path(__file__).resolve().parent
    candidates = (d / 'libs' / 'stdlib.fs' for d in (base, *base.parents[:2]))
    return next((p for p in candidates if p.exists()), base / 'libs' / 'stdlib.fs')


def stdlib_lines() -> list[str]:
    return find_stdlib().read_text(encoding='utf-8').splitlines()

## awwforth — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from .types import Port, Token, Stack, TRUE, FALSE
from .errors import *
from .runtime import Engine, EngineConfig, LineResult

_ENGINE = Engine()

def __getattr__(name):
    return getattr(_ENGINE, name)

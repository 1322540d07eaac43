## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from collections import deque

import lark

from .types import Token
from .errors import UnterminatedString


GRAMMAR = r"""?start: (STRING | OPEN_STRING | WORD)*

// STRINGS: a `."` marker then one space, content runs up to the next double quote.
STRING.4: /\." [^"]*"/
OPEN_STRING.3: /\." [^"]*/

// COMMENTS
PAREN_COMMENT.5: /\( [^)]*\)?/
LINE_COMMENT.5: /\\ [\s\S]*/

WORD.1: /\S+/

WS: /\s+/

%ignore WS
%ignore PAREN_COMMENT
%ignore LINE_COMMENT
"""

_STRING_MARKER = '." '

_LARK = None

def _get_lark() -> lark.Lark:
    global _LARK
    if _LARK is None:
        _LARK = lark.Lark(GRAMMAR, parser="lalr", lexer="basic")
    return _LARK


def _convert(tok: lark.Token) -> tuple[str, Token]:
    if tok.type == 'STRING':
        return tok.type, Token(tok.value[len(_STRING_MARKER):-1], True, tok.column)
    if tok.type == 'OPEN_STRING':
        return tok.type, Token(tok.value[len(_STRING_MARKER):], True, tok.column)
    return tok.type, Token(tok.value, False, tok.column)


class Lexer:
    """Lazy token stream over one line of source, with lookahead and one-step undo."""

    def __init__(self, text: str):
        self.text = text
        self._stream = _get_lark().lex(text)
        self._buffer: deque[tuple[str, Token]] = deque()
        self._processed: list[tuple[str, Token]] = []

    def _read(self) -> tuple[str, Token] | None:
        tok = next(self._stream, None)
        return None if tok is None else _convert(tok)

    def next_token(self) -> Token | None:
        entry = self._buffer.popleft() if self._buffer else self._read()
        if entry is None:
            return None
        typ, token = entry
        if typ == 'OPEN_STRING':
            raise UnterminatedString(f"Unterminated string literal starting at column {token.column}.",
                                     token=token.value, column=token.column)
        self._processed.append(entry)
        return token

    def peek_token(self, n: int = 1) -> Token | None:
        while len(self._buffer) < n:
            if (entry := self._read()) is None:
                return None
            self._buffer.append(entry)
        return self._buffer[n - 1][1]

    def previous_token(self) -> Token | None:
        """Push the last consumed token back so that `next_token` returns it again."""
        if not self._processed:
            return None
        entry = self._processed.pop()
        self._buffer.appendleft(entry)
        return entry[1]

    def consumed(self) -> list[Token]:
        return [tok for _, tok in self._processed]


def tokenize(text: str) -> list[Token]:
    lexer, tokens = Lexer(text), []
    while (token := lexer.next_token()) is not None:
        tokens.append(token)
    return tokens

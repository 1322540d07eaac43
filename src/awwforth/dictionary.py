## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import logging
from dataclasses import dataclass, field

from .types import Word
from .errors import EmptyName, CircularDefinition, DuplicateRedefinition, WordNotFound


log = logging.getLogger(__name__)


@dataclass
class Dictionary:
    """Words by lowercase name, plus a redefinition table that lookups go through first.

    A redefinition maps a name either to another name (an alias, followed at lookup time)
    or directly to a Word captured when the redefinition was made.
    """
    words: dict[str, tuple[Word, bool]] = field(default_factory=dict)
    redefinitions: dict[str, tuple[str | Word, bool]] = field(default_factory=dict)
    logger: logging.Logger = field(default=log, repr=False)

    # Registration ────────────────────────────────────────────────────────────────────────────
    def add(self, name: str, word: Word, is_permanent: bool = False) -> None:
        if not name:
            raise EmptyName("Can't add a word without a name.", word=word)
        self.words[name.lower()] = (word, is_permanent)
        self.logger.debug("Adding word `%s`.", name, extra={'category': 'Dictionary'})

    def redefine(self, name: str, target: str | Word, is_permanent: bool = False) -> None:
        if not name:
            raise EmptyName("Can't redefine a word without a name.", word=target)
        key = name.lower()
        if key in self.words or key in self.redefinitions:
            raise DuplicateRedefinition(f"Can't redefine word that is already in dictionary: {key}", token=name)
        self.redefinitions[key] = (target.lower() if isinstance(target, str) else target, is_permanent)
        self.logger.debug("Redefining `%s` as `%s`.", key, target, extra={'category': 'Dictionary'})

    # Resolution ──────────────────────────────────────────────────────────────────────────────
    def lookup(self, name: str) -> Word | None:
        key, seen = name.lower(), []
        while True:
            if key in seen:
                chain = " -> ".join(seen + [key])
                raise CircularDefinition(f"Circular definition detected for word: {key} ({chain})", token=name, chain=seen + [key])
            seen.append(key)
            if (redefined := self.redefinitions.get(key)) is not None:
                target, _ = redefined
                if not isinstance(target, str):
                    return target
                key = target
                continue
            if (item := self.words.get(key)) is None:
                return None
            return item[0]

    def get(self, name: str) -> Word:
        if (word := self.lookup(name)) is not None:
            return word
        raise WordNotFound(f"Word `{name}` not found in dictionary.", token=name)

    def is_permanent(self, name: str) -> bool:
        key = name.lower()
        item = self.words.get(key) or self.redefinitions.get(key)
        if item is None:
            raise WordNotFound(f"Word not found in dictionary: {key}", token=name)
        return item[1]

    def __contains__(self, name: str) -> bool:
        key = name.lower()
        return key in self.words or key in self.redefinitions

    # Introspection ───────────────────────────────────────────────────────────────────────────
    def resolved(self) -> dict[str, tuple[Word, bool]]:
        """Every entry with its redefinitions followed to the final word; broken chains are skipped."""
        view = dict(self.words)
        for key, (_, is_permanent) in self.redefinitions.items():
            try:
                word = self.lookup(key)
            except CircularDefinition as exc:
                self.logger.warning("Skipping invalid redefinition for `%s`: %s", key, exc, extra={'category': 'Dictionary'})
                continue
            if word is None:
                self.logger.warning("Skipping invalid redefinition for `%s`: target is missing.", key, extra={'category': 'Dictionary'})
                continue
            view[key] = (word, is_permanent)
        return view

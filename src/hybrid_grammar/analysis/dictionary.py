"""Personal dictionary lookup interface.

The engine only ever asks whether a word is known; storage and syncing live
with the host application. `InMemoryPersonalDictionary` is the default
implementation and the one used in tests.
"""

from collections.abc import Iterable
import logging
from typing import Protocol, runtime_checkable

from hybrid_grammar.exceptions import InvalidInputError

logger = logging.getLogger(__name__)


@runtime_checkable
class PersonalDictionary(Protocol):
    """Async initialisation followed by synchronous lookups."""

    async def initialize(self) -> None: ...

    def has_word(self, word: str) -> bool: ...


def _normalize(word: str) -> str:
    return word.strip().lower()


class InMemoryPersonalDictionary:
    """Case-insensitive word set."""

    def __init__(self, words: Iterable[str] = ()) -> None:
        self._words: set[str] = {_normalize(w) for w in words if _normalize(w)}
        self._initialized = False

    async def initialize(self) -> None:
        if not self._initialized:
            self._initialized = True
            logger.debug("Personal dictionary ready: %d words", len(self._words))

    def has_word(self, word: str) -> bool:
        return _normalize(word) in self._words

    def add_word(self, word: str) -> bool:
        """Add `word`; returns False if it was already present."""
        normalized = _normalize(word)
        if not normalized:
            raise InvalidInputError("Word cannot be empty")
        if normalized in self._words:
            return False
        self._words.add(normalized)
        return True

    def remove_word(self, word: str) -> bool:
        normalized = _normalize(word)
        if normalized not in self._words:
            return False
        self._words.discard(normalized)
        return True

    def words(self) -> list[str]:
        return sorted(self._words)

    def __len__(self) -> int:
        return len(self._words)

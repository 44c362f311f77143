"""Dictionary-based spelling checks backed by pyspellchecker."""

from collections.abc import Iterator
import logging
import re

from spellchecker import SpellChecker

from hybrid_grammar.core.types import Severity, SuggestionType

from .base import RawMessage, match_case

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\b[A-Za-z]+(?:['’][A-Za-z]+)*\b")
_SENTENCE_END = ".!?"


class SpellingChecker:
    """Flags words unknown to the spelling dictionary.

    Acronyms, single letters, words containing apostrophes and capitalised
    words in mid-sentence (likely proper nouns) are skipped. The word list is
    loaded lazily on first use.
    """

    name = "spelling"

    def __init__(
        self, language: str = "en", *, spell: SpellChecker | None = None
    ) -> None:
        self._language = language
        self._spell = spell

    @property
    def spell(self) -> SpellChecker:
        if self._spell is None:
            logger.debug("Loading spelling dictionary for %r", self._language)
            self._spell = SpellChecker(language=self._language)
        return self._spell

    def check(self, text: str) -> Iterator[RawMessage]:
        for match in _WORD_RE.finditer(text):
            word = match.group(0)
            if self._skip(text, match.start(), word):
                continue
            if not self.spell.unknown([word.lower()]):
                continue
            yield RawMessage(
                checker=self.name,
                rule="spelling.unknown-word",
                message=f"“{word}” may be misspelled.",
                start=match.start(),
                end=match.end(),
                claimed=word,
                type=SuggestionType.SPELLING,
                severity=Severity.ERROR,
                replacement=self.best_candidate(word),
            )

    def best_candidate(self, word: str) -> str | None:
        """Pick a correction, preferring one that only adds an apostrophe."""
        lower = word.lower()
        candidates = self.spell.candidates(lower) or set()
        bare = lower.replace("'", "")
        for candidate in sorted(candidates):
            if candidate != lower and candidate.replace("'", "") == bare:
                return match_case(word, candidate)
        correction = self.spell.correction(lower)
        if not correction or correction == lower:
            return None
        return match_case(word, correction)

    @staticmethod
    def _skip(text: str, start: int, word: str) -> bool:
        if len(word) < 2 or word.isupper() or "'" in word or "’" in word:
            return True
        if word[0].isupper():
            i = start - 1
            while i >= 0 and text[i].isspace():
                i -= 1
            return i >= 0 and text[i] not in _SENTENCE_END
        return False

"""Indefinite article agreement ("a" versus "an")."""

from collections.abc import Iterator
import re

from hybrid_grammar.core.types import Severity, SuggestionType

from .base import RawMessage, match_case

_ARTICLE_RE = re.compile(r"\b(?P<article>an?)(?P<space>\s+)(?P<word>[A-Za-z][\w'-]*)", re.IGNORECASE)

# Silent "h": takes "an"
_AN_PREFIXES = ("hour", "honest", "honor", "honour", "heir")
# Vowel letter with a consonant sound: takes "a"
_A_PREFIXES = (
    "eu", "ewe", "once", "one", "unicorn", "unif", "union", "uniq", "unit",
    "univ", "usa", "usab", "use", "usu", "uten", "uti", "uto",
)
# Letters whose spoken name starts with a vowel sound
_VOWEL_SOUND_LETTERS = frozenset("aefhilmnorsx")


def wants_an(word: str) -> bool:
    """Whether `word` should be preceded by "an"."""
    lower = word.lower()
    if lower.startswith(_AN_PREFIXES):
        return True
    if lower.startswith(_A_PREFIXES):
        return False
    if len(word) > 1 and word.isupper():
        return lower[0] in _VOWEL_SOUND_LETTERS
    return lower[0] in "aeiou"


def _mid_sentence(text: str, start: int) -> bool:
    i = start - 1
    while i >= 0 and text[i].isspace():
        i -= 1
    return i >= 0 and text[i] not in ".!?\"“(:"


class IndefiniteArticleChecker:
    """Flags "a" before a vowel sound and "an" before a consonant sound."""

    name = "articles"

    def check(self, text: str) -> Iterator[RawMessage]:
        for match in _ARTICLE_RE.finditer(text):
            article = match.group("article")
            word = match.group("word")
            if article == "A" and _mid_sentence(text, match.start()):
                continue  # "Plan A is", a label rather than an article
            expected = "an" if wants_an(word) else "a"
            if article.lower() == expected:
                continue
            fixed = match_case(article, expected)
            yield RawMessage(
                checker=self.name,
                rule="articles.indefinite",
                message=f"Use “{fixed}” instead of “{article}” before “{word}”.",
                start=match.start(),
                end=match.end(),
                claimed=match.group(0),
                type=SuggestionType.GRAMMAR,
                severity=Severity.WARNING,
                replacement=f"{fixed}{match.group('space')}{word}",
            )

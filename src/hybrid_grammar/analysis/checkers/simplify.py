"""Wordy phrases with simpler alternatives."""

from collections.abc import Iterator
import re

from hybrid_grammar.core.types import Severity, SuggestionType

from .base import RawMessage, match_case

SIMPLER_PHRASES: dict[str, str] = {
    "a large number of": "many",
    "a majority of": "most",
    "at this point in time": "now",
    "commence": "begin",
    "due to the fact that": "because",
    "facilitate": "help",
    "for the purpose of": "to",
    "has the ability to": "can",
    "in order to": "to",
    "in spite of the fact that": "although",
    "in the event that": "if",
    "in the near future": "soon",
    "prior to": "before",
    "subsequent to": "after",
    "utilize": "use",
    "utilizes": "uses",
    "with regard to": "about",
}

# Longest phrases first so "in spite of the fact that" wins over shorter overlaps
_PHRASE_RE = re.compile(
    r"\b(?:"
    + "|".join(
        re.escape(p).replace(" ", r"\s+")
        for p in sorted(SIMPLER_PHRASES, key=len, reverse=True)
    )
    + r")\b",
    re.IGNORECASE,
)


class SimplificationChecker:
    """Suggests plainer wording for common verbose phrases."""

    name = "simplify"

    def check(self, text: str) -> Iterator[RawMessage]:
        for match in _PHRASE_RE.finditer(text):
            phrase = match.group(0)
            simpler = SIMPLER_PHRASES[" ".join(phrase.lower().split())]
            replacement = match_case(phrase, simpler)
            yield RawMessage(
                checker=self.name,
                rule="simplify.phrase",
                message=f"Consider “{replacement}” instead of “{phrase}”.",
                start=match.start(),
                end=match.end(),
                claimed=phrase,
                type=SuggestionType.STYLE,
                severity=Severity.SUGGESTION,
                replacement=replacement,
            )

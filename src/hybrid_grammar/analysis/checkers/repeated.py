"""Accidentally repeated words."""

from collections.abc import Iterator
import re

from hybrid_grammar.core.types import Severity, SuggestionType

from .base import RawMessage

_REPEATED_RE = re.compile(r"\b(?P<word>\w+)(?:\s+)(?P=word)\b", re.IGNORECASE)

# Legitimate doubling, e.g. "I had had enough"
_ALLOWED = frozenset({"had", "that"})


class RepeatedWordChecker:
    name = "repeated"

    def check(self, text: str) -> Iterator[RawMessage]:
        for match in _REPEATED_RE.finditer(text):
            word = match.group("word")
            if word.lower() in _ALLOWED or word.isdigit():
                continue
            yield RawMessage(
                checker=self.name,
                rule="repeated.word",
                message=f"“{word}” is repeated.",
                start=match.start(),
                end=match.end(),
                claimed=match.group(0),
                type=SuggestionType.STYLE,
                severity=Severity.WARNING,
                replacement=word,
            )

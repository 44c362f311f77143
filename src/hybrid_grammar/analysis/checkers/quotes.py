"""Quotation-mark style consistency.

Straight and typographic quotes are both acceptable on their own; a text that
mixes them gets the minority style flagged so it matches the dominant one.
"""

from collections.abc import Iterator
import re

from hybrid_grammar.core.types import Severity, SuggestionType

from .base import RawMessage

_STRAIGHT_DOUBLE = re.compile(r'"')
_CURLY_DOUBLE = re.compile(r"[“”]")
_STRAIGHT_APOSTROPHE = re.compile(r"(?<=\w)'(?=\w)")
_CURLY_APOSTROPHE = re.compile(r"(?<=\w)’(?=\w)")
_TEX_QUOTES = re.compile(r"``|''")

_OPENING_CONTEXT = " \t\n([{—-"


def _curly_double_for(text: str, index: int) -> str:
    if index == 0 or text[index - 1] in _OPENING_CONTEXT:
        return "“"
    return "”"


class QuoteStyleChecker:
    name = "quotes"

    def check(self, text: str) -> Iterator[RawMessage]:
        yield from self._tex_quotes(text)
        yield from self._double_quotes(text)
        yield from self._apostrophes(text)

    def _tex_quotes(self, text: str) -> Iterator[RawMessage]:
        for match in _TEX_QUOTES.finditer(text):
            mark = match.group(0)
            replacement = "“" if mark == "``" else "”"
            yield self._message(match.start(), mark, replacement, "TeX-style quotes")

    def _double_quotes(self, text: str) -> Iterator[RawMessage]:
        straight = list(_STRAIGHT_DOUBLE.finditer(text))
        curly = list(_CURLY_DOUBLE.finditer(text))
        if not straight or not curly:
            return
        if len(curly) >= len(straight):
            for match in straight:
                replacement = _curly_double_for(text, match.start())
                yield self._message(match.start(), '"', replacement, "straight quotes")
        else:
            for match in curly:
                yield self._message(match.start(), match.group(0), '"', "curly quotes")

    def _apostrophes(self, text: str) -> Iterator[RawMessage]:
        straight = list(_STRAIGHT_APOSTROPHE.finditer(text))
        curly = list(_CURLY_APOSTROPHE.finditer(text))
        if not straight or not curly:
            return
        if len(curly) >= len(straight):
            minority, replacement, label = straight, "’", "straight apostrophes"
        else:
            minority, replacement, label = curly, "'", "curly apostrophes"
        for match in minority:
            yield self._message(match.start(), match.group(0), replacement, label)

    def _message(
        self, start: int, claimed: str, replacement: str, label: str
    ) -> RawMessage:
        return RawMessage(
            checker=self.name,
            rule="quotes.consistency",
            message=f"Mixed quotation styles: replace {label} with “{replacement}”.",
            start=start,
            end=start + len(claimed),
            claimed=claimed,
            type=SuggestionType.STYLE,
            severity=Severity.WARNING,
            replacement=replacement,
        )

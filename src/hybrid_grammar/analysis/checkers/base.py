"""Checker protocol and the raw message type checkers emit."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from hybrid_grammar.core.types import Severity, SuggestionType


@dataclass(frozen=True, slots=True)
class RawMessage:
    """Unvalidated checker output.

    `start`/`end` are Python string indices and `claimed` is the substring the
    checker believes sits there; the pipeline verifies the claim before the
    message becomes a `Suggestion`.
    """

    checker: str
    rule: str
    message: str
    start: int
    end: int
    claimed: str
    type: SuggestionType
    severity: Severity
    replacement: str | None = None


@runtime_checkable
class Checker(Protocol):
    """A single independent linguistic rule family."""

    name: str

    def check(self, text: str) -> Iterable[RawMessage]: ...


def match_case(source: str, replacement: str) -> str:
    """Give `replacement` the capitalisation pattern of `source`."""
    if not source or not replacement:
        return replacement
    if source.isupper() and len(source) > 1:
        return replacement.upper()
    if source[0].isupper():
        return replacement[0].upper() + replacement[1:]
    return replacement

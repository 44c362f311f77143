"""Independent local checkers, in the order the pipeline runs them."""

from .articles import IndefiniteArticleChecker
from .base import Checker, RawMessage, match_case
from .contractions import ContractionChecker
from .passive import PassiveVoiceChecker
from .quotes import QuoteStyleChecker
from .repeated import RepeatedWordChecker
from .simplify import SimplificationChecker
from .spelling import SpellingChecker


def default_checkers(language: str = "en") -> list[Checker]:
    return [
        SpellingChecker(language),
        PassiveVoiceChecker(),
        IndefiniteArticleChecker(),
        RepeatedWordChecker(),
        SimplificationChecker(),
        ContractionChecker(),
        QuoteStyleChecker(),
    ]


__all__ = [
    "Checker",
    "ContractionChecker",
    "IndefiniteArticleChecker",
    "PassiveVoiceChecker",
    "QuoteStyleChecker",
    "RawMessage",
    "RepeatedWordChecker",
    "SimplificationChecker",
    "SpellingChecker",
    "default_checkers",
    "match_case",
]

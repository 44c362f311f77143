"""Passive-voice detection."""

from collections.abc import Iterator
import re

from hybrid_grammar.core.types import Severity, SuggestionType

from .base import RawMessage

_IRREGULAR_PARTICIPLES = (
    "been beaten become begun bent bitten blown born borne bought bound broken "
    "brought built burnt caught chosen come cut dealt done drawn driven drunk "
    "eaten fallen felt fed fought found forbidden forgiven forgotten frozen "
    "given gone grown held heard hidden hit hung hurt kept known laid led left "
    "lent let lost made meant met paid put read rewritten ridden risen run said "
    "seen sent set shaken shot shown shut sold sought spent spoken spun stolen "
    "struck stuck sung sunk swept sworn taken taught thrown thought told torn "
    "understood undone upset woken won worn woven written"
).split()

# -ed words that usually act as adjectives after "be"
_ADJECTIVAL = frozenset(
    "bored concerned excited interested married pleased related relaxed "
    "scared supposed surprised tired used worried".split()
)

_PASSIVE_RE = re.compile(
    r"\b(?:am|is|are|was|were|be|been|being)\s+"
    r"(?:[a-z]+ly\s+)?"
    rf"(?P<participle>[a-z]{{2,}}ed|{'|'.join(_IRREGULAR_PARTICIPLES)})\b",
    re.IGNORECASE,
)


class PassiveVoiceChecker:
    """Flags "be" + past participle constructions."""

    name = "passive"

    def check(self, text: str) -> Iterator[RawMessage]:
        for match in _PASSIVE_RE.finditer(text):
            if match.group("participle").lower() in _ADJECTIVAL:
                continue
            phrase = match.group(0)
            yield RawMessage(
                checker=self.name,
                rule="passive.be-participle",
                message=f"“{phrase}” is passive voice. Consider an active construction.",
                start=match.start(),
                end=match.end(),
                claimed=phrase,
                type=SuggestionType.PASSIVE,
                severity=Severity.SUGGESTION,
            )

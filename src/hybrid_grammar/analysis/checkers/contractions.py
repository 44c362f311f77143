"""Contraction fixes: missing apostrophes and contraction homophones."""

from collections.abc import Iterator
import re

from hybrid_grammar.core.types import Severity, SuggestionType

from .base import RawMessage, match_case

MISSING_APOSTROPHE: dict[str, str] = {
    "arent": "aren't",
    "cant": "can't",
    "couldnt": "couldn't",
    "didnt": "didn't",
    "doesnt": "doesn't",
    "dont": "don't",
    "hadnt": "hadn't",
    "hasnt": "hasn't",
    "havent": "haven't",
    "isnt": "isn't",
    "shouldnt": "shouldn't",
    "thats": "that's",
    "theyre": "they're",
    "wasnt": "wasn't",
    "werent": "weren't",
    "whats": "what's",
    "wouldnt": "wouldn't",
    "youre": "you're",
}

_MISSING_RE = re.compile(
    r"\b(?:" + "|".join(MISSING_APOSTROPHE) + r")\b", re.IGNORECASE
)

# Third-person singular subjects take "doesn't"
_AGREEMENT_RE = re.compile(
    r"\b(?:he|she|it)\s+(?P<verb>don['’]?t)\b", re.IGNORECASE
)

# (pattern, contraction): the homophone is flagged only before these followers
_HOMOPHONES: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(
            r"\b(?P<word>their|there)(?=\s+(?:always|being|coming|doing|getting|"
            r"going|gonna|leaving|looking|never|not|running|trying|working)\b)",
            re.IGNORECASE,
        ),
        "they're",
    ),
    (
        re.compile(
            r"\b(?P<word>your)(?=\s+(?:being|doing|going|not|right|welcome)\b)",
            re.IGNORECASE,
        ),
        "you're",
    ),
    (
        re.compile(
            r"\b(?P<word>its)(?=\s+(?:been|getting|going|important|not|raining|"
            r"time|true)\b)",
            re.IGNORECASE,
        ),
        "it's",
    ),
)


class ContractionChecker:
    """Normalises contractions written without apostrophes or as homophones."""

    name = "contractions"

    def check(self, text: str) -> Iterator[RawMessage]:
        seen: set[int] = set()

        for match in _AGREEMENT_RE.finditer(text):
            verb = match.group("verb")
            start = match.start("verb")
            seen.add(start)
            yield self._message(
                "contractions.agreement",
                f"Use “doesn't” with “{match.group(0).split()[0]}”.",
                start,
                verb,
                match_case(verb, "doesn't"),
            )

        for match in _MISSING_RE.finditer(text):
            if match.start() in seen:
                continue
            word = match.group(0)
            fixed = match_case(word, MISSING_APOSTROPHE[word.lower()])
            yield self._message(
                "contractions.missing-apostrophe",
                f"Did you mean “{fixed}”?",
                match.start(),
                word,
                fixed,
            )

        for pattern, contraction in _HOMOPHONES:
            for match in pattern.finditer(text):
                word = match.group("word")
                fixed = match_case(word, contraction)
                yield self._message(
                    "contractions.homophone",
                    f"“{word}” looks like it should be “{fixed}”.",
                    match.start(),
                    word,
                    fixed,
                )

    def _message(
        self, rule: str, message: str, start: int, claimed: str, replacement: str
    ) -> RawMessage:
        return RawMessage(
            checker=self.name,
            rule=rule,
            message=message,
            start=start,
            end=start + len(claimed),
            claimed=claimed,
            type=SuggestionType.GRAMMAR,
            severity=Severity.WARNING,
            replacement=replacement,
        )

"""Deterministic offline stand-in for the remote services.

Used as the default backend so the engine is fully usable without network
access or credentials. Rewrites are rule-based: only simple past-tense
``<subject> was <participle> by <agent>.`` sentences are turned around.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
import re

from hybrid_grammar.analysis.checkers import PassiveVoiceChecker, SpellingChecker
from hybrid_grammar.text.positions import PositionMapper

from .base import RewriteSuggestion, SentenceRewrite, SpellingCorrection

logger = logging.getLogger(__name__)

_BY_AGENT_RE = re.compile(
    r"^(?P<subject>.+?)\s+(?:was|were)\s+(?:(?P<adverb>[a-z]+ly)\s+)?"
    r"(?P<participle>[A-Za-z]+)\s+by\s+(?P<agent>[^.!?]+?)\s*(?P<end>[.!?]*)$"
)

_PAST_TENSE = {
    "beaten": "beat",
    "begun": "began",
    "bitten": "bit",
    "broken": "broke",
    "chosen": "chose",
    "done": "did",
    "drawn": "drew",
    "driven": "drove",
    "eaten": "ate",
    "forgotten": "forgot",
    "given": "gave",
    "grown": "grew",
    "hidden": "hid",
    "known": "knew",
    "ridden": "rode",
    "seen": "saw",
    "shown": "showed",
    "spoken": "spoke",
    "stolen": "stole",
    "taken": "took",
    "thrown": "threw",
    "worn": "wore",
    "written": "wrote",
}

_SUBJECT_PRONOUNS = {
    "me": "I",
    "him": "he",
    "her": "she",
    "us": "we",
    "them": "they",
}

_DETERMINERS = frozenset("a an the this that these those my our your his her their its".split())


def _active_rewrite(sentence: str) -> str | None:
    match = _BY_AGENT_RE.match(sentence.strip())
    if match is None:
        return None
    participle = match.group("participle")
    lower = participle.lower()
    if lower in _PAST_TENSE:
        verb = _PAST_TENSE[lower]
    elif lower.endswith("ed"):
        verb = lower
    else:
        return None
    if match.group("adverb"):
        verb = f"{match.group('adverb')} {verb}"

    agent = match.group("agent")
    agent = _SUBJECT_PRONOUNS.get(agent.lower(), agent)
    subject = match.group("subject")
    if subject.split()[0].lower() in _DETERMINERS:
        subject = subject[0].lower() + subject[1:]
    return f"{agent[0].upper()}{agent[1:]} {verb} {subject}{match.group('end') or '.'}"


class MockRemoteService:
    """Implements both remote protocols locally and records its calls."""

    def __init__(self, language: str = "en") -> None:
        self._passive = PassiveVoiceChecker()
        self._spelling = SpellingChecker(language)
        self.rewrite_calls: list[tuple[str, ...]] = []
        self.spelling_calls: list[str] = []

    async def rewrite_sentences(
        self, sentences: Sequence[str], *, language: str = "en"
    ) -> list[SentenceRewrite]:
        self.rewrite_calls.append(tuple(sentences))
        results = []
        for sentence in sentences:
            has_passive = any(True for _ in self._passive.check(sentence))
            rewrite = _active_rewrite(sentence) if has_passive else None
            results.append(
                SentenceRewrite(
                    sentence=sentence,
                    has_passive_voice=has_passive,
                    suggestions=(
                        (RewriteSuggestion(type="passive", replacement=rewrite),)
                        if rewrite
                        else ()
                    ),
                )
            )
        logger.debug("Mock rewrite of %d sentences (%s)", len(sentences), language)
        return results

    async def correct_spelling(self, sentence: str) -> list[SpellingCorrection]:
        self.spelling_calls.append(sentence)
        mapper = PositionMapper(sentence)
        corrections = []
        for message in self._spelling.check(sentence):
            if not message.replacement:
                continue
            corrections.append(
                SpellingCorrection(
                    start=mapper.index_to_unit(message.start),
                    end=mapper.index_to_unit(message.end),
                    original=message.claimed,
                    proposed=message.replacement,
                    confidence=0.9,
                )
            )
        return corrections

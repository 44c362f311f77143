"""Local checker pipeline with offset validation.

Checkers are independent and may be wrong about where their match sits, so
every raw message is verified against the text before it becomes a
`Suggestion`. A message whose claimed text cannot be found near its reported
offset is dropped rather than shown in the wrong place.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging

from hybrid_grammar import constants
from hybrid_grammar.core.types import (
    Suggestion,
    SuggestionType,
    TextRange,
    new_suggestion_id,
)
from hybrid_grammar.exceptions import OffsetMismatchError
from hybrid_grammar.telemetry import TelemetryContext, TelemetryContextProtocol
from hybrid_grammar.text.positions import PositionMapper

from .checkers import Checker, RawMessage, default_checkers
from .dictionary import PersonalDictionary

logger = logging.getLogger(__name__)


def reconcile_offsets(
    text: str,
    start: int,
    end: int,
    claimed: str,
    *,
    window: int = constants.OFFSET_SEARCH_WINDOW,
) -> tuple[int, int]:
    """Return the verified code point range of `claimed` in `text`.

    If the text at ``[start, end)`` is not `claimed`, the occurrence closest to
    `start` within `window` characters is used instead.

    Raises:
        OffsetMismatchError: If `claimed` is empty or not found nearby.
    """
    if not claimed:
        raise OffsetMismatchError(claimed, start, end)
    if 0 <= start <= end <= len(text) and text[start:end] == claimed:
        return start, end

    lo = max(0, start - window)
    hi = min(len(text), start + window + len(claimed))
    best: int | None = None
    pos = text.find(claimed, lo, hi)
    while pos != -1:
        if best is None or abs(pos - start) < abs(best - start):
            best = pos
        pos = text.find(claimed, pos + 1, hi)
    if best is None:
        raise OffsetMismatchError(claimed, start, end)
    return best, best + len(claimed)


def confidence_for(checker: str) -> int:
    return constants.CHECKER_CONFIDENCE.get(checker, constants.DEFAULT_CONFIDENCE)


class LocalAnalysisPipeline:
    """Runs the local checkers and turns their output into suggestions.

    Args:
        checkers: Checkers in run order; defaults to the full built-in set.
        dictionary: Optional personal dictionary used to drop spelling hits.
        language: Language for the default checkers.
        telemetry: Optional telemetry context.
    """

    def __init__(
        self,
        checkers: Sequence[Checker] | None = None,
        dictionary: PersonalDictionary | None = None,
        *,
        language: str = "en",
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self._checkers: tuple[Checker, ...] = tuple(
            checkers if checkers is not None else default_checkers(language)
        )
        self._dictionary = dictionary
        self._telemetry = telemetry or TelemetryContext()

    @property
    def checker_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self._checkers)

    async def analyze(self, text: str) -> list[Suggestion]:
        """Run every checker over `text` and apply personal-dictionary filtering."""
        suggestions = self.run_checkers(text)
        return await self._filter_known_words(suggestions)

    def run_checkers(self, text: str) -> list[Suggestion]:
        """Synchronous part of `analyze`: checkers plus offset validation."""
        mapper = PositionMapper(text)
        suggestions: list[Suggestion] = []
        discarded = 0
        for checker in self._checkers:
            try:
                with self._telemetry("local.checker", checker=checker.name):
                    messages = list(checker.check(text))
            except Exception as e:
                logger.warning(
                    "Checker %r failed and was skipped: %s", checker.name, e
                )
                continue
            for message in messages:
                try:
                    suggestions.append(self._to_suggestion(text, mapper, message))
                except OffsetMismatchError as e:
                    discarded += 1
                    logger.debug("Discarded %s message: %s", message.checker, e)
        if discarded:
            self._telemetry.count("local.discarded", discarded)
        suggestions.sort(key=lambda s: (s.range.start, s.range.end))
        return suggestions

    def _to_suggestion(
        self, text: str, mapper: PositionMapper, message: RawMessage
    ) -> Suggestion:
        start, end = reconcile_offsets(
            text, message.start, message.end, message.claimed
        )
        unit_start, unit_end = mapper.validate_range(
            mapper.index_to_unit(start), mapper.index_to_unit(end)
        )
        return Suggestion(
            id=new_suggestion_id(),
            rule=message.rule,
            message=message.message,
            severity=message.severity,
            range=TextRange(unit_start, unit_end),
            type=message.type,
            confidence=confidence_for(message.checker),
            flagged_text=text[start:end],
            replacement=message.replacement,
        )

    async def _filter_known_words(
        self, suggestions: list[Suggestion]
    ) -> list[Suggestion]:
        if self._dictionary is None:
            return suggestions
        try:
            await self._dictionary.initialize()
            return [
                s
                for s in suggestions
                if s.type is not SuggestionType.SPELLING
                or not self._dictionary.has_word(s.flagged_text)
            ]
        except Exception as e:
            logger.warning("Personal dictionary unavailable, not filtering: %s", e)
            return suggestions

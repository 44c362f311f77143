"""Contracts for the remote rewrite and spelling collaborators.

The engine only depends on the two protocols below. Adapters translate them
to a concrete backend and must raise `RemoteCallError` for any failure so the
orchestrator has a single exception type to recover from.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
import dataclasses
import logging
from random import random
from typing import Protocol, runtime_checkable

from hybrid_grammar import constants
from hybrid_grammar.exceptions import RemoteCallError

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class RewriteSuggestion:
    type: str
    replacement: str


@dataclasses.dataclass(frozen=True, slots=True)
class SentenceRewrite:
    """Remote verdict for one sentence."""

    sentence: str
    has_passive_voice: bool
    suggestions: tuple[RewriteSuggestion, ...] = ()

    @property
    def best_replacement(self) -> str | None:
        """First non-empty rewrite that actually changes the sentence."""
        for suggestion in self.suggestions:
            text = suggestion.replacement.strip()
            if text and text != self.sentence.strip():
                return text
        return None


@dataclasses.dataclass(frozen=True, slots=True)
class SpellingCorrection:
    """A spelling fix positioned in UTF-16 units relative to its sentence."""

    start: int
    end: int
    original: str
    proposed: str
    confidence: float = 0.9


@runtime_checkable
class SentenceRewriter(Protocol):
    async def rewrite_sentences(
        self, sentences: Sequence[str], *, language: str = "en"
    ) -> list[SentenceRewrite]: ...


@runtime_checkable
class SpellingCorrector(Protocol):
    async def correct_spelling(self, sentence: str) -> list[SpellingCorrection]: ...


def is_transient_error(err: BaseException) -> bool:
    text = str(err).lower()
    return (
        "timeout" in text
        or "timed out" in text
        or "429" in text
        or "rate limit" in text
        or "temporarily" in text
        or "unavailable" in text
    )


async def call_with_backoff[T](
    call: Callable[[], Awaitable[T]],
    *,
    service: str,
    attempts: int = constants.REMOTE_RETRIES,
    base_delay: float = constants.REMOTE_RETRY_BASE_DELAY,
) -> T:
    """Run `call`, retrying transient failures with jittered exponential backoff.

    Non-transient errors are not retried. Whatever escapes is wrapped in
    `RemoteCallError` tagged with `service`.
    """
    try:
        return await call()
    except RemoteCallError:
        raise
    except Exception as first:
        last: Exception = first

    if not is_transient_error(last):
        raise RemoteCallError(f"call failed: {last}", service=service, cause=last) from last

    for i in range(attempts):
        sleep_for = base_delay * (2**i) * (1 + 0.25 * random())  # noqa: S311
        logger.debug("Retrying %s in %.2fs after: %s", service, sleep_for, last)
        await asyncio.sleep(sleep_for)
        try:
            return await call()
        except Exception as e:
            last = e
            if not is_transient_error(e):
                break
    raise RemoteCallError(f"call failed: {last}", service=service, cause=last) from last

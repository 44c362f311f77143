"""Client-only versus hybrid processing decision.

The policy is a pure function of the text and the request options. Rules are
evaluated in a fixed order and the first match wins, so cost and length act
as hard ceilings over any enhancement the caller asked for.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math

from hybrid_grammar import constants
from hybrid_grammar.core.types import CheckOptions, Priority, ProcessingDecision
from hybrid_grammar.text.segmentation import utf16_length, word_count

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DecisionPolicy:
    """Chooses client-only or hybrid processing for a request."""

    max_cost_per_check: float = constants.MAX_COST_PER_CHECK
    max_client_words: int = constants.MAX_CLIENT_WORDS
    price_per_1k_tokens: float = constants.PRICE_PER_1K_TOKENS

    def estimate_tokens(self, text: str) -> int:
        return math.ceil(utf16_length(text) / constants.CHARS_PER_TOKEN)

    def estimate_cost(self, text: str) -> float:
        return self.estimate_tokens(text) / 1000 * self.price_per_1k_tokens

    def decide(self, text: str, options: CheckOptions | None = None) -> ProcessingDecision:
        """Return the processing decision for `text` under `options`.

        Rules, first match wins:
            1. Estimated remote cost above the per-check ceiling: client only.
            2. More words than the client-feasibility threshold: client only.
            3. Fast priority: client only.
            4. Passive-voice enhancement, style analysis or quality priority: hybrid.
            5. Otherwise: client only.
        """
        options = options or CheckOptions()
        cost = self.estimate_cost(text)
        words = word_count(text)

        if cost > self.max_cost_per_check:
            return ProcessingDecision(
                use_client_only=True,
                reason="cost ceiling exceeded",
                estimated_cost=cost,
                estimated_latency_ms=constants.CLIENT_LATENCY_MS,
            )

        if words > self.max_client_words:
            return self._client_only("too long for remote enhancement")

        requested = self._requested_enhancements(options)

        if options.priority is Priority.FAST:
            reason = "fast priority requested"
            if requested:
                # Explicit enhancement flags lose to fast; keep a trace of it.
                logger.debug("Fast priority suppressed: %s", ", ".join(requested))
                reason += f" (suppressed: {', '.join(requested)})"
            return self._client_only(reason)

        if requested:
            return ProcessingDecision(
                use_client_only=False,
                reason="; ".join(requested),
                estimated_cost=cost,
                estimated_latency_ms=max(
                    constants.MIN_REMOTE_LATENCY_MS,
                    words * constants.REMOTE_LATENCY_PER_WORD_MS,
                ),
            )

        return self._client_only("default")

    @staticmethod
    def _requested_enhancements(options: CheckOptions) -> list[str]:
        fired: list[str] = []
        if options.enhance_passive_voice:
            fired.append("passive voice enhancement requested")
        if options.include_style:
            fired.append("style analysis requested")
        if options.priority is Priority.QUALITY:
            fired.append("quality priority requested")
        return fired

    @staticmethod
    def _client_only(reason: str) -> ProcessingDecision:
        return ProcessingDecision(
            use_client_only=True,
            reason=reason,
            estimated_cost=0.0,
            estimated_latency_ms=constants.CLIENT_LATENCY_MS,
        )

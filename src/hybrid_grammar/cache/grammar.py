"""Content-addressed cache for analysis results."""

from __future__ import annotations

from collections.abc import Mapping
import hashlib
import json
import logging
from typing import Any

from hybrid_grammar import constants
from hybrid_grammar.core.types import CheckOptions, CheckResult
from hybrid_grammar.text.segmentation import (
    normalize_text,
    slice_utf16,
    utf16_length,
    word_count,
)

from .store import CacheConfig, ResultCache

logger = logging.getLogger(__name__)

GRAMMAR_CACHE_CONFIG = CacheConfig(
    max_size=constants.GRAMMAR_CACHE_MAX_SIZE,
    ttl_seconds=constants.GRAMMAR_CACHE_TTL_SECONDS,
    key_prefix=constants.GRAMMAR_CACHE_PREFIX,
    persist=True,
)


def grammar_cache_key(text: str, options: CheckOptions | Mapping[str, Any]) -> str:
    """Stable key over the text and the options that affect the result.

    The payload is canonical JSON with sorted keys, so the option order a
    caller used never changes the key. Length and word count are computed on
    the raw text and keep texts that normalise identically apart.
    """
    fields = options.cache_fields() if isinstance(options, CheckOptions) else dict(options)
    payload = {
        "options": fields,
        "text": normalize_text(text),
        "text_length": utf16_length(text),
        "word_count": word_count(text),
    }
    canonical = json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _matches_text(result: CheckResult, text: str) -> bool:
    try:
        return all(
            slice_utf16(text, s.range.start, s.range.end) == s.flagged_text
            for s in result.suggestions
        )
    except UnicodeDecodeError:
        return False


class GrammarResultCache(ResultCache[dict[str, Any]]):
    """`ResultCache` storing `CheckResult` dictionaries under content keys."""

    def __init__(self, config: CacheConfig | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("cache_type", "grammar")
        super().__init__(config or GRAMMAR_CACHE_CONFIG, **kwargs)

    def get_result(self, text: str, options: CheckOptions) -> CheckResult | None:
        """Cached result for `text`, or None.

        Distinct texts can share a key when their normal forms and lengths
        agree (compatibility characters such as U+212B against U+00C5). A hit
        whose suggestions do not match `text` at their ranges is a miss.
        """
        data = self.get(grammar_cache_key(text, options))
        if data is None:
            return None
        result = CheckResult.from_dict(data)
        if not _matches_text(result, text):
            logger.debug("Cached result does not match the requested text, ignoring it")
            return None
        return result

    async def set_result(
        self, text: str, options: CheckOptions, result: CheckResult
    ) -> None:
        await self.set(grammar_cache_key(text, options), result.to_dict())

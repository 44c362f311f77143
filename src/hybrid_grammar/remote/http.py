"""JSON-over-HTTP adapter for a self-hosted rewrite backend."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from hybrid_grammar import constants
from hybrid_grammar.exceptions import RemoteCallError

from .base import SentenceRewrite, SpellingCorrection, call_with_backoff
from .schema import RewriteResponse, SpellingResponse

logger = logging.getLogger(__name__)


class HTTPRemoteService:
    """Posts to ``<endpoint>/rewrite`` and ``<endpoint>/spelling``.

    Args:
        endpoint_url: Base URL of the backend.
        api_key: Sent as a bearer token when given.
        timeout: Per-request timeout in seconds.
        retries: Extra attempts for transient failures.
        client: Pre-built client, mainly for tests with a mock transport.
    """

    service_name = "http"

    def __init__(
        self,
        endpoint_url: str,
        *,
        api_key: str | None = None,
        timeout: float = constants.REMOTE_TIMEOUT_SECONDS,
        retries: int = constants.REMOTE_RETRIES,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(
            base_url=endpoint_url.rstrip("/"), timeout=timeout, headers=headers
        )
        self._retries = retries

    async def rewrite_sentences(
        self, sentences: Sequence[str], *, language: str = "en"
    ) -> list[SentenceRewrite]:
        sentences = list(sentences)
        if not sentences:
            return []
        response = await self._post(
            "/rewrite",
            {"sentences": sentences, "language": language},
            RewriteResponse,
        )
        return response.to_rewrites(sentences)

    async def correct_spelling(self, sentence: str) -> list[SpellingCorrection]:
        response = await self._post(
            "/spelling",
            {
                "sentence": sentence,
                "wantSpelling": True,
                "wantGrammar": False,
                "wantStyle": False,
            },
            SpellingResponse,
        )
        return response.to_corrections()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post[M: BaseModel](
        self, path: str, body: dict[str, Any], model: type[M]
    ) -> M:
        async def _call() -> M:
            response = await self._client.post(path, json=body)
            response.raise_for_status()
            return model.model_validate_json(response.content)

        try:
            return await call_with_backoff(
                _call, service=self.service_name, attempts=self._retries
            )
        except RemoteCallError as e:
            if isinstance(e.cause, ValidationError):
                logger.warning("Malformed %s response from %s", path, self.service_name)
            raise

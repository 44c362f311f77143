"""Gemini-backed rewrite and spelling services.

Both calls use structured output: the request carries a JSON response schema
built from the wire models and the reply text is validated against the same
model, so no free-form parsing happens here.
"""

from __future__ import annotations

from collections.abc import Sequence
import json
import logging

from google import genai
from google.genai import types
from pydantic import BaseModel

from hybrid_grammar import constants

from .base import SentenceRewrite, SpellingCorrection, call_with_backoff
from .schema import RewriteResponse, SpellingResponse

logger = logging.getLogger(__name__)

_REWRITE_PROMPT = """\
You are an editor. For each sentence in the JSON list below, decide whether it
uses the passive voice. When it does, propose one rewrite in the active voice
that keeps the meaning. Answer with one result per sentence, in order.
Language: {language}
Sentences: {sentences}
"""

_SPELLING_PROMPT = """\
Find spelling mistakes only in the sentence below. Ignore grammar and style.
Report each mistake with its UTF-16 start and end offsets inside the sentence,
the original word, the proposed correction and a confidence between 0 and 1.
Use type "spelling" for every entry.
Sentence: {sentence}
"""


class GeminiRemoteService:
    """Remote collaborators implemented with the google-genai async client."""

    service_name = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = constants.DEFAULT_MODEL,
        retries: int = constants.REMOTE_RETRIES,
        client: genai.Client | None = None,
    ) -> None:
        self._client = client or genai.Client(api_key=api_key)
        self._model = model
        self._retries = retries

    @property
    def model(self) -> str:
        return self._model

    async def rewrite_sentences(
        self, sentences: Sequence[str], *, language: str = "en"
    ) -> list[SentenceRewrite]:
        sentences = list(sentences)
        if not sentences:
            return []
        prompt = _REWRITE_PROMPT.format(
            language=language, sentences=json.dumps(sentences, ensure_ascii=False)
        )
        response = await self._generate(prompt, RewriteResponse)
        return response.to_rewrites(sentences)

    async def correct_spelling(self, sentence: str) -> list[SpellingCorrection]:
        response = await self._generate(
            _SPELLING_PROMPT.format(sentence=sentence), SpellingResponse
        )
        return response.to_corrections()

    async def _generate[M: BaseModel](self, prompt: str, schema: type[M]) -> M:
        config = types.GenerateContentConfig()
        config.response_mime_type = "application/json"
        config.response_schema = schema

        async def _call() -> M:
            response = await self._client.aio.models.generate_content(
                model=self._model, contents=prompt, config=config
            )
            if not response.text:
                raise ValueError("empty response")
            return schema.model_validate_json(response.text)

        logger.debug("Calling %s for %s", self._model, schema.__name__)
        return await call_with_backoff(
            _call, service=self.service_name, attempts=self._retries
        )

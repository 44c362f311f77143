"""Wire models shared by the HTTP and Gemini adapters.

Field aliases follow the camelCase JSON the rewrite backends speak; Python
code uses the snake_case names. The same models double as the response
schema handed to Gemini structured output.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .base import RewriteSuggestion, SentenceRewrite, SpellingCorrection


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RewriteItem(_WireModel):
    type: str = "passive"
    replacement: str | None = None
    proposed: str | None = None

    def to_suggestion(self) -> RewriteSuggestion | None:
        text = self.replacement or self.proposed
        return RewriteSuggestion(type=self.type, replacement=text) if text else None


class SentenceResult(_WireModel):
    sentence: str = ""
    has_passive_voice: bool = Field(default=False, alias="hasPassiveVoice")
    suggestions: list[RewriteItem] = Field(default_factory=list)


class RewriteResponse(_WireModel):
    results: list[SentenceResult] = Field(default_factory=list)

    def to_rewrites(self, sentences: list[str]) -> list[SentenceRewrite]:
        """Pair results with the requested sentences by position.

        Sentences the backend left out come back unchanged with no passive
        voice, so callers always get one entry per input sentence.
        """
        rewrites = []
        for i, sentence in enumerate(sentences):
            if i < len(self.results):
                result = self.results[i]
                suggestions = tuple(
                    s for s in (item.to_suggestion() for item in result.suggestions) if s
                )
                rewrites.append(
                    SentenceRewrite(
                        sentence=sentence,
                        has_passive_voice=result.has_passive_voice,
                        suggestions=suggestions,
                    )
                )
            else:
                rewrites.append(SentenceRewrite(sentence=sentence, has_passive_voice=False))
        return rewrites


class WireRange(_WireModel):
    start: int = Field(ge=0)
    end: int = Field(ge=0)


class SpellingItem(_WireModel):
    type: str = "spelling"
    range: WireRange
    original: str = ""
    proposed: str = ""
    explanation: str | None = None
    confidence: float = 0.9


class SpellingResponse(_WireModel):
    suggestions: list[SpellingItem] = Field(default_factory=list)

    def to_corrections(self) -> list[SpellingCorrection]:
        return [
            SpellingCorrection(
                start=item.range.start,
                end=max(item.range.start, item.range.end),
                original=item.original,
                proposed=item.proposed,
                confidence=item.confidence,
            )
            for item in self.suggestions
            if item.type == "spelling" and item.proposed
        ]

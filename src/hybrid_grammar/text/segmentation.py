"""Sentence and word segmentation plus UTF-16 helpers.

Python strings index by code point while editor offsets are UTF-16 code
units, so the helpers here make the distinction explicit. Sentence offsets
are code point indices into the original string.
"""

import re
from typing import NamedTuple
import unicodedata

# A sentence runs up to and including its terminal punctuation, or to the end.
_SENTENCE_RE = re.compile(r"\S[^.!?]*(?:[.!?]+[\"'”’)\]]*|$)")


class Sentence(NamedTuple):
    """A sentence and its half-open code point span."""

    text: str
    start: int
    end: int


def normalize_text(text: str) -> str:
    """Canonical (NFC) form used for content addressing."""
    return unicodedata.normalize("NFC", text)


def word_count(text: str) -> int:
    return len(text.split())


def utf16_length(text: str) -> int:
    """Length of `text` in UTF-16 code units."""
    return len(text.encode("utf-16-le")) // 2


def slice_utf16(text: str, start: int, end: int) -> str:
    """Slice `text` by UTF-16 code unit offsets.

    Raises:
        UnicodeDecodeError: If either offset splits a surrogate pair.
    """
    encoded = text.encode("utf-16-le")
    return encoded[2 * start : 2 * end].decode("utf-16-le")


def split_sentences(text: str) -> list[Sentence]:
    """Split on terminal punctuation, dropping surrounding whitespace."""
    sentences: list[Sentence] = []
    for match in _SENTENCE_RE.finditer(text):
        chunk = match.group(0).rstrip()
        if not chunk:
            continue
        start = match.start()
        sentences.append(Sentence(chunk, start, start + len(chunk)))
    return sentences


def sentence_containing(text: str, start: int, end: int | None = None) -> Sentence | None:
    """Return the sentence whose span covers ``[start, end)`` in code points.

    A range spanning several sentences yields the first one it touches.
    """
    end = start if end is None else end
    for sentence in split_sentences(text):
        if sentence.start <= start < sentence.end or (
            start == end == sentence.end
        ):
            return sentence
        if start < sentence.start and end > sentence.start:
            return sentence
    return None

"""Text coordinate and segmentation utilities."""

from .positions import Coordinate, PositionMap, PositionMapper
from .segmentation import (
    Sentence,
    normalize_text,
    sentence_containing,
    slice_utf16,
    split_sentences,
    utf16_length,
    word_count,
)

__all__ = [
    "Coordinate",
    "PositionMap",
    "PositionMapper",
    "Sentence",
    "normalize_text",
    "sentence_containing",
    "slice_utf16",
    "split_sentences",
    "utf16_length",
    "word_count",
]

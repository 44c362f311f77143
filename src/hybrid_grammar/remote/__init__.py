"""Remote rewrite and spelling collaborators."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hybrid_grammar.exceptions import ConfigurationError

from .base import (
    RewriteSuggestion,
    SentenceRewrite,
    SentenceRewriter,
    SpellingCorrection,
    SpellingCorrector,
    call_with_backoff,
    is_transient_error,
)
from .gemini import GeminiRemoteService
from .http import HTTPRemoteService
from .mock import MockRemoteService

if TYPE_CHECKING:
    from hybrid_grammar.config import FrozenConfig

logger = logging.getLogger(__name__)

type RemoteService = MockRemoteService | HTTPRemoteService | GeminiRemoteService


def build_remote_service(config: FrozenConfig) -> RemoteService:
    """Instantiate the backend named by ``config.remote_backend``."""
    backend = config.remote_backend
    logger.debug("Using %s remote backend", backend)
    if backend == "mock":
        return MockRemoteService(config.language)
    if backend == "http":
        if not config.endpoint_url:
            raise ConfigurationError("endpoint_url is required for the http backend")
        return HTTPRemoteService(
            config.endpoint_url,
            api_key=config.api_key,
            timeout=config.remote_timeout_seconds,
            retries=config.remote_retries,
        )
    if backend == "gemini":
        if not config.api_key:
            raise ConfigurationError("api_key is required for the gemini backend")
        return GeminiRemoteService(
            config.api_key, model=config.model, retries=config.remote_retries
        )
    raise ConfigurationError(f"Unknown remote backend: {backend!r}")


__all__ = [
    "GeminiRemoteService",
    "HTTPRemoteService",
    "MockRemoteService",
    "RemoteService",
    "RewriteSuggestion",
    "SentenceRewrite",
    "SentenceRewriter",
    "SpellingCorrection",
    "SpellingCorrector",
    "build_remote_service",
    "call_with_backoff",
    "is_transient_error",
]

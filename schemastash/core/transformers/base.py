"""
Base transformer interface.

Every transformation language implements the same contract: an async
transform(wrapped_input) that answers a wrapped output, or None when the
transformation failed. Transformers are user-authored and expected to be
broken from time to time, so failures are logged and never raised.
"""

import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Mapping

from schemastash.core.errors import UnsupportedTransformerLanguageError
from schemastash.observability.logger import get_logger
from schemastash.observability.metrics import (
    increment_counter,
    track_duration,
    transformation_duration_seconds,
    transformations_total,
)

logger = get_logger(__name__)

# Source and input are truncated in failure logs
SNIPPET_LENGTH = 500


class TransformerLanguage(str, Enum):
    """Closed set of supported transformation languages."""

    MAPPING = "mapping"
    JMESPATH = "jmespath"
    JINJA2 = "jinja2"


LANGUAGE_ALIASES = {
    "json": TransformerLanguage.MAPPING,
    "query": TransformerLanguage.JMESPATH,
    "template": TransformerLanguage.JINJA2,
    "jinja": TransformerLanguage.JINJA2,
}


def normalize_language(language: str | TransformerLanguage) -> TransformerLanguage:
    """
    Resolve a language tag or alias.

    Raises:
        UnsupportedTransformerLanguageError: For tags outside the supported set
    """
    if isinstance(language, TransformerLanguage):
        return language
    tag = str(language).strip().lower()
    if tag in LANGUAGE_ALIASES:
        return LANGUAGE_ALIASES[tag]
    try:
        return TransformerLanguage(tag)
    except ValueError:
        raise UnsupportedTransformerLanguageError(str(language)) from None


def _snippet(value: Any) -> str:
    if not isinstance(value, str):
        try:
            value = json.dumps(value, default=str)
        except (TypeError, ValueError):
            value = repr(value)
    if len(value) > SNIPPET_LENGTH:
        return value[:SNIPPET_LENGTH] + "..."
    return value


class Transformer(ABC):
    """
    Abstract base class for all transformers.

    Subclasses compile their source lazily on first use, so a source that
    does not parse fails the invocation the same way a runtime error does.
    """

    def __init__(self, source_code: str, name: str | None = None):
        """
        Initialize transformer.

        Args:
            source_code: Transformer source text in the subclass's language
            name: Optional name used in logs
        """
        self.source_code = source_code
        self.name = name
        self._compiled: Any = None

    @property
    @abstractmethod
    def language(self) -> TransformerLanguage:
        """Return the language identifier."""
        pass

    @abstractmethod
    def compile(self) -> Any:
        """
        Parse the source code.

        Raises:
            Exception: Any parse error of the underlying engine
        """
        pass

    @abstractmethod
    def apply(self, compiled: Any, wrapped: Mapping[str, Any]) -> Any:
        """
        Evaluate compiled source against a wrapped input.

        Raises:
            Exception: Any runtime error of the underlying engine
        """
        pass

    def _get_compiled(self) -> Any:
        if self._compiled is None:
            self._compiled = self.compile()
        return self._compiled

    async def transform(self, wrapped: Mapping[str, Any]) -> Any:
        """
        Run the transformation.

        Args:
            wrapped: {"input": data, **context}

        Returns:
            The transformer's wrapped output ({"output": ...}), or None on failure
        """
        language = self.language.value
        try:
            with track_duration(transformation_duration_seconds, language=language):
                result = self.apply(self._get_compiled(), wrapped)
        except Exception as e:
            logger.error(
                "Transformation failed",
                extra={
                    "transformer": self.name,
                    "language": language,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "transformer_input": _snippet(wrapped),
                    "source_snippet": _snippet(self.source_code),
                },
            )
            increment_counter(transformations_total, language=language, status="failed")
            return None

        increment_counter(transformations_total, language=language, status="success")
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, language={self.language.value})"

"""
JMESPath query transformer.

The source is a single JMESPath expression evaluated against the wrapped
input, e.g.

    {output: {data: {total: sum([input.a, input.b]), label: join('', ['x-', input.name])}}}
"""

from typing import Any, Mapping

import jmespath

from .base import Transformer, TransformerLanguage


class JmesPathTransformer(Transformer):
    """Transformer evaluating a JMESPath expression."""

    @property
    def language(self) -> TransformerLanguage:
        return TransformerLanguage.JMESPATH

    def compile(self) -> Any:
        return jmespath.compile(self.source_code)

    def apply(self, compiled: Any, wrapped: Mapping[str, Any]) -> Any:
        return compiled.search(dict(wrapped))

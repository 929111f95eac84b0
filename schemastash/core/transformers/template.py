"""
Jinja2 template transformer.

The template is rendered in a sandbox with the wrapped input's keys as
variables, plus "inputJson" holding the wrapped input serialized as JSON.
The rendered text must itself be JSON:

    { "output": { "data": { "name": {{ input.name | tojson }} } } }

Undefined variables are errors, not empty strings.
"""

import json
from typing import Any, Mapping

from jinja2 import StrictUndefined
from jinja2.sandbox import SandboxedEnvironment

from .base import Transformer, TransformerLanguage

INPUT_JSON_VARIABLE = "inputJson"

_environment = SandboxedEnvironment(undefined=StrictUndefined, autoescape=False)


class Jinja2Transformer(Transformer):
    """Transformer rendering a sandboxed Jinja2 template to JSON."""

    @property
    def language(self) -> TransformerLanguage:
        return TransformerLanguage.JINJA2

    def compile(self) -> Any:
        return _environment.from_string(self.source_code)

    def apply(self, compiled: Any, wrapped: Mapping[str, Any]) -> Any:
        variables = dict(wrapped)
        variables[INPUT_JSON_VARIABLE] = json.dumps(dict(wrapped))
        rendered = compiled.render(variables)
        return json.loads(rendered)

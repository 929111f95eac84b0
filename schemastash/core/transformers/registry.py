"""
Transformer construction by language tag.
"""

from pathlib import Path

from schemastash.core.errors import UnsupportedTransformerLanguageError
from schemastash.core.models import TransformerRecord

from .base import Transformer, TransformerLanguage, normalize_language
from .mapping import MappingTransformer
from .query import JmesPathTransformer
from .template import Jinja2Transformer

TRANSFORMER_REGISTRY: dict[TransformerLanguage, type[Transformer]] = {
    TransformerLanguage.MAPPING: MappingTransformer,
    TransformerLanguage.JMESPATH: JmesPathTransformer,
    TransformerLanguage.JINJA2: Jinja2Transformer,
}

LANGUAGE_EXTENSIONS: dict[str, TransformerLanguage] = {
    ".json": TransformerLanguage.MAPPING,
    ".mapping": TransformerLanguage.MAPPING,
    ".jmespath": TransformerLanguage.JMESPATH,
    ".jmes": TransformerLanguage.JMESPATH,
    ".j2": TransformerLanguage.JINJA2,
    ".jinja": TransformerLanguage.JINJA2,
    ".jinja2": TransformerLanguage.JINJA2,
}


def make_transformer(
    language: str | TransformerLanguage,
    source_code: str,
    name: str | None = None,
) -> Transformer:
    """
    Build a transformer for a language tag.

    Raises:
        UnsupportedTransformerLanguageError: If no transformer handles the tag
    """
    transformer_class = TRANSFORMER_REGISTRY.get(normalize_language(language))
    if transformer_class is None:
        raise UnsupportedTransformerLanguageError(str(language))
    return transformer_class(source_code, name=name)


def transformer_from_record(record: TransformerRecord) -> Transformer:
    """Build the runnable transformer for a stored definition."""
    return make_transformer(record.language, record.source_code, name=record.name)


def language_for_path(path: str | Path) -> TransformerLanguage:
    """
    Language implied by a transformer file's extension.

    Raises:
        UnsupportedTransformerLanguageError: For unknown extensions
    """
    suffix = Path(path).suffix.lower()
    if suffix not in LANGUAGE_EXTENSIONS:
        raise UnsupportedTransformerLanguageError(suffix or str(path))
    return LANGUAGE_EXTENSIONS[suffix]


def load_transformer_file(path: str | Path, name: str | None = None) -> Transformer:
    """
    Load a transformer from a source file, choosing the language by extension.

    Raises:
        FileNotFoundError: If the file does not exist
        UnsupportedTransformerLanguageError: For unknown extensions
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"transformer file not found: {path}")
    language = language_for_path(path)
    return make_transformer(language, path.read_text(encoding="utf-8"), name=name or path.stem)

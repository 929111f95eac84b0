"""
Input source loaders and record parsers for the import engine.

A loader takes a source path and returns its text content; a parser turns
that content into discrete JSON records. Both may be plain functions or
coroutine functions.
"""

import asyncio
import inspect
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Union

Loader = Callable[[str], Union[str, Awaitable[str]]]
Parser = Callable[[str], Union[list[Any], Awaitable[list[Any]]]]


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def filesystem_loader(path: str) -> str:
    """Read a file as UTF-8 text without blocking the event loop."""
    return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")


def split_lines_parser(content: str) -> list[Any]:
    """Parse JSON Lines content; blank lines are ignored."""
    return [json.loads(line) for line in content.splitlines() if line.strip()]


def json_document_parser(content: str) -> list[Any]:
    """A JSON array yields its items; any other document is a single record."""
    document = json.loads(content)
    return document if isinstance(document, list) else [document]

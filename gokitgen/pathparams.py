"""Helpers for matching URL paths against gRPC-annotation style templates."""

from __future__ import annotations

import json
from typing import Any

__all__ = ["path_params", "build_param_map", "remove_braces", "encode_path_params"]


def build_param_map(url_tmpl: str) -> dict[str, int]:
    """Map each ``{param}`` of a URL template to its slash-separated index."""
    return {
        remove_braces(part): index
        for index, part in enumerate(url_tmpl.split("/"))
        if "{" in part or "}" in part
    }


def remove_braces(val: str) -> str:
    """Return val with every curly brace removed."""
    return val.replace("{", "").replace("}", "")


def path_params(url: str, url_tmpl: str) -> dict[str, str]:
    """Return the values in url of the named parameters of url_tmpl.

    Raises ValueError when the two paths have a different number of parts.
    """
    expected = len(url_tmpl.rstrip("/").split("/"))
    received = len(url.rstrip("/").split("/"))
    if expected != received:
        raise ValueError(
            f"expecting a path containing {expected} parts, "
            f"provided path contains {received} parts"
        )
    parts = url.split("/")
    return {name: parts[index] for name, index in build_param_map(url_tmpl).items()}


def _to_json(value: Any) -> str:
    text = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in (
        ("<", "\\u003c"),
        (">", "\\u003e"),
        ("&", "\\u0026"),
        ("\u2028", "\\u2028"),
        ("\u2029", "\\u2029"),
    ):
        text = text.replace(char, escaped)
    return text


def encode_path_params(path_vars: dict[str, str]) -> dict[str, str]:
    """Fold dotted path variables into JSON objects keyed by their first part.

    ``{"book.name": "books/1"}`` becomes ``{"book": '{"name":"books/1"}'}``.
    Raises ValueError when a key is used both as a value and as an object.
    """
    data: dict[str, Any] = {}
    for key, value in path_vars.items():
        *parents, leaf = key.split(".")
        node = data
        for part in parents:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(f"path variable {key!r} conflicts with value of {part!r}")
            node = child
        if isinstance(node.get(leaf), dict):
            raise ValueError(f"path variable {key!r} conflicts with nested variables")
        node[leaf] = value
    return {
        key: value if isinstance(value, str) else _to_json(value)
        for key, value in data.items()
    }
from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any

from odyssey.core.errors import ParseError

LOCK = threading.Lock()


def safe_join(*parts: str) -> str:
    """Joins path components and validates against path traversal attacks.

    Args:
        *parts: Path components to join

    Returns:
        Normalized safe path

    Raises:
        ValueError: If a component contains ".." or a later component is absolute
    """
    # Check both forward and backward slashes for cross-platform security
    for part in parts:
        path_parts = str(part).replace("\\", "/").split("/")
        if ".." in path_parts:
            raise ValueError(f"Path traversal blocked: {part}")
    for part in parts[1:]:
        if os.path.isabs(str(part)):
            raise ValueError(f"Path traversal blocked: {part}")

    p = os.path.normpath(os.path.join(*[str(part) for part in parts]))
    return p


def _load(path: str | Path) -> Any:
    """Loads a JSON document, raising ParseError if absent or malformed."""
    if not os.path.exists(path):
        raise ParseError(f"Document not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ParseError(f"Malformed JSON in {path}: {e}") from e


def _dump(path: str | Path, data: Any) -> None:
    """Atomically writes a pretty-printed JSON document using temp + rename."""
    tmp = str(path) + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)


def atomic_write_bytes(path: str | Path, content: bytes) -> None:
    """Atomically writes binary content to file using temp + rename.

    Readers never observe a half-written file; on failure the temp file is
    removed and the destination is left untouched.
    """
    tmp = str(path) + ".tmp"
    try:
        with open(tmp, "wb") as f:
            f.write(content)
        os.replace(tmp, path)
    except OSError:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise


def read_json_document(path: str | Path) -> Any:
    """Thread-safe read of a JSON document.

    Args:
        path: Path to JSON file

    Returns:
        Parsed document

    Raises:
        ParseError: If the file is missing or not valid JSON
    """
    with LOCK:
        return _load(path)


def write_json_document(path: str | Path, data: Any) -> None:
    """Thread-safe atomic write of a JSON document (indent=2).

    Args:
        path: Path to JSON file
        data: JSON-serializable document
    """
    with LOCK:
        _dump(path, data)

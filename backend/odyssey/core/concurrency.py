"""Concurrency control for storage uploads.

Bounds the number of uploads in flight across threads (MAX_CONCURRENT_UPLOADS).
A single token's image and metadata uploads are sequential regardless; the
bound applies when several tokens are published in parallel.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Generator

from odyssey.core.config import settings

_upload_sem = threading.BoundedSemaphore(settings.max_concurrent_uploads)
_in_use = 0
_in_use_lock = threading.Lock()


@contextmanager
def upload_slot() -> Generator[None, None, None]:
    """Hold one upload slot for the duration of a storage POST.

    Usage:
        with upload_slot():
            client.post(...)
    """
    global _in_use
    with _upload_sem:
        with _in_use_lock:
            _in_use += 1
        try:
            yield
        finally:
            with _in_use_lock:
                _in_use -= 1


def status() -> dict[str, dict[str, int | None]]:
    """Return upload concurrency status."""
    with _in_use_lock:
        return {
            "upload": {
                "in_use": _in_use,
                "max": settings.max_concurrent_uploads,
            }
        }

from __future__ import annotations

import hashlib


def content_digest(data: bytes) -> str:
    """Hex-encoded SHA-256 of the exact bytes that are sent to storage.

    The digest is stable across calls with identical bytes, so it can be used
    to verify that an uploaded artifact has not been tampered with.

    Args:
        data: Raw artifact bytes (image file contents or serialized metadata)

    Returns:
        64-character hex hash

    Example:
        >>> content_digest(b"abc")[:16]
        'ba7816bf8f01cfea'
    """
    return hashlib.sha256(data).hexdigest()


"""Failure types shared across the asset pipeline."""

from __future__ import annotations


class StructuralInputError(ValueError):
    """Raised when the layer folder tree or a token's selections cannot be built from.

    Covers missing layer prefixes, missing layer files and incomplete or
    duplicate trait coverage. Nothing is written when this is raised.
    """

    pass


class ParseError(ValueError):
    """Raised when a persisted taxonomy or metadata document is absent or malformed."""

    pass


class UploadError(RuntimeError):
    """Raised when an artifact could not be uploaded to permanent storage."""

    pass

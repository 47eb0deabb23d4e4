"""
errors.py — Exception taxonomy shared by every layer.

Only `SummarizationError` (no root summary) and `DocumentError` (document
exists but cannot be read) are meant to reach the CLI; everything else is
caught close to where it happens and degrades to a skip, miss or fallback.
"""

from __future__ import annotations


class DocTreeError(Exception):
    """Base class for all doctree failures."""


class ConfigError(DocTreeError):
    pass


class CacheError(DocTreeError):
    pass


class ServiceError(DocTreeError):
    """The generation service failed or returned nothing usable."""


class SummarizationError(DocTreeError):
    pass


class DocumentError(DocTreeError):
    pass


class StructuralError(DocTreeError):
    """A node path cannot be expressed relative to the project root."""

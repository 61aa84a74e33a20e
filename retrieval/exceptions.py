"""Exceptions raised by the retrieval pipeline."""

from storage.base import SearchError


class SearchUnavailable(SearchError):
    """Hybrid search failed and the semantic-only fallback failed as well."""


class RerankerError(Exception):
    """The re-ranking backend could not score the candidates."""

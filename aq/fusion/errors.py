"""Exceptions raised by provider adapters.

Both concrete errors are isolated per source by the fetcher: a failing source
is simply absent from the successful set and never aborts a combine.
"""
from __future__ import annotations


class SourceError(Exception):
    """Base class for a single source failing to produce a reading."""

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(f"{source_id}: {message}")
        self.source_id = source_id


class ProviderUnavailable(SourceError):
    """Network, HTTP or parse failure for one provider."""


class ConfigurationMissing(SourceError):
    """The credentials needed to query a provider are not configured."""

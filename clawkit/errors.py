"""Shared error types for clawkit.

Goal: invalid configuration and unusable media are ordinary results; only
infrastructure failures (I/O, network, resource release) become exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clawkit.config.validation import ConfigIssue


class ClawkitError(Exception):
    """Base error for clawkit."""


class ConfigError(ClawkitError):
    """Config file could not be read or failed schema validation."""

    def __init__(self, message: str, issues: list[ConfigIssue] | None = None):
        super().__init__(message)
        self.issues = issues or []


class MediaFetchError(ClawkitError):
    """Remote attachment could not be downloaded (blocked, oversized, HTTP error)."""


class MediaProviderError(ClawkitError):
    """Media provider call failed or the provider lacks the capability."""


class AttachmentCleanupError(ClawkitError):
    """Temporary attachment files could not be released."""

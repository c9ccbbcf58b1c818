"""Error taxonomy shared by the handlers and the media source.

Every failure that can reach a client maps to a :class:`StreamGateError`
subclass carrying the HTTP status it should produce. Raw yt-dlp errors are
wrapped at the media-source boundary and never escape unclassified.

Hierarchy
---------
StreamGateError
├── InvalidInputError       400
├── InvalidUrlError         400
├── ResolverError           500
│   └── NoMatchingFormatError
└── StreamError             500
"""
from __future__ import annotations

from typing import Tuple


class StreamGateError(Exception):
    status_code: int = 500


class InvalidInputError(StreamGateError):
    """Neither ``url`` nor ``videoId`` was supplied."""

    status_code = 400


class InvalidUrlError(StreamGateError):
    """The locator did not pass ``MediaSource.validate``."""

    status_code = 400


class ResolverError(StreamGateError):
    """The media source failed to resolve metadata or a format."""


class NoMatchingFormatError(ResolverError):
    def __init__(self, message: str = "No such format found") -> None:
        super().__init__(message)


class StreamError(StreamGateError):
    """The byte stream failed after it was opened."""


# Ordered (substring, message key) pairs; first match wins.
UPSTREAM_ERROR_RULES: Tuple[Tuple[str, str], ...] = (
    ("No such format found", "format_not_found"),
    ("Requested format is not available", "format_not_found"),
    ("Video unavailable", "video_unavailable"),
    ("Private video", "private_video"),
    ("Age-restricted", "age_restricted"),
    ("Sign in to confirm your age", "age_restricted"),
)


def classify_upstream_error(message: str, default: str) -> str:
    """Return the message key for an upstream error text."""
    for needle, key in UPSTREAM_ERROR_RULES:
        if needle in message:
            return key
    return default

"""Inbound message context shared by channels and media preprocessing."""

from typing import Any, TypedDict


class MsgContext(TypedDict, total=False):
    """
    One inbound message as handed from a channel adapter to preprocessing.

    Every key is optional. Preprocessing mutates the mapping in place: media
    keys may be deleted and ``Body`` rewritten, so callers must not share a
    context between concurrent runs.
    """

    Body: str
    MediaPath: str
    MediaPaths: list[str]
    MediaUrls: list[str]
    MediaType: str
    # Written by media understanding
    Transcript: str
    MediaUnderstanding: list[dict[str, Any]]


MEDIA_KEYS = ("MediaPath", "MediaPaths", "MediaUrls")

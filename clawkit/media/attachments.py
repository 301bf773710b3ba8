"""Attachment normalization and the per-run attachment cache."""

import asyncio
import mimetypes
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import httpx
from loguru import logger

from clawkit.context import MsgContext
from clawkit.errors import AttachmentCleanupError, MediaFetchError
from clawkit.media.fetch import DEFAULT_MAX_BYTES, SsrfPolicy, fetch_to_file

AttachmentKind = Literal["path", "url"]

_FAMILY_BY_CAPABILITY = {
    "image": "image/",
    "audio": "audio/",
    "video": "video/",
}

# Extensions mimetypes doesn't know on every platform
_EXTRA_TYPES = {
    ".ogg": "audio/ogg",
    ".oga": "audio/ogg",
    ".opus": "audio/opus",
    ".m4a": "audio/mp4",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".webm": "video/webm",
}


@dataclass(frozen=True)
class MediaAttachment:
    """One media item distilled from the context's media fields."""

    index: int
    kind: AttachmentKind
    location: str
    mime: str | None = None


def guess_mime(location: str) -> str | None:
    """Guess a MIME type from the file extension of a path or URL."""
    suffix = Path(location.split("?", 1)[0].split("#", 1)[0]).suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    return mimetypes.guess_type(f"file{suffix}")[0] if suffix else None


def normalize_media_attachments(ctx: MsgContext) -> list[MediaAttachment]:
    """
    Collect attachments from ``MediaPath``, ``MediaPaths`` and ``MediaUrls``.

    Order is MediaPath, then MediaPaths, then MediaUrls, each in its own
    order. Nothing is deduplicated and the context is not modified. The
    declared ``MediaType`` applies to every item; without it the type is
    guessed from the extension.
    """
    declared = ctx.get("MediaType") or None
    raw: list[tuple[AttachmentKind, str]] = []

    media_path = ctx.get("MediaPath")
    if media_path:
        raw.append(("path", media_path))
    for path in ctx.get("MediaPaths") or []:
        if path:
            raw.append(("path", path))
    for url in ctx.get("MediaUrls") or []:
        if url:
            raw.append(("url", url))

    return [
        MediaAttachment(index=i, kind=kind, location=location, mime=declared or guess_mime(location))
        for i, (kind, location) in enumerate(raw)
    ]


def attachment_matches(capability: str, attachment: MediaAttachment) -> bool:
    """True when the attachment's MIME family matches *capability*."""
    family = _FAMILY_BY_CAPABILITY.get(capability)
    if family is None:
        return False
    mime = attachment.mime or guess_mime(attachment.location)
    if mime and mime.startswith(family):
        return True
    # A declared type can be wrong for mixed albums; fall back to the extension
    guessed = guess_mime(attachment.location)
    return bool(guessed and guessed.startswith(family))


def select_attachments(
    capability: str,
    attachments: list[MediaAttachment],
    max_attachments: int = 1,
) -> list[MediaAttachment]:
    """First *max_attachments* attachments belonging to *capability*."""
    return [a for a in attachments if attachment_matches(capability, a)][:max_attachments]


class MediaAttachmentCache:
    """
    Owns the attachments of one capability run.

    URL attachments are downloaded lazily into a private temp directory the
    first time a local path is needed. ``cleanup()`` removes everything the
    cache created and must run on every exit path; ``async with`` does that.
    Local path attachments belong to the caller and are never deleted.
    """

    def __init__(
        self,
        attachments: list[MediaAttachment],
        *,
        ssrf: SsrfPolicy | None = None,
        max_bytes: int = DEFAULT_MAX_BYTES,
        temp_root: Path | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.attachments = list(attachments)
        self.ssrf = ssrf or SsrfPolicy()
        self.max_bytes = max_bytes
        self._temp_root = temp_root
        self._client = client
        self._temp_dir: Path | None = None
        self._paths: dict[int, Path] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_temp_dir(self) -> Path:
        if self._temp_dir is None:
            if self._temp_root is not None:
                self._temp_root.mkdir(parents=True, exist_ok=True)
            self._temp_dir = Path(
                tempfile.mkdtemp(prefix="clawkit-media-", dir=self._temp_root)
            )
        return self._temp_dir

    async def get_path(self, attachment: MediaAttachment) -> Path:
        """
        Local path for *attachment*, downloading it once if it is a URL.

        Raises:
            MediaFetchError: missing local file, blocked or failed download.
            RuntimeError: the cache was already cleaned up.
        """
        if self._closed:
            raise RuntimeError("attachment cache already cleaned up")

        if attachment.kind == "path":
            path = Path(attachment.location).expanduser()
            if not path.is_file():
                raise MediaFetchError(f"Attachment not found: {path}")
            return path

        async with self._lock:
            cached = self._paths.get(attachment.index)
            if cached is not None:
                return cached
            fetched = await fetch_to_file(
                attachment.location,
                self._ensure_temp_dir(),
                max_bytes=self.max_bytes,
                ssrf=self.ssrf,
                client=self._client,
            )
            self._paths[attachment.index] = fetched.path
            return fetched.path

    async def get_bytes(self, attachment: MediaAttachment, max_bytes: int | None = None) -> bytes:
        """Read the attachment into memory, enforcing *max_bytes* (default: the cache limit)."""
        limit = max_bytes or self.max_bytes
        path = await self.get_path(attachment)
        size = path.stat().st_size
        if size > limit:
            raise MediaFetchError(f"Attachment {attachment.index} is {size} bytes, limit is {limit}")
        return await asyncio.to_thread(path.read_bytes)

    async def cleanup(self) -> None:
        """
        Remove downloaded files. Safe to call more than once.

        Raises:
            AttachmentCleanupError: the temp directory could not be removed.
        """
        if self._closed:
            return
        self._closed = True
        self._paths.clear()

        temp_dir, self._temp_dir = self._temp_dir, None
        if temp_dir is None:
            return

        errors: list[str] = []

        def onexc(func, path, exc):
            errors.append(f"{path}: {exc}")

        await asyncio.to_thread(shutil.rmtree, temp_dir, onexc=onexc)
        if errors:
            raise AttachmentCleanupError(f"Failed to remove {len(errors)} temp item(s): {errors[0]}")
        logger.debug(f"Removed attachment temp dir {temp_dir.name}")

    async def __aenter__(self) -> "MediaAttachmentCache":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.cleanup()
        except AttachmentCleanupError as cleanup_error:
            if exc is None:
                raise
            # Keep the run's own exception; the release failure is only reported
            logger.error(f"Attachment cleanup failed after error: {cleanup_error}")


def create_media_attachment_cache(
    attachments: list[MediaAttachment],
    *,
    ssrf: SsrfPolicy | None = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    temp_root: Path | None = None,
    client: httpx.AsyncClient | None = None,
) -> MediaAttachmentCache:
    """Create the cache for one capability run. Release it with ``await cache.cleanup()``."""
    return MediaAttachmentCache(
        attachments, ssrf=ssrf, max_bytes=max_bytes, temp_root=temp_root, client=client
    )

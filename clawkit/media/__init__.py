"""Media preprocessing: attachment handling, capability gating, providers."""

from clawkit.media.apply import apply_media_understanding
from clawkit.media.attachments import (
    MediaAttachment,
    MediaAttachmentCache,
    create_media_attachment_cache,
    normalize_media_attachments,
)
from clawkit.media.providers import MediaProvider, build_provider_registry
from clawkit.media.runner import CapabilityDecision, MediaOutput, RunResult, run_capability

__all__ = [
    "MediaAttachment",
    "MediaAttachmentCache",
    "MediaOutput",
    "MediaProvider",
    "CapabilityDecision",
    "RunResult",
    "apply_media_understanding",
    "build_provider_registry",
    "create_media_attachment_cache",
    "normalize_media_attachments",
    "run_capability",
]

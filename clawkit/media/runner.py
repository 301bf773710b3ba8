"""Per-capability media understanding: decide, process, or strip.

``run_capability`` is evaluated once per (message, capability) pair. When the
capability's own media is deliberately not consumed (``disabled``, or
``skipped`` with no provider) and ``stripFromPrompt`` is set, raw media
references are removed from the context so the agent never sees file paths it
can't use.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal

from loguru import logger

from clawkit.config.schema import Config, MediaCapabilityConfig, MediaModelConfig
from clawkit.config.validation import ensure_config
from clawkit.context import MEDIA_KEYS, MsgContext
from clawkit.errors import MediaFetchError
from clawkit.media.attachments import (
    MediaAttachment,
    MediaAttachmentCache,
    guess_mime,
    select_attachments,
)
from clawkit.media.providers import (
    DEFAULT_AUDIO_PROMPT,
    DEFAULT_IMAGE_PROMPT,
    DEFAULT_VIDEO_PROMPT,
    MediaProvider,
    ProviderRegistry,
    build_provider_registry,
)

Outcome = Literal["processed", "disabled", "skipped", "error"]

# Text used in "[<label> received - not processed]"
CAPABILITY_LABELS = {
    "image": "image",
    "audio": "audio",
    "video": "video",
}

OUTPUT_KINDS = {
    "image": "image.description",
    "audio": "audio.transcription",
    "video": "video.description",
}

_DEFAULT_PROMPTS = {
    "image": DEFAULT_IMAGE_PROMPT,
    "audio": DEFAULT_AUDIO_PROMPT,
    "video": DEFAULT_VIDEO_PROMPT,
}

_FALLBACK_MIME = {
    "image": "image/jpeg",
    "audio": "audio/ogg",
    "video": "video/mp4",
}

# Skip reasons where this capability's own media went unused
_UNUSED_SKIP_REASONS: frozenset[str] = frozenset({"no-provider"})


@dataclass
class ModelAttempt:
    """One provider call for one attachment."""

    provider: str
    model: str
    outcome: Literal["success", "empty", "failed"]
    error: str | None = None


@dataclass
class AttachmentDecision:
    """What happened to one selected attachment."""

    attachment_index: int
    attempts: list[ModelAttempt] = field(default_factory=list)
    error: str | None = None

    @property
    def chosen(self) -> ModelAttempt | None:
        return next((a for a in self.attempts if a.outcome == "success"), None)


@dataclass
class CapabilityDecision:
    """Terminal classification of one capability run."""

    capability: str
    outcome: Outcome
    reason: str | None = None
    attachments: list[AttachmentDecision] = field(default_factory=list)


@dataclass
class MediaOutput:
    """Text produced from one attachment."""

    kind: str
    attachment_index: int
    text: str
    provider: str
    model: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RunResult:
    decision: CapabilityDecision
    outputs: list[MediaOutput] = field(default_factory=list)


def media_placeholder(capability: str) -> str:
    """Inline marker a channel leaves in ``Body`` for an attachment."""
    return f"<media:{capability}>"


def not_processed_text(capability: str) -> str:
    label = CAPABILITY_LABELS.get(capability, capability)
    return f"[{label} received - not processed]"


def strip_media_from_context(ctx: MsgContext, capability: str) -> None:
    """
    Delete the media keys from *ctx* and rewrite every placeholder in ``Body``.

    Mutates *ctx* in place. Missing keys and a missing ``Body`` are no-ops.
    """
    removed = [key for key in MEDIA_KEYS if key in ctx]
    for key in removed:
        del ctx[key]

    body = ctx.get("Body")
    if body is not None:
        ctx["Body"] = body.replace(media_placeholder(capability), not_processed_text(capability))

    logger.debug(f"Stripped {capability} media from prompt (removed: {removed or 'none'})")


def _candidate_entries(
    capability: str,
    cap_cfg: MediaCapabilityConfig,
    shared: list[MediaModelConfig],
) -> list[MediaModelConfig]:
    entries = list(cap_cfg.models)
    entries.extend(m for m in shared if m.capabilities is None or capability in m.capabilities)
    return entries


def resolve_candidates(
    capability: str,
    cap_cfg: MediaCapabilityConfig,
    shared: list[MediaModelConfig],
    registry: ProviderRegistry,
) -> list[tuple[MediaProvider, str]]:
    """
    Ordered (provider, model) pairs to try for *capability*.

    Configured models win, in order (capability-specific first, then shared).
    With nothing configured, every registered provider that supports the
    capability and has credentials is used with its default model.
    """
    entries = _candidate_entries(capability, cap_cfg, shared)
    if not entries:
        return [
            (provider, provider.default_model(capability))
            for provider in registry.values()
            if provider.supports(capability) and provider.available
        ]

    candidates: list[tuple[MediaProvider, str]] = []
    for entry in entries:
        provider_id = entry.provider.strip().lower()
        if not provider_id:
            logger.warning(f"Ignoring {capability} model entry without a provider")
            continue
        provider = registry.get(provider_id)
        if provider is None:
            logger.warning(f"Unknown media provider '{provider_id}' for {capability}")
            continue
        if not provider.supports(capability):
            logger.debug(f"Provider '{provider_id}' does not support {capability}, skipping")
            continue
        candidates.append((provider, entry.model or provider.default_model(capability)))
    return candidates


def _mime_for(capability: str, attachment: MediaAttachment) -> str:
    family = capability + "/"
    for mime in (attachment.mime, guess_mime(attachment.location)):
        if mime and mime.startswith(family):
            return mime
    return _FALLBACK_MIME[capability]


async def _invoke(
    provider: MediaProvider,
    capability: str,
    path: Path,
    mime: str,
    prompt: str,
    model: str,
) -> str:
    if capability == "image":
        return await provider.describe_image(path, mime, prompt, model)
    if capability == "audio":
        return await provider.transcribe_audio(path, mime, prompt, model)
    return await provider.describe_video(path, mime, prompt, model)


async def _process_attachment(
    capability: str,
    attachment: MediaAttachment,
    cap_cfg: MediaCapabilityConfig,
    cache: MediaAttachmentCache,
    candidates: list[tuple[MediaProvider, str]],
) -> tuple[AttachmentDecision, MediaOutput | None]:
    record = AttachmentDecision(attachment_index=attachment.index)

    try:
        path = await cache.get_path(attachment)
    except MediaFetchError as e:
        logger.warning(f"{capability} attachment {attachment.index} unavailable: {e}")
        record.error = str(e)
        return record, None

    if cap_cfg.max_bytes and path.stat().st_size > cap_cfg.max_bytes:
        record.error = f"larger than maxBytes ({cap_cfg.max_bytes})"
        logger.info(f"{capability} attachment {attachment.index} skipped: {record.error}")
        return record, None

    mime = _mime_for(capability, attachment)
    prompt = cap_cfg.prompt or _DEFAULT_PROMPTS[capability]

    for provider, model in candidates:
        try:
            text = await asyncio.wait_for(
                _invoke(provider, capability, path, mime, prompt, model),
                timeout=cap_cfg.timeout_seconds,
            )
        except Exception as e:
            error = "timed out" if isinstance(e, TimeoutError) else str(e)
            logger.warning(f"{capability} via {provider.id}/{model} failed: {error}")
            record.attempts.append(ModelAttempt(provider.id, model, "failed", error))
            continue

        text = (text or "").strip()
        if not text:
            record.attempts.append(ModelAttempt(provider.id, model, "empty"))
            continue
        if cap_cfg.max_chars and len(text) > cap_cfg.max_chars:
            text = text[: cap_cfg.max_chars].rstrip()

        record.attempts.append(ModelAttempt(provider.id, model, "success"))
        output = MediaOutput(
            kind=OUTPUT_KINDS[capability],
            attachment_index=attachment.index,
            text=text,
            provider=provider.id,
            model=model,
        )
        return record, output

    return record, None


def _media_left_unused(decision: CapabilityDecision) -> bool:
    """True when media of this capability was present but deliberately not consumed."""
    if decision.outcome == "disabled":
        return True
    return decision.outcome == "skipped" and decision.reason in _UNUSED_SKIP_REASONS


async def _decide(
    capability: str,
    config: Config,
    cap_cfg: MediaCapabilityConfig,
    attachments: MediaAttachmentCache,
    media: list[MediaAttachment],
    provider_registry: ProviderRegistry,
) -> RunResult:
    if not cap_cfg.is_enabled:
        return RunResult(CapabilityDecision(capability, "disabled", "disabled-by-config"))

    selected = select_attachments(capability, media, cap_cfg.max_attachments)
    if not selected:
        return RunResult(CapabilityDecision(capability, "skipped", "no-attachment"))

    candidates = resolve_candidates(capability, cap_cfg, config.tools.media.models, provider_registry)
    if not candidates:
        return RunResult(CapabilityDecision(capability, "skipped", "no-provider"))

    decision = CapabilityDecision(capability, "error", "all-providers-failed")
    outputs: list[MediaOutput] = []
    for attachment in selected:
        record, output = await _process_attachment(capability, attachment, cap_cfg, attachments, candidates)
        decision.attachments.append(record)
        if output is not None:
            outputs.append(output)

    if outputs:
        decision.outcome = "processed"
        decision.reason = None
    return RunResult(decision, outputs)


async def run_capability(
    capability: str,
    cfg: Config | Mapping[str, Any],
    ctx: MsgContext,
    attachments: MediaAttachmentCache,
    media: list[MediaAttachment],
    provider_registry: ProviderRegistry | None = None,
) -> RunResult:
    """
    Run one media capability for one message.

    Single pass, no retries. The outcome is one of ``processed``,
    ``disabled``, ``skipped`` or ``error``; outputs are empty unless
    processed. Provider failures become an ``error`` outcome, never an
    exception.

    Side effect: when the capability has ``stripFromPrompt`` set and its
    media went unused (outcome ``disabled``, or ``skipped`` for lack of a
    provider), ``MediaPath``, ``MediaPaths`` and ``MediaUrls`` are deleted
    from *ctx* and every ``<media:CAPABILITY>`` in ``Body`` is replaced. A
    ``skipped`` run with no attachment of its own kind leaves *ctx* alone,
    since those keys then carry other capabilities' media. The caller's
    *ctx* object is mutated.

    Args:
        capability: "image", "audio" or "video".
        cfg: Validated Config, or a raw tree that is validated here.
        ctx: Message context, exclusively owned for the duration of the call.
        attachments: Cache for this run; the caller releases it.
        media: Normalized attachments of *ctx*.
        provider_registry: Providers by id; built from *cfg* when omitted.

    Raises:
        ConfigError: *cfg* is a raw tree that fails validation.
    """
    config = ensure_config(cfg)
    cap_cfg = config.tools.media.for_capability(capability)
    if cap_cfg is None:
        logger.warning(f"Unsupported media capability: {capability!r}")
        return RunResult(CapabilityDecision(capability, "error", "unsupported-capability"))

    if provider_registry is None:
        provider_registry = build_provider_registry(config=config)

    result = await _decide(capability, config, cap_cfg, attachments, media, provider_registry)
    decision = result.decision
    logger.debug(
        f"Media {capability}: {decision.outcome}"
        + (f" ({decision.reason})" if decision.reason else "")
        + f", {len(result.outputs)} output(s)"
    )

    if cap_cfg.strip_from_prompt and _media_left_unused(decision):
        strip_media_from_context(ctx, capability)

    return result

"""Run every media capability for one message and fold results into it."""

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from clawkit.config.schema import Config
from clawkit.config.settings import get_settings
from clawkit.config.validation import ensure_config
from clawkit.context import MsgContext
from clawkit.media.attachments import create_media_attachment_cache, normalize_media_attachments
from clawkit.media.fetch import SsrfPolicy
from clawkit.media.providers import ProviderRegistry, build_provider_registry
from clawkit.media.runner import MediaOutput, RunResult, media_placeholder, run_capability

DEFAULT_CAPABILITIES = ("image", "audio", "video")

_HEADERS = {
    "image.description": ("Image", "Description"),
    "audio.transcription": ("Audio", "Transcript"),
    "video.description": ("Video", "Description"),
}


def format_output(output: MediaOutput) -> str:
    """Render one output as the block the agent sees in ``Body``."""
    title, field_name = _HEADERS.get(output.kind, ("Media", "Description"))
    return f"[{title}]\n{field_name}:\n{output.text}"


def fold_outputs(ctx: MsgContext, outputs: list[MediaOutput]) -> None:
    """
    Write *outputs* into *ctx*.

    Each output replaces the first remaining placeholder of its capability,
    or is appended to ``Body`` when none is left. Audio transcripts are also
    joined into ``Transcript``; every output is recorded under
    ``MediaUnderstanding``.
    """
    if not outputs:
        return

    body = ctx.get("Body")
    for output in outputs:
        block = format_output(output)
        placeholder = media_placeholder(output.kind.split(".", 1)[0])
        if body and placeholder in body:
            body = body.replace(placeholder, block, 1)
        else:
            body = f"{body}\n\n{block}" if body else block
    ctx["Body"] = body

    transcripts = [o.text for o in outputs if o.kind == "audio.transcription"]
    if transcripts:
        ctx["Transcript"] = "\n".join(transcripts)

    ctx.setdefault("MediaUnderstanding", []).extend(o.to_dict() for o in outputs)


async def apply_media_understanding(
    ctx: MsgContext,
    cfg: Config | Mapping[str, Any],
    provider_registry: ProviderRegistry | None = None,
    capabilities: Iterable[str] = DEFAULT_CAPABILITIES,
    temp_root: Path | None = None,
) -> list[RunResult]:
    """
    Preprocess the media of one inbound message before it reaches the agent.

    Attachments are normalized once. Each capability gets its own attachment
    cache, released on every exit path. Capabilities run one after another
    because they share the mutable *ctx*.

    Returns:
        One RunResult per capability, in order.
    """
    config = ensure_config(cfg)
    registry = provider_registry if provider_registry is not None else build_provider_registry(config=config)
    media = normalize_media_attachments(ctx)
    settings = get_settings()
    ssrf = SsrfPolicy.from_config(config.channels.telegram.network.ssrf)

    results: list[RunResult] = []
    for capability in capabilities:
        cap_cfg = config.tools.media.for_capability(capability)
        max_bytes = (cap_cfg.max_bytes if cap_cfg and cap_cfg.max_bytes else None) or settings.fetch_max_bytes
        cache = create_media_attachment_cache(
            media,
            ssrf=ssrf,
            max_bytes=max_bytes,
            temp_root=temp_root or settings.media_dir,
        )
        async with cache:
            result = await run_capability(capability, config, ctx, cache, media, registry)
        results.append(result)

    outputs = [output for result in results for output in result.outputs]
    fold_outputs(ctx, outputs)

    summary = ", ".join(f"{r.decision.capability}={r.decision.outcome}" for r in results)
    logger.info(f"Media understanding: {summary or 'nothing to do'} ({len(media)} attachment(s))")
    return results

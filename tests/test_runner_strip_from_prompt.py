"""Tests for run_capability and its stripFromPrompt side effect."""

import pytest

from clawkit.config.schema import Config
from clawkit.media.attachments import create_media_attachment_cache, normalize_media_attachments
from clawkit.media.providers import build_provider_registry
from clawkit.media.runner import run_capability


def _image_config(**image) -> Config:
    return Config.model_validate({"tools": {"media": {"image": image}}})


@pytest.mark.asyncio
async def test_strips_media_path_paths_and_urls_when_strip_from_prompt_is_true() -> None:
    ctx = {
        "MediaPath": "/tmp/photo.jpg",
        "MediaPaths": ["/tmp/photo.jpg", "/tmp/photo2.jpg"],
        "MediaUrls": ["https://example.com/photo.jpg"],
        "MediaType": "image/jpeg",
        "Body": "Hello <media:image> check this out",
    }
    media = normalize_media_attachments(ctx)
    cache = create_media_attachment_cache(media)
    cfg = _image_config(enabled=False, stripFromPrompt=True)

    try:
        result = await run_capability(
            capability="image",
            cfg=cfg,
            ctx=ctx,
            attachments=cache,
            media=media,
            provider_registry=build_provider_registry(),
        )

        assert result.outputs == []
        assert result.decision.outcome == "disabled"

        assert "MediaPath" not in ctx
        assert "MediaPaths" not in ctx
        assert "MediaUrls" not in ctx

        assert ctx["Body"] == "Hello [image received - not processed] check this out"
        assert ctx["MediaType"] == "image/jpeg"
    finally:
        await cache.cleanup()


@pytest.mark.asyncio
async def test_does_not_strip_media_paths_when_strip_from_prompt_is_absent() -> None:
    ctx = {
        "MediaPath": "/tmp/photo.jpg",
        "MediaPaths": ["/tmp/photo.jpg"],
        "MediaType": "image/jpeg",
        "Body": "Hello <media:image>",
    }
    media = normalize_media_attachments(ctx)
    cache = create_media_attachment_cache(media)
    cfg = _image_config(enabled=False)

    try:
        result = await run_capability(
            capability="image",
            cfg=cfg,
            ctx=ctx,
            attachments=cache,
            media=media,
            provider_registry=build_provider_registry(),
        )

        assert result.decision.outcome == "disabled"

        assert ctx["MediaPath"] == "/tmp/photo.jpg"
        assert ctx["MediaPaths"] == ["/tmp/photo.jpg"]
        assert ctx["Body"] == "Hello <media:image>"
    finally:
        await cache.cleanup()


@pytest.mark.asyncio
async def test_does_not_strip_when_strip_from_prompt_is_false() -> None:
    ctx = {
        "MediaPath": "/tmp/photo.jpg",
        "MediaUrls": ["https://example.com/photo.jpg"],
        "Body": "Hello <media:image>",
    }
    before = dict(ctx)
    media = normalize_media_attachments(ctx)
    cache = create_media_attachment_cache(media)

    try:
        result = await run_capability(
            "image", _image_config(enabled=False, stripFromPrompt=False), ctx, cache, media, {}
        )
    finally:
        await cache.cleanup()

    assert result.decision.outcome == "disabled"
    assert ctx == before


@pytest.mark.asyncio
async def test_handles_multiple_media_image_placeholders_in_body() -> None:
    ctx = {
        "MediaPath": "/tmp/a.jpg",
        "MediaPaths": ["/tmp/a.jpg", "/tmp/b.jpg"],
        "MediaType": "image/jpeg",
        "Body": "<media:image> and <media:image> two images",
    }
    media = normalize_media_attachments(ctx)
    cache = create_media_attachment_cache(media)
    cfg = _image_config(enabled=False, stripFromPrompt=True)

    try:
        await run_capability(
            capability="image",
            cfg=cfg,
            ctx=ctx,
            attachments=cache,
            media=media,
            provider_registry=build_provider_registry(),
        )

        assert ctx["Body"] == (
            "[image received - not processed] and [image received - not processed] two images"
        )
        assert "MediaPath" not in ctx
        assert "MediaPaths" not in ctx
    finally:
        await cache.cleanup()


@pytest.mark.asyncio
async def test_handles_missing_body_gracefully_when_strip_from_prompt_is_true() -> None:
    ctx = {
        "MediaPath": "/tmp/photo.jpg",
        "MediaType": "image/jpeg",
    }
    media = normalize_media_attachments(ctx)
    cache = create_media_attachment_cache(media)
    cfg = _image_config(enabled=False, stripFromPrompt=True)

    try:
        result = await run_capability(
            capability="image",
            cfg=cfg,
            ctx=ctx,
            attachments=cache,
            media=media,
            provider_registry=build_provider_registry(),
        )

        assert result.decision.outcome == "disabled"
        assert "MediaPath" not in ctx
        # Body was absent and must stay absent
        assert "Body" not in ctx
    finally:
        await cache.cleanup()


@pytest.mark.asyncio
async def test_only_the_capability_placeholder_is_rewritten() -> None:
    ctx = {"MediaPath": "/tmp/a.jpg", "Body": "<media:image> <media:audio> <media:Image>"}
    media = normalize_media_attachments(ctx)
    cache = create_media_attachment_cache(media)

    try:
        await run_capability("image", _image_config(enabled=False, stripFromPrompt=True), ctx, cache, media, {})
    finally:
        await cache.cleanup()

    assert ctx["Body"] == "[image received - not processed] <media:audio> <media:Image>"


@pytest.mark.asyncio
async def test_raw_mapping_config_is_accepted() -> None:
    ctx = {"MediaUrls": ["https://example.com/photo.jpg"], "Body": "<media:image>"}
    media = normalize_media_attachments(ctx)
    cache = create_media_attachment_cache(media)
    cfg = {"tools": {"media": {"image": {"enabled": False, "stripFromPrompt": True}}}}

    try:
        result = await run_capability("image", cfg, ctx, cache, media, {})
    finally:
        await cache.cleanup()

    assert result.decision.outcome == "disabled"
    assert ctx == {"Body": "[image received - not processed]"}

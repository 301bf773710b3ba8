"""Media understanding providers supporting multiple backends."""

import asyncio
import base64
import os
from abc import ABC
from pathlib import Path
from typing import ClassVar

import httpx
from loguru import logger

from clawkit.config.schema import Config
from clawkit.errors import MediaProviderError

DEFAULT_IMAGE_PROMPT = "Describe the image."
DEFAULT_AUDIO_PROMPT = "Transcribe the audio."
DEFAULT_VIDEO_PROMPT = "Describe the video."


class MediaProvider(ABC):
    """
    Base class for media understanding backends.

    Subclasses override the operations they support and list them in
    ``capabilities``; the defaults raise MediaProviderError.
    """

    id: ClassVar[str] = "base"
    capabilities: ClassVar[frozenset[str]] = frozenset()
    env_key: ClassVar[str | None] = None
    default_models: ClassVar[dict[str, str]] = {}

    def __init__(self, api_key: str | None = None, api_base: str | None = None, timeout: float = 60.0):
        self.api_key = api_key or (os.environ.get(self.env_key) if self.env_key else None)
        self.api_base = api_base
        self.timeout = timeout

    @property
    def available(self) -> bool:
        """True when the provider has credentials to make calls."""
        return bool(self.api_key)

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities

    def default_model(self, capability: str) -> str:
        return self.default_models.get(capability, "")

    def _require_key(self) -> str:
        if not self.api_key:
            raise MediaProviderError(f"{self.id}: API key not configured")
        return self.api_key

    async def describe_image(self, path: Path, mime: str, prompt: str, model: str) -> str:
        raise MediaProviderError(f"{self.id} does not support image")

    async def transcribe_audio(self, path: Path, mime: str, prompt: str, model: str) -> str:
        raise MediaProviderError(f"{self.id} does not support audio")

    async def describe_video(self, path: Path, mime: str, prompt: str, model: str) -> str:
        raise MediaProviderError(f"{self.id} does not support video")


async def _read_base64(path: Path) -> str:
    data = await asyncio.to_thread(path.read_bytes)
    return base64.b64encode(data).decode()


async def _post(url: str, timeout: float, **kwargs) -> dict:
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, timeout=timeout, **kwargs)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPError as e:
        raise MediaProviderError(f"Request to {url} failed: {e}") from e
    except ValueError as e:
        raise MediaProviderError(f"Invalid JSON from {url}: {e}") from e


class OpenAIMediaProvider(MediaProvider):
    """Image description via chat completions, transcription via Whisper."""

    id = "openai"
    capabilities = frozenset({"image", "audio"})
    env_key = "OPENAI_API_KEY"
    default_models = {"image": "gpt-4o-mini", "audio": "whisper-1"}

    @property
    def base_url(self) -> str:
        return (self.api_base or "https://api.openai.com/v1").rstrip("/")

    async def describe_image(self, path: Path, mime: str, prompt: str, model: str) -> str:
        key = self._require_key()
        data_url = f"data:{mime};base64,{await _read_base64(path)}"
        payload = {
            "model": model or self.default_model("image"),
            "messages": [{
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }],
        }
        data = await _post(
            f"{self.base_url}/chat/completions",
            self.timeout,
            json=payload,
            headers={"Authorization": f"Bearer {key}"},
        )
        choices = data.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message", {}).get("content") or "").strip()

    async def transcribe_audio(self, path: Path, mime: str, prompt: str, model: str) -> str:
        key = self._require_key()
        with open(path, "rb") as f:
            data = await _post(
                f"{self.base_url}/audio/transcriptions",
                self.timeout,
                files={"file": (path.name, f, mime)},
                data={"model": model or self.default_model("audio")},
                headers={"Authorization": f"Bearer {key}"},
            )
        return (data.get("text") or "").strip()


class GroqMediaProvider(MediaProvider):
    """
    Voice transcription using Groq's Whisper API.

    Groq offers extremely fast transcription with a generous free tier.
    """

    id = "groq"
    capabilities = frozenset({"audio"})
    env_key = "GROQ_API_KEY"
    default_models = {"audio": "whisper-large-v3"}

    async def transcribe_audio(self, path: Path, mime: str, prompt: str, model: str) -> str:
        key = self._require_key()
        base = (self.api_base or "https://api.groq.com/openai/v1").rstrip("/")
        with open(path, "rb") as f:
            data = await _post(
                f"{base}/audio/transcriptions",
                self.timeout,
                files={
                    "file": (path.name, f),
                    "model": (None, model or self.default_model("audio")),
                },
                headers={"Authorization": f"Bearer {key}"},
            )
        return (data.get("text") or "").strip()


class GeminiMediaProvider(MediaProvider):
    """
    Image, audio and video understanding through Gemini generateContent.

    Media is sent inline as base64, so this suits the small attachments
    chat channels deliver.
    """

    id = "gemini"
    capabilities = frozenset({"image", "audio", "video"})
    env_key = "GEMINI_API_KEY"
    default_models = {
        "image": "gemini-2.0-flash",
        "audio": "gemini-2.0-flash",
        "video": "gemini-2.0-flash",
    }

    def __init__(self, api_key: str | None = None, api_base: str | None = None, timeout: float = 60.0):
        super().__init__(api_key or os.environ.get("GOOGLE_API_KEY"), api_base, timeout)

    async def _generate(self, path: Path, mime: str, prompt: str, model: str) -> str:
        key = self._require_key()
        base = (self.api_base or "https://generativelanguage.googleapis.com/v1beta").rstrip("/")
        payload = {
            "contents": [{
                "parts": [
                    {"inline_data": {"mime_type": mime, "data": await _read_base64(path)}},
                    {"text": prompt},
                ]
            }]
        }
        data = await _post(
            f"{base}/models/{model}:generateContent",
            self.timeout,
            json=payload,
            headers={"x-goog-api-key": key},
        )
        candidates = data.get("candidates", [])
        if candidates:
            parts = candidates[0].get("content", {}).get("parts", [])
            if parts:
                return parts[0].get("text", "").strip()
        return ""

    async def describe_image(self, path: Path, mime: str, prompt: str, model: str) -> str:
        return await self._generate(path, mime, prompt, model or self.default_model("image"))

    async def transcribe_audio(self, path: Path, mime: str, prompt: str, model: str) -> str:
        return await self._generate(path, mime, prompt, model or self.default_model("audio"))

    async def describe_video(self, path: Path, mime: str, prompt: str, model: str) -> str:
        return await self._generate(path, mime, prompt, model or self.default_model("video"))


BUILTIN_PROVIDERS: tuple[type[MediaProvider], ...] = (
    OpenAIMediaProvider,
    GeminiMediaProvider,
    GroqMediaProvider,
)

ProviderRegistry = dict[str, MediaProvider]


def build_provider_registry(
    overrides: dict[str, MediaProvider] | None = None,
    config: Config | None = None,
) -> ProviderRegistry:
    """
    Build the provider registry keyed by lowercase provider id.

    API keys come from ``providers.<id>`` in *config* when set, otherwise from
    the provider's environment variable. *overrides* replace or extend the
    built-in providers.

    Example:
        registry = build_provider_registry({"local": MyLocalProvider()})
    """
    registry: ProviderRegistry = {}
    for provider_cls in BUILTIN_PROVIDERS:
        block = config.providers.get(provider_cls.id) if config else None
        registry[provider_cls.id] = provider_cls(
            api_key=block.api_key if block and block.api_key else None,
            api_base=block.api_base if block else None,
        )

    for name, provider in (overrides or {}).items():
        registry[name.lower()] = provider

    ready = [name for name, p in registry.items() if p.available]
    logger.debug(f"Media providers registered: {sorted(registry)} (with credentials: {ready})")
    return registry

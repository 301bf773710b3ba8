"""Shared fixtures for clawkit tests."""

from pathlib import Path

import pytest

from clawkit.media.providers import MediaProvider


class FakeMediaProvider(MediaProvider):
    """In-memory provider recording every call."""

    def __init__(
        self,
        provider_id: str = "fake",
        capabilities: frozenset[str] = frozenset({"image", "audio", "video"}),
        text: str = "a cat on a sofa",
        error: Exception | None = None,
    ):
        super().__init__(api_key="test-key")
        self.id = provider_id
        self.capabilities = capabilities
        self.text = text
        self.error = error
        self.calls: list[tuple[str, Path, str, str]] = []

    async def _respond(self, capability: str, path: Path, mime: str, model: str) -> str:
        self.calls.append((capability, path, mime, model))
        if self.error is not None:
            raise self.error
        return self.text

    async def describe_image(self, path, mime, prompt, model):
        return await self._respond("image", path, mime, model)

    async def transcribe_audio(self, path, mime, prompt, model):
        return await self._respond("audio", path, mime, model)

    async def describe_video(self, path, mime, prompt, model):
        return await self._respond("video", path, mime, model)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep provider keys and CLAWKIT_* settings from the host out of tests."""
    for name in (
        "OPENAI_API_KEY",
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
        "GROQ_API_KEY",
        "CLAWKIT_CONFIG_PATH",
        "CLAWKIT_LOG_LEVEL",
        "CLAWKIT_FETCH_MAX_BYTES",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CLAWKIT_MEDIA_DIR", str(tmp_path / "media"))


@pytest.fixture
def image_file(tmp_path):
    """A small file with a .jpg name."""
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
    return path


@pytest.fixture
def audio_file(tmp_path):
    """A small file with an .ogg name."""
    path = tmp_path / "voice.ogg"
    path.write_bytes(b"OggSfake-audio")
    return path


@pytest.fixture
def fake_provider():
    return FakeMediaProvider()

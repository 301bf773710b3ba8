"""Tests for bounded media download and the SSRF guard."""

import httpx
import pytest

from clawkit.config.schema import SsrfConfig
from clawkit.errors import MediaFetchError
from clawkit.media.fetch import SsrfPolicy, check_url, fetch_to_file

ALLOW_EXAMPLE = SsrfPolicy(allowed_hostnames=frozenset({"example.com"}))


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestSsrfPolicy:
    """Which URLs may be fetched."""

    def test_from_config_lowercases_hostnames(self):
        policy = SsrfPolicy.from_config(SsrfConfig(allowedHostnames=["MinIO.Internal"], allowPrivateNetwork=False))
        assert policy.is_allowlisted("minio.internal")

    def test_wildcard_matches_subdomains_only(self):
        policy = SsrfPolicy(allowed_hostnames=frozenset({"*.example.com"}))
        assert policy.is_allowlisted("cdn.example.com")
        assert not policy.is_allowlisted("example.com")
        assert not policy.is_allowlisted("badexample.com")

    @pytest.mark.asyncio
    async def test_loopback_ip_is_blocked(self):
        with pytest.raises(MediaFetchError, match="Blocked private address"):
            await check_url("http://127.0.0.1/photo.jpg", SsrfPolicy())

    @pytest.mark.asyncio
    async def test_private_ip_is_blocked(self):
        with pytest.raises(MediaFetchError):
            await check_url("http://10.0.0.5/photo.jpg", SsrfPolicy())

    @pytest.mark.asyncio
    async def test_localhost_name_is_blocked(self):
        with pytest.raises(MediaFetchError, match="Blocked private host"):
            await check_url("http://localhost:8080/photo.jpg", SsrfPolicy())

    @pytest.mark.asyncio
    async def test_allow_private_network(self):
        await check_url("http://127.0.0.1/photo.jpg", SsrfPolicy(allow_private_network=True))

    @pytest.mark.asyncio
    async def test_allowlisted_private_host_passes(self):
        policy = SsrfPolicy(allowed_hostnames=frozenset({"minio.internal"}))
        await check_url("http://minio.internal/bucket/photo.jpg", policy)

    @pytest.mark.asyncio
    async def test_public_ip_passes(self):
        await check_url("https://93.184.216.34/photo.jpg", SsrfPolicy())

    @pytest.mark.asyncio
    async def test_non_http_scheme_is_rejected(self):
        with pytest.raises(MediaFetchError, match="Unsupported URL scheme"):
            await check_url("file:///etc/passwd", SsrfPolicy(allow_private_network=True))


class TestFetchToFile:
    """Streaming download into a temp directory."""

    @pytest.mark.asyncio
    async def test_downloads_body_and_content_type(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"jpeg-bytes", headers={"content-type": "image/jpeg; q=1"})

        async with _client(handler) as client:
            fetched = await fetch_to_file(
                "https://example.com/photo.jpg", tmp_path, ssrf=ALLOW_EXAMPLE, client=client
            )

        assert fetched.path.parent == tmp_path
        assert fetched.path.suffix == ".jpg"
        assert fetched.path.read_bytes() == b"jpeg-bytes"
        assert fetched.content_type == "image/jpeg"
        assert fetched.size == len(b"jpeg-bytes")

    @pytest.mark.asyncio
    async def test_oversized_body_aborts_and_removes_partial_file(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"x" * 64)

        async with _client(handler) as client:
            with pytest.raises(MediaFetchError, match="limit is 16|exceeded 16"):
                await fetch_to_file(
                    "https://example.com/big.bin", tmp_path, max_bytes=16, ssrf=ALLOW_EXAMPLE, client=client
                )

        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_http_error_becomes_fetch_error(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        async with _client(handler) as client:
            with pytest.raises(MediaFetchError, match="Download failed"):
                await fetch_to_file("https://example.com/gone.jpg", tmp_path, ssrf=ALLOW_EXAMPLE, client=client)

        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_redirects_are_not_followed(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"location": "http://127.0.0.1/secret"})

        async with _client(handler) as client:
            with pytest.raises(MediaFetchError):
                await fetch_to_file("https://example.com/photo.jpg", tmp_path, ssrf=ALLOW_EXAMPLE, client=client)

    @pytest.mark.asyncio
    async def test_blocked_host_never_reaches_transport(self, tmp_path):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, content=b"x")

        async with _client(handler) as client:
            with pytest.raises(MediaFetchError):
                await fetch_to_file("http://127.0.0.1/photo.jpg", tmp_path, client=client)

        assert calls == []

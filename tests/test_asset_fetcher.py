"""Tests for asset downloads over a mocked HTTP transport."""

from pathlib import Path

import httpx
import pytest

from scene_composer.exceptions import FetchError
from scene_composer.services.asset_fetcher import AssetFetcher

from fakes import asset_transport


class TestAssetFetcher:
    @pytest.mark.asyncio
    async def test_downloads_body_to_file(self, settings, temp_output_dir: Path):
        fetcher = AssetFetcher(settings, transport=asset_transport())
        dest = temp_output_dir / "shot-000.mp4"

        result = await fetcher.fetch("https://cdn.example.com/s1.mp4", str(dest))

        assert result == str(dest)
        assert dest.read_bytes() == b"media-bytes:/s1.mp4"

    @pytest.mark.asyncio
    async def test_non_2xx_is_fetch_error(self, settings, temp_output_dir: Path):
        fetcher = AssetFetcher(settings, transport=asset_transport(missing={"/gone.mp4"}))

        with pytest.raises(FetchError, match="HTTP 404") as exc_info:
            await fetcher.fetch("https://cdn.example.com/gone.mp4", str(temp_output_dir / "x.mp4"))

        assert exc_info.value.url == "https://cdn.example.com/gone.mp4"
        assert exc_info.value.code == "FETCH_FAILED"

    @pytest.mark.asyncio
    async def test_network_error_is_fetch_error(self, settings, temp_output_dir: Path):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = AssetFetcher(settings, transport=httpx.MockTransport(handler))

        with pytest.raises(FetchError, match="connection refused"):
            await fetcher.fetch("https://cdn.example.com/s1.mp4", str(temp_output_dir / "x.mp4"))

    @pytest.mark.asyncio
    async def test_empty_body_is_fetch_error(self, settings, temp_output_dir: Path):
        fetcher = AssetFetcher(
            settings, transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        dest = temp_output_dir / "empty.mp4"

        with pytest.raises(FetchError, match="empty body"):
            await fetcher.fetch("https://cdn.example.com/empty.mp4", str(dest))
        assert not dest.exists()

    @pytest.mark.asyncio
    async def test_fetch_all_reports_progress(self, settings, temp_output_dir: Path):
        fetcher = AssetFetcher(settings, transport=asset_transport())
        downloads = [
            (f"https://cdn.example.com/{name}", str(temp_output_dir / name))
            for name in ("a.mp4", "b.mp4", "c.mp3")
        ]
        progress: list[tuple[int, int]] = []

        paths = await fetcher.fetch_all(downloads, on_progress=lambda d, t: progress.append((d, t)))

        assert paths == [dest for _, dest in downloads]
        assert progress == [(1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_fetch_all_stops_at_first_failure(self, settings, temp_output_dir: Path):
        fetcher = AssetFetcher(settings, transport=asset_transport(missing={"/b.mp4"}))
        downloads = [
            (f"https://cdn.example.com/{name}", str(temp_output_dir / name))
            for name in ("a.mp4", "b.mp4", "c.mp4")
        ]

        with pytest.raises(FetchError):
            await fetcher.fetch_all(downloads)

        assert (temp_output_dir / "a.mp4").exists()
        assert not (temp_output_dir / "c.mp4").exists()

    @pytest.mark.asyncio
    async def test_unparseable_url_is_fetch_error(self, settings, temp_output_dir: Path):
        fetcher = AssetFetcher(settings, transport=asset_transport())

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("http://[bad/a.mp4", str(temp_output_dir / "x.mp4"))

        assert exc_info.value.url == "http://[bad/a.mp4"

    @pytest.mark.asyncio
    async def test_local_write_error_is_fetch_error(self, settings, temp_output_dir: Path):
        fetcher = AssetFetcher(settings, transport=asset_transport())
        dest = temp_output_dir / "no-such-dir" / "x.mp4"

        with pytest.raises(FetchError):
            await fetcher.fetch("https://cdn.example.com/s1.mp4", str(dest))

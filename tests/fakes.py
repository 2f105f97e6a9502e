"""Test doubles and request builders shared by the test modules."""

import json
from pathlib import Path

import httpx

from scene_composer.render.audio_mixer import MixTrack
from scene_composer.render.media_backend import MediaRenderer
from scene_composer.schemas.composition import AudioTrack, CompositionRequest, Shot


def make_shot(id: str = "s1", order: int = 0, duration_ms: int = 2000, **kwargs) -> Shot:
    return Shot(
        id=id,
        order=order,
        video_url=kwargs.pop("video_url", f"https://cdn.example.com/{id}.mp4"),
        duration_ms=duration_ms,
        **kwargs,
    )


def make_track(id: str = "a1", duration_ms: int = 1000, **kwargs) -> AudioTrack:
    return AudioTrack(
        id=id,
        source_url=kwargs.pop("source_url", f"https://cdn.example.com/{id}.mp3"),
        duration_ms=duration_ms,
        **kwargs,
    )


def make_request(job_id: str = "job-1", **kwargs) -> CompositionRequest:
    kwargs.setdefault("shots", [make_shot()])
    return CompositionRequest(
        job_id=job_id,
        scene_id=kwargs.pop("scene_id", "scene-1"),
        project_id=kwargs.pop("project_id", "project-1"),
        webhook_url=kwargs.pop("webhook_url", "https://app.example.com/webhook"),
        **kwargs,
    )


def request_body(job_id: str = "job-1", **overrides) -> dict:
    """A camelCase intake body as a client would send it."""
    body = {
        "jobId": job_id,
        "sceneId": "scene-1",
        "projectId": "project-1",
        "webhookUrl": "https://app.example.com/webhook",
        "shots": [
            {
                "id": "s1",
                "order": 0,
                "videoUrl": "https://cdn.example.com/s1.mp4",
                "durationMs": 2000,
            },
            {
                "id": "s2",
                "order": 1,
                "videoUrl": "https://cdn.example.com/s2.mp4",
                "durationMs": 3000,
                "trimStartMs": 500,
            },
        ],
        "audioTracks": [
            {
                "id": "bgm",
                "sourceUrl": "https://cdn.example.com/bgm.mp3",
                "startTimeMs": 0,
                "durationMs": 4000,
                "volume": 0.5,
            }
        ],
    }
    body.update(overrides)
    return body


class FakeRenderer(MediaRenderer):
    """Records every call and writes placeholder files.

    ``fail_on`` names a method that raises instead.
    """

    def __init__(self, fail_on: str | None = None):
        self.fail_on = fail_on
        self.calls: list[tuple[str, dict]] = []

    def _record(self, method: str, output_path: str, **kwargs) -> str:
        self.calls.append((method, {"output_path": output_path, **kwargs}))
        if method == self.fail_on:
            raise RuntimeError(f"{method} exploded")
        Path(output_path).write_bytes(f"{method}:{Path(output_path).name}".encode())
        return output_path

    def calls_to(self, method: str) -> list[dict]:
        return [kwargs for name, kwargs in self.calls if name == method]

    async def render_shot(self, source_path, output_path, **kwargs):
        return self._record("render_shot", output_path, source_path=source_path, **kwargs)

    async def concat(self, clip_paths, output_path):
        return self._record("concat", output_path, clip_paths=list(clip_paths))

    async def prepare_track(self, source_path, output_path, **kwargs):
        return self._record("prepare_track", output_path, source_path=source_path, **kwargs)

    async def mix(self, video_path, tracks: list[MixTrack], output_path, **kwargs):
        return self._record("mix", output_path, video_path=video_path, tracks=list(tracks), **kwargs)

    async def extract_frame(self, video_path, output_path, **kwargs):
        return self._record("extract_frame", output_path, video_path=video_path, **kwargs)


class FakeStorage:
    """In-memory storage; uploads whose key ends with ``fail_suffix`` raise."""

    def __init__(self, fail_suffix: str | None = None):
        self.fail_suffix = fail_suffix
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.deleted: list[str] = []

    def upload(self, data: bytes, storage_key: str, content_type: str) -> str:
        if self.fail_suffix and storage_key.endswith(self.fail_suffix):
            raise RuntimeError("bucket unavailable")
        self.objects[storage_key] = (data, content_type)
        return f"https://storage.example.com/{storage_key}"

    def delete(self, storage_key: str) -> None:
        self.deleted.append(storage_key)
        self.objects.pop(storage_key, None)


class WebhookRecorder:
    """httpx MockTransport handler capturing webhook posts.

    ``statuses`` are returned in order; the last one repeats.
    """

    def __init__(self, statuses: list[int] | None = None):
        self.statuses = statuses or [200]
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self.statuses) - 1)
        return httpx.Response(self.statuses[index])

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def asset_transport(missing: set[str] | None = None) -> httpx.MockTransport:
    """Serves a few bytes for every URL; paths in ``missing`` get a 404."""
    missing = missing or set()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path in missing:
            return httpx.Response(404)
        return httpx.Response(200, content=b"media-bytes:" + request.url.path.encode())

    return httpx.MockTransport(handler)

"""
Scripted stand-in for the generative service.

FakeGenerationService keeps the real request validation (download host
checks) and replaces every upstream call with canned responses, so API
tests run offline and deterministically.

Usage:
    service = FakeGenerationService(get_settings())
    service.fail_with = UpstreamServiceError("boom")      # next calls fail
    service.script_operation(name, [pending(), done_with_video(uri)])
"""
from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import AsyncIterator

from app.config import Settings
from app.schemas import AdOptions, ImagePayload
from app.services.genai import (
    GeneratedImage,
    GenerationService,
    VideoDownload,
    VideoOperationStatus,
)

# 1x1 transparent PNG
MOCK_PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
MOCK_VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42fake-video-bytes"
MOCK_VIDEO_URI = "https://generativelanguage.googleapis.com/v1beta/files/abc123:download?alt=media"


def mock_image_payload() -> dict:
    """Request-body form of a tiny valid image."""
    return {"base64": MOCK_PNG_B64, "mimeType": "image/png"}


def pending(name: str = "") -> VideoOperationStatus:
    return VideoOperationStatus(name=name, done=False)


def done_with_video(uri: str = MOCK_VIDEO_URI, name: str = "") -> VideoOperationStatus:
    return VideoOperationStatus(name=name, done=True, video_uri=uri)


def done_with_error(message: str, name: str = "") -> VideoOperationStatus:
    return VideoOperationStatus(name=name, done=True, error=message)


def done_without_video(name: str = "") -> VideoOperationStatus:
    return VideoOperationStatus(name=name, done=True)


class FakeGenerationService(GenerationService):
    """GenerationService whose upstream calls are scripted.

    Attributes:
        calls: (method, args) tuples in call order.
        fail_with: Exception raised by every upstream call while set.
        status_error: Exception raised by get_video_operation while set.
        status_delay: Seconds each status check takes.
        optimized_prompt: Text returned by optimize_prompt.
    """

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.calls: list[tuple[str, tuple]] = []
        self.fail_with: Exception | None = None
        self.status_error: Exception | None = None
        self.status_delay = 0.0
        self.optimized_prompt = "A cinematic, richly detailed photo of a cat on a red roof"
        self.image = GeneratedImage(data=MOCK_PNG_B64, mime_type="image/png")
        self.video_bytes = MOCK_VIDEO_BYTES
        self._operation_counter = 0
        self._scripts: dict[str, deque[VideoOperationStatus]] = defaultdict(deque)

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, args))
        if self.fail_with is not None:
            raise self.fail_with

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def script_operation(self, operation_name: str, statuses: list[VideoOperationStatus]) -> None:
        """Queue the statuses returned by successive status checks."""
        self._scripts[operation_name].extend(statuses)

    async def optimize_prompt(self, prompt: str, video: bool = False) -> str:
        self._record("optimize_prompt", prompt, video)
        return self.optimized_prompt

    async def edit_image(self, images: list[ImagePayload], prompt: str) -> GeneratedImage:
        self._record("edit_image", len(images), prompt)
        return self.image

    async def compose_ad(
        self,
        product: ImagePayload,
        model: ImagePayload | None,
        options: AdOptions,
        custom_prompt: str | None = None,
    ) -> GeneratedImage:
        self._record("compose_ad", model is not None, options, custom_prompt)
        return self.image

    async def submit_video(self, prompt: str, image: ImagePayload | None = None) -> str:
        self._record("submit_video", prompt, image is not None)
        self._operation_counter += 1
        return f"models/veo-2.0-generate-001/operations/op-{self._operation_counter}"

    async def get_video_operation(self, operation_name: str) -> VideoOperationStatus:
        self._record("get_video_operation", operation_name)
        if self.status_delay:
            await asyncio.sleep(self.status_delay)
        if self.status_error is not None:
            raise self.status_error
        script = self._scripts[operation_name]
        status = script.popleft() if len(script) > 1 else (script[0] if script else pending())
        return VideoOperationStatus(
            name=operation_name,
            done=status.done,
            video_uri=status.video_uri,
            error=status.error,
        )

    async def open_video_stream(self, uri: str) -> VideoDownload:
        self.check_download_uri(uri)
        self._record("open_video_stream", uri)

        async def chunks() -> AsyncIterator[bytes]:
            half = len(self.video_bytes) // 2
            yield self.video_bytes[:half]
            yield self.video_bytes[half:]

        return VideoDownload(
            content_type="video/mp4",
            content_length=str(len(self.video_bytes)),
            chunks=chunks(),
        )

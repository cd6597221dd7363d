"""Generative service client - Gemini text/image models and Veo video jobs.

Wraps the google-genai SDK's async client. Every upstream failure is
converted to ``UpstreamServiceError`` so callers (and the paid-operation
refund path) only deal with the application error taxonomy. A missing
API key surfaces as ``ConfigurationError`` on first use.

Examples:
    >>> service = GenerationService(get_settings())
    >>> optimized = await service.optimize_prompt("a cat on a roof")
    >>> op_name = await service.submit_video("a cat jumping", image=None)
    >>> status = await service.get_video_operation(op_name)

Tests:
    - tests/unit/test_genai_service.py
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator
from urllib.parse import urljoin, urlparse

import httpx
from google import genai
from google.genai import types

from app.config import Settings, get_settings
from app.errors import (
    ConfigurationError,
    InternalError,
    UpstreamServiceError,
    ValidationError,
)
from app.schemas import AdOptions, ImagePayload
from app.services.prompts import (
    OPTIMIZE_PROMPT_INSTRUCTION,
    OPTIMIZE_VIDEO_PROMPT_INSTRUCTION,
    build_ad_prompt,
)

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024
MAX_DOWNLOAD_REDIRECTS = 3


@dataclass(frozen=True)
class GeneratedImage:
    """A generated image as base64 plus MIME type."""

    data: str
    mime_type: str


@dataclass(frozen=True)
class VideoOperationStatus:
    """Upstream state of a video generation operation."""

    name: str
    done: bool
    video_uri: str | None = None
    error: str | None = None


@dataclass
class VideoDownload:
    """An open upstream video response ready to be streamed."""

    content_type: str
    content_length: str | None
    chunks: AsyncIterator[bytes]


class GenerationService:
    """Async facade over the upstream generative models.

    Attributes:
        settings: Application settings (API key, model names, download host).
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._client: genai.Client | None = None

    @property
    def client(self) -> genai.Client:
        """Gen AI client (lazy, so a missing key only fails paid work)."""
        if self._client is None:
            try:
                api_key = self.settings.get_api_key()
            except ValueError as e:
                raise ConfigurationError() from e
            self._client = genai.Client(api_key=api_key)
        return self._client

    def _handle_error(self, error: Exception) -> None:
        """Convert SDK / transport errors to UpstreamServiceError.

        Raises:
            UpstreamServiceError: Always, carrying the upstream message.
        """
        raise UpstreamServiceError(str(error)) from error

    async def optimize_prompt(self, prompt: str, video: bool = False) -> str:
        """Rewrite a prompt to be more effective for visual models.

        Raises:
            UpstreamServiceError: Upstream failure.
            InternalError: The model returned an empty prompt.
        """
        instruction = OPTIMIZE_VIDEO_PROMPT_INSTRUCTION if video else OPTIMIZE_PROMPT_INSTRUCTION
        client = self.client

        try:
            response = await client.aio.models.generate_content(
                model=self.settings.TEXT_MODEL,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=instruction,
                    thinking_config=types.ThinkingConfig(thinking_budget=0),
                ),
            )
        except Exception as e:
            logger.error(f"Prompt optimization error: {e}")
            self._handle_error(e)
            raise

        optimized = (response.text or "").strip()
        if not optimized:
            raise InternalError("Could not optimize prompt.")
        return optimized

    async def _generate_image(self, parts: list[types.Part], prompt: str) -> GeneratedImage:
        client = self.client

        try:
            response = await client.aio.models.generate_content(
                model=self.settings.IMAGE_MODEL,
                contents=[*parts, types.Part.from_text(text=prompt)],
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE", "TEXT"],
                ),
            )
        except Exception as e:
            logger.error(f"Image generation error: {e}")
            self._handle_error(e)
            raise

        if response.candidates and response.candidates[0].content:
            for part in response.candidates[0].content.parts or []:
                if part.inline_data and part.inline_data.data:
                    return GeneratedImage(
                        data=base64.b64encode(part.inline_data.data).decode("utf-8"),
                        mime_type=part.inline_data.mime_type or "image/png",
                    )

        raise UpstreamServiceError("No image was generated.")

    async def edit_image(self, images: list[ImagePayload], prompt: str) -> GeneratedImage:
        """Edit or combine the input images following ``prompt``."""
        parts = [
            types.Part.from_bytes(data=image.to_bytes(), mime_type=image.mime_type)
            for image in images
        ]
        return await self._generate_image(parts, prompt)

    async def compose_ad(
        self,
        product: ImagePayload,
        model: ImagePayload | None,
        options: AdOptions,
        custom_prompt: str | None = None,
    ) -> GeneratedImage:
        """Compose an advertising image from a product (and optional model) photo."""
        parts = [types.Part.from_bytes(data=product.to_bytes(), mime_type=product.mime_type)]
        if model is not None:
            parts.append(types.Part.from_bytes(data=model.to_bytes(), mime_type=model.mime_type))
        prompt = build_ad_prompt(options, has_model=model is not None, custom_prompt=custom_prompt)
        return await self._generate_image(parts, prompt)

    async def submit_video(self, prompt: str, image: ImagePayload | None = None) -> str:
        """Start a video generation job.

        Returns:
            The upstream operation name used to poll the job.
        """
        client = self.client
        kwargs: dict[str, Any] = {
            "model": self.settings.VIDEO_MODEL,
            "prompt": prompt,
            "config": types.GenerateVideosConfig(number_of_videos=1),
        }
        if image is not None:
            kwargs["image"] = types.Image(image_bytes=image.to_bytes(), mime_type=image.mime_type)

        try:
            operation = await client.aio.models.generate_videos(**kwargs)
        except Exception as e:
            logger.error(f"Video submission error: {e}")
            self._handle_error(e)
            raise

        if not operation.name:
            raise UpstreamServiceError("Video job was not accepted.")
        logger.info(f"Video operation started: {operation.name}")
        return operation.name

    async def get_video_operation(self, operation_name: str) -> VideoOperationStatus:
        """Fetch the current state of a video operation."""
        client = self.client

        try:
            operation = await client.aio.operations.get(
                types.GenerateVideosOperation(name=operation_name)
            )
        except Exception as e:
            logger.error(f"Video status error for {operation_name}: {e}")
            self._handle_error(e)
            raise

        if not operation.done:
            return VideoOperationStatus(name=operation_name, done=False)

        error = None
        if operation.error:
            error = operation.error.get("message") or str(operation.error)

        video_uri = None
        result = operation.response or operation.result
        if result and result.generated_videos:
            video = result.generated_videos[0].video
            video_uri = video.uri if video else None

        return VideoOperationStatus(
            name=operation_name, done=True, video_uri=video_uri, error=error
        )

    def check_download_uri(self, uri: str) -> str:
        """Only https URLs on the upstream file host may be proxied.

        Raises:
            ValidationError: For any other URL.
        """
        parsed = urlparse(uri)
        if parsed.scheme != "https" or parsed.hostname != self.settings.VIDEO_DOWNLOAD_HOST:
            raise ValidationError("Invalid video URI.")
        return uri

    async def open_video_stream(self, uri: str) -> VideoDownload:
        """Open the generated video for streaming to the client.

        The API key travels as a header to the upstream host only;
        redirects are followed without it.

        Raises:
            ValidationError: URI is not an upstream file URL.
            ConfigurationError: No API key configured.
            UpstreamServiceError: Upstream refused or the transfer failed.
        """
        url = self.check_download_uri(uri)
        try:
            api_key = self.settings.get_api_key()
        except ValueError as e:
            raise ConfigurationError() from e

        http = httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=120.0))
        headers = {"x-goog-api-key": api_key}
        try:
            response = await http.send(http.build_request("GET", url, headers=headers), stream=True)
            for _ in range(MAX_DOWNLOAD_REDIRECTS):
                if not response.is_redirect:
                    break
                location = urljoin(str(response.url), response.headers["location"])
                await response.aclose()
                response = await http.send(http.build_request("GET", location), stream=True)
        except httpx.HTTPError as e:
            await http.aclose()
            logger.error(f"Video download error: {e}")
            raise UpstreamServiceError(str(e)) from e

        if response.status_code >= 400 or response.is_redirect:
            status_code = response.status_code
            await response.aclose()
            await http.aclose()
            raise UpstreamServiceError(f"Failed to fetch video. Status: {status_code}")

        async def chunks() -> AsyncIterator[bytes]:
            try:
                async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                    yield chunk
            finally:
                await response.aclose()
                await http.aclose()

        return VideoDownload(
            content_type=response.headers.get("content-type", "video/mp4"),
            content_length=response.headers.get("content-length"),
            chunks=chunks(),
        )


def get_generation_service() -> GenerationService:
    """FastAPI dependency; tests override it with a fake."""
    return GenerationService(get_settings())

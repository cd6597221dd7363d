"""Video endpoints - submit, poll, download.

Endpoints:
    POST /api/generate-video  - Start a paid video job (5 credits), 202
    GET  /api/video-status    - Poll a job by operation name
    GET  /api/download-video  - Stream the finished video
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse

from app.auth.dependencies import get_current_user
from app.errors import ValidationError
from app.jobs.video import VideoJobView, poll_video_job, submit_video_job
from app.schemas import (
    GeneratedVideo,
    OperationError,
    VideoRef,
    VideoRequest,
    VideoResult,
    VideoStatusResponse,
    VideoSubmitResponse,
)
from app.services.genai import GenerationService, get_generation_service
from app.users.repository import UserRecord

logger = logging.getLogger(__name__)

router = APIRouter(tags=["video"])

VIDEO_CACHE_CONTROL = "public, max-age=31536000, immutable"


def to_status_response(view: VideoJobView) -> VideoStatusResponse:
    """Render a job in the upstream operation shape clients already parse."""
    response = None
    if view.video_uri:
        response = VideoResult(generated_videos=[GeneratedVideo(video=VideoRef(uri=view.video_uri))])
    return VideoStatusResponse(
        name=view.operation_name,
        done=view.done,
        status=view.status.value,
        response=response,
        error=OperationError(message=view.error) if view.error else None,
        retry_after=view.retry_after,
    )


@router.post(
    "/generate-video",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=VideoSubmitResponse,
)
async def generate_video(
    request: VideoRequest,
    user: UserRecord = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
) -> VideoSubmitResponse:
    """Charge for and start a video job; poll /video-status for the result."""
    prompt = (request.prompt or "").strip()
    if not prompt:
        raise ValidationError("Prompt is required for video generation.")

    submitted = await submit_video_job(user.id, prompt, request.image, service)
    return VideoSubmitResponse(
        operation_name=submitted.job.operation_name,
        credits=float(submitted.balance),
    )


@router.get(
    "/video-status",
    response_model=VideoStatusResponse,
    response_model_exclude_none=True,
)
async def video_status(
    operation_name: str | None = Query(None, alias="operationName"),
    user: UserRecord = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
) -> VideoStatusResponse:
    """Report job progress; failed jobs have already been refunded."""
    if not operation_name:
        raise ValidationError("Operation name is required.")

    view = await poll_video_job(user.id, operation_name, service)
    return to_status_response(view)


@router.get("/download-video")
async def download_video(
    uri: str | None = Query(None),
    user: UserRecord = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
) -> StreamingResponse:
    """Proxy the generated video so the API key never reaches the browser."""
    if not uri:
        raise ValidationError("Video URI is required.")

    download = await service.open_video_stream(uri)
    headers = {"Cache-Control": VIDEO_CACHE_CONTROL}
    if download.content_length:
        headers["Content-Length"] = download.content_length

    logger.info(f"Streaming video for {user.id}")
    return StreamingResponse(
        download.chunks,
        media_type=download.content_type,
        headers=headers,
    )

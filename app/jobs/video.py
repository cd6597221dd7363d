"""Video job submission and bounded, refund-on-failure polling.

A video job is paid for at submission. The upstream operation name is
stored together with the id of the charge, so a terminal failure seen
while polling (upstream error, done without a video, status check
failure, poll budget exhausted) refunds that charge exactly once.

Polling is throttled server-side: after each unfinished check the next
upstream call is allowed only after an exponentially growing interval.
Polls arriving earlier return the stored state and ``retry_after``
without contacting the upstream service. A poll that may check upstream
first claims the check (attempt counted, next poll scheduled) under the
user lock, so concurrent polls share one upstream call.

Examples:
    >>> submitted = await submit_video_job(user.id, "a cat jumping", None, service)
    >>> view = await poll_video_job(user.id, submitted.job.operation_name, service)
    >>> view.status, view.retry_after

Tests:
    - tests/test_video_jobs.py
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from app.config import Settings, get_settings
from app.database import get_session
from app.errors import AppError, ConfigurationError, NotFound, UpstreamServiceError
from app.ledger.credits import CREDIT_COSTS, refund_charge, user_lock
from app.ledger.operations import PaidResult, execute_paid_operation, refund
from app.models import VideoJob, VideoJobStatus, as_utc, utcnow
from app.schemas import ImagePayload
from app.services.genai import GenerationService

logger = logging.getLogger(__name__)

NO_VIDEO_MESSAGE = "Video generation finished but no video URI was found."
TIMEOUT_MESSAGE = "Video generation timed out."


def poll_interval(attempts: int, settings: Settings | None = None) -> float:
    """Seconds to wait after the ``attempts``-th unfinished poll.

    base * factor ** (attempts - 1), capped at the configured maximum.
    """
    settings = settings or get_settings()
    exponent = max(attempts - 1, 0)
    interval = settings.VIDEO_POLL_INTERVAL_SECONDS * settings.VIDEO_POLL_BACKOFF_FACTOR ** exponent
    return min(interval, settings.VIDEO_POLL_MAX_INTERVAL_SECONDS)


@dataclass(frozen=True)
class VideoJobView:
    """Caller-visible state of a job."""

    operation_name: str
    status: VideoJobStatus
    video_uri: str | None = None
    error: str | None = None
    retry_after: int | None = None

    @property
    def done(self) -> bool:
        return self.status != VideoJobStatus.PENDING

    @classmethod
    def from_model(cls, job: VideoJob, retry_after: int | None = None) -> "VideoJobView":
        return cls(
            operation_name=job.operation_name,
            status=job.status,
            video_uri=job.video_uri,
            error=job.error,
            retry_after=retry_after,
        )


@dataclass(frozen=True)
class SubmittedVideoJob:
    job: VideoJobView
    balance: Decimal


async def submit_video_job(
    user_id: str,
    prompt: str,
    image: ImagePayload | None,
    service: GenerationService,
) -> SubmittedVideoJob:
    """Charge for and start a video job, recording it for polling.

    Raises:
        AccessDenied / InsufficientCredits: Nothing charged.
        UpstreamServiceError / ConfigurationError: After the refund.
    """
    paid: PaidResult[str] = await execute_paid_operation(
        user_id,
        CREDIT_COSTS["video_generation"],
        lambda: service.submit_video(prompt, image),
        operation="video_generation",
    )
    operation_name = paid.value

    try:
        async with get_session() as session:
            job = VideoJob(
                operation_name=operation_name,
                user_id=user_id,
                charge_id=paid.charge.id,
                cost=-paid.charge.amount,
                status=VideoJobStatus.PENDING,
            )
            session.add(job)
            await session.flush()
            view = VideoJobView.from_model(job)
    except (Exception, asyncio.CancelledError):
        logger.exception(f"Could not record video job {operation_name}, refunding")
        await refund(user_id, paid.charge.id, reason="video_generation not recorded")
        raise

    logger.info(f"Video job {operation_name} submitted for {user_id}")
    return SubmittedVideoJob(job=view, balance=paid.balance)


async def _finish(
    job: VideoJob, video_uri: str | None = None, error: str | None = None
) -> VideoJobView:
    """Move a job to its terminal state, refunding on failure (once)."""
    async with user_lock(job.user_id):
        async with get_session() as session:
            current = await session.get(VideoJob, job.id, populate_existing=True)
            if current.is_terminal:
                return VideoJobView.from_model(current)

            current.completed_at = utcnow()
            if error is None:
                current.status = VideoJobStatus.SUCCEEDED
                current.video_uri = video_uri
                logger.info(f"Video job {current.operation_name} succeeded")
            else:
                current.status = VideoJobStatus.FAILED
                current.error = error
                await refund_charge(
                    session, current.charge_id, description=f"video_generation failed: {error}"
                )
                logger.warning(f"Video job {current.operation_name} failed: {error}")
            await session.flush()
            return VideoJobView.from_model(current)


async def _claim_poll(
    user_id: str, operation_name: str, settings: Settings
) -> tuple[VideoJob, VideoJobView | None]:
    """Reserve the next upstream status check for one caller.

    The attempt is counted and the next poll time scheduled before the
    upstream call, so concurrent polls see the backoff window and return
    the stored state instead of checking upstream again.

    Returns:
        The job and, when no upstream check may happen now, the view to
        return to the caller.

    Raises:
        NotFound: Unknown operation, or owned by another user.
    """
    async with user_lock(user_id):
        async with get_session() as session:
            result = await session.execute(
                select(VideoJob)
                .where(
                    VideoJob.operation_name == operation_name,
                    VideoJob.user_id == user_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            job = result.scalar_one_or_none()
            if job is None:
                raise NotFound("Video job not found.")
            if job.is_terminal:
                return job, VideoJobView.from_model(job)

            now = utcnow()
            next_poll_at = as_utc(job.next_poll_at)
            if next_poll_at is not None and next_poll_at > now:
                wait = math.ceil((next_poll_at - now).total_seconds())
                return job, VideoJobView.from_model(job, retry_after=max(wait, 1))

            job.poll_attempts += 1
            job.next_poll_at = now + timedelta(seconds=poll_interval(job.poll_attempts, settings))
            await session.flush()
            return job, None


async def poll_video_job(
    user_id: str,
    operation_name: str,
    service: GenerationService,
    settings: Settings | None = None,
) -> VideoJobView:
    """Report a job's state, checking upstream when the backoff allows.

    Raises:
        NotFound: Unknown operation, or owned by another user.
        UpstreamServiceError: The status check failed (job failed, refunded).
    """
    settings = settings or get_settings()
    job, stored = await _claim_poll(user_id, operation_name, settings)
    if stored is not None:
        return stored

    try:
        status = await service.get_video_operation(operation_name)
    except ConfigurationError:
        raise
    except Exception as e:
        await _finish(job, error=f"Status check failed: {e}")
        if isinstance(e, AppError):
            raise
        raise UpstreamServiceError(str(e)) from e

    if status.done:
        if status.error:
            return await _finish(job, error=status.error)
        if not status.video_uri:
            return await _finish(job, error=NO_VIDEO_MESSAGE)
        return await _finish(job, video_uri=status.video_uri)

    if job.poll_attempts >= settings.VIDEO_POLL_MAX_ATTEMPTS:
        return await _finish(job, error=TIMEOUT_MESSAGE)
    wait = poll_interval(job.poll_attempts, settings)
    return VideoJobView.from_model(job, retry_after=math.ceil(wait))

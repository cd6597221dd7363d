"""Background-style jobs tracked across requests."""

from app.jobs.video import (
    VideoJobView,
    poll_interval,
    poll_video_job,
    submit_video_job,
)

__all__ = ["VideoJobView", "poll_interval", "poll_video_job", "submit_video_job"]

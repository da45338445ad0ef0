"""Per-job state machine driving analysis, thumbnail generation and upload.

Everything here runs on one asyncio event loop. Blocking provider calls are
pushed to worker threads with asyncio.to_thread, so each network call is a
suspension point and many jobs can be in flight at once. Jobs are immutable
models; every update swaps the whole job in the collection.
"""

import asyncio
import functools
import inspect
import logging

from tube_automator.alerts import AlertSeverity, AlertType, send_alert
from tube_automator.errors import JobStateError, ThumbnailAttachError
from tube_automator.gemini import analyze_video_concept, generate_thumbnail, is_inline_image
from tube_automator.models import Job, JobStatus, is_allowed_transition
from tube_automator.stage_logging import log_stage
from tube_automator.youtube import YouTubeUploader

logger = logging.getLogger("tube_automator.orchestrator")


async def _call(fn, *args, **kwargs):
    if inspect.iscoroutinefunction(fn):
        return await fn(*args, **kwargs)
    return await asyncio.to_thread(fn, *args, **kwargs)


class JobOrchestrator:
    """Owns the job list and moves each job through its pipeline.

    IDLE -> ANALYZING -> GENERATING_THUMBNAIL -> READY_TO_UPLOAD -> UPLOADING -> COMPLETED,
    with FAILED reachable from ANALYZING, GENERATING_THUMBNAIL and UPLOADING.
    COMPLETED and FAILED are terminal; resubmit() starts a new job instead.
    """

    def __init__(self, config, credentials, analyze=None, thumbnail=None, uploader=None, alert=None):
        self.config = config
        self.credentials = credentials
        self._analyze = analyze or analyze_video_concept
        self._thumbnail = thumbnail or generate_thumbnail
        self.uploader = uploader or YouTubeUploader(
            credentials,
            category_id=config.category_id,
            privacy=config.privacy_status,
        )
        self._alert = alert or functools.partial(
            send_alert, webhook_url=config.slack_webhook_url or None
        )

        self._jobs = {}
        self._order = []
        self._progress = {}
        self._tasks = {}
        self._uploading = set()
        self._listeners = []

    # -- read side -------------------------------------------------------

    @property
    def jobs(self):
        """All jobs, newest first."""
        return [self._jobs[job_id] for job_id in self._order]

    def get(self, job_id):
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobStateError(f"Unknown job {job_id}") from None

    def progress(self, job_id):
        self.get(job_id)
        return self._progress.get(job_id, 0)

    def add_listener(self, callback):
        """Register callback(job), called after every job replacement."""
        self._listeners.append(callback)

    # -- state changes ---------------------------------------------------

    def _replace(self, job_id, **changes):
        current = self.get(job_id)
        target = changes.get("status", current.status)
        if target != current.status and not is_allowed_transition(current.status, target):
            raise JobStateError(
                f"Invalid status transition {current.status.value} -> {target.value} for job {job_id}"
            )
        job = current.model_copy(update=changes)
        self._jobs[job_id] = job
        for callback in list(self._listeners):
            callback(job)
        return job

    def _set_progress(self, job_id, percent):
        self._progress[job_id] = max(self._progress.get(job_id, 0), int(percent))

    # -- pipeline --------------------------------------------------------

    async def add_job(self, concept="", source_file=None):
        """Create a job and start its pipeline right away.

        Returns the job as created (IDLE); use get() or wait() to follow it.
        """
        if not (concept or "").strip() and source_file is None:
            raise JobStateError("A concept or a video file is required")

        job = Job.create(concept or "", source_file)
        self._jobs[job.id] = job
        self._order.insert(0, job.id)
        log_stage(job_id=job.id, stage="JOB_CREATED", event="COMPLETED",
                  filename=job.filename, has_file=job.source_file is not None)

        self._tasks[job.id] = asyncio.create_task(self.process_job(job.id))
        return job

    async def process_job(self, job_id):
        """Analysis then thumbnail generation. Failures end in FAILED, never raise."""
        job = self._replace(job_id, status=JobStatus.ANALYZING)
        api_key = self.config.gemini_api_key
        stage = "ANALYSIS"

        try:
            log_stage(job_id=job_id, stage=stage, event="STARTED")
            metadata = await _call(
                self._analyze, api_key, job.concept, model=self.config.metadata_model
            )
            self._replace(job_id, result=metadata, status=JobStatus.GENERATING_THUMBNAIL)
            log_stage(job_id=job_id, stage=stage, event="COMPLETED", title=metadata.title)

            stage = "THUMBNAIL"
            log_stage(job_id=job_id, stage=stage, event="STARTED")
            thumbnail_url = await _call(
                self._thumbnail, api_key, metadata.thumbnail_prompt, model=self.config.image_model
            )
            self._replace(
                job_id,
                result=metadata.model_copy(update={"thumbnail_url": thumbnail_url}),
                status=JobStatus.READY_TO_UPLOAD,
            )
            log_stage(job_id=job_id, stage=stage, event="COMPLETED",
                      inline=is_inline_image(thumbnail_url))
        except Exception as exc:
            log_stage(job_id=job_id, stage=stage, event="FAILED",
                      error=f"{exc.__class__.__name__}: {exc}")
            self._replace(job_id, status=JobStatus.FAILED, error=str(exc))

    async def upload(self, job_id):
        """Upload a ready job's video, then its thumbnail.

        Without an access token nothing is uploaded: a token is requested and
        None is returned, and the caller must invoke upload() again once
        connected. Otherwise returns the job in its final state.
        """
        job = self.get(job_id)

        if not self.credentials.has_token:
            log_stage(job_id=job_id, stage="UPLOAD", event="DEFERRED", reason="no_access_token")
            self.credentials.request_token()
            return None

        if job_id in self._uploading:
            raise JobStateError(f"Upload already in progress for job {job_id}")
        if job.source_file is None:
            raise JobStateError("No actual file associated with this job. Cannot upload a text-only draft.")
        if job.result is None:
            raise JobStateError("Metadata not generated yet.")
        if job.status != JobStatus.READY_TO_UPLOAD:
            raise JobStateError(f"Job {job_id} is {job.status.value}, not READY_TO_UPLOAD")

        self._uploading.add(job_id)
        self._progress[job_id] = 0
        loop = asyncio.get_running_loop()

        def on_progress(percent):
            loop.call_soon_threadsafe(self._set_progress, job_id, percent)

        try:
            job = self._replace(job_id, status=JobStatus.UPLOADING)
            log_stage(job_id=job_id, stage="UPLOAD_VIDEO", event="STARTED",
                      filename=job.filename, size=job.file_size)
            video_id = await _call(
                self.uploader.upload_video, job.source_file, job.result, on_progress
            )
            log_stage(job_id=job_id, stage="UPLOAD_VIDEO", event="COMPLETED", video_id=video_id)

            if is_inline_image(job.result.thumbnail_url):
                try:
                    await _call(self.uploader.upload_thumbnail, video_id, job.result.thumbnail_url)
                    log_stage(job_id=job_id, stage="UPLOAD_THUMBNAIL", event="COMPLETED")
                except ThumbnailAttachError as exc:
                    logger.warning("Thumbnail upload failed, but video uploaded. job=%s error=%s",
                                   job_id, exc)

            self._progress[job_id] = 100
            return self._replace(job_id, status=JobStatus.COMPLETED, remote_id=video_id)
        except Exception as exc:
            log_stage(job_id=job_id, stage="UPLOAD_VIDEO", event="FAILED",
                      error=f"{exc.__class__.__name__}: {exc}",
                      status_code=getattr(exc, "status_code", None))
            job = self._replace(job_id, status=JobStatus.FAILED, error=str(exc))
            self._alert(
                AlertType.UPLOAD_FAILURE,
                AlertSeverity.CRITICAL,
                "Upload failed",
                f"Upload failed: {exc}",
                job_id=job_id,
            )
            return job
        finally:
            self._uploading.discard(job_id)

    async def resubmit(self, job_id):
        """Start a fresh job from a failed one's concept and file."""
        job = self.get(job_id)
        if job.status != JobStatus.FAILED:
            raise JobStateError(f"Only failed jobs can be resubmitted; job {job_id} is {job.status.value}")
        return await self.add_job(job.concept, job.source_file)

    async def wait(self, job_id=None):
        """Wait for running pipelines (one job, or all of them)."""
        if job_id is not None:
            task = self._tasks.get(job_id)
            tasks = [task] if task else []
        else:
            tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks)
        return self.get(job_id) if job_id is not None else self.jobs

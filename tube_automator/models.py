"""Job and metadata models."""

import random
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Host-side limits on the YouTube snippet
TITLE_MAX_CHARS = 100
DESCRIPTION_MAX_CHARS = 5000


class JobStatus(str, Enum):
    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    GENERATING_THUMBNAIL = "GENERATING_THUMBNAIL"
    READY_TO_UPLOAD = "READY_TO_UPLOAD"
    UPLOADING = "UPLOADING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

ALLOWED_TRANSITIONS = {
    JobStatus.IDLE: {JobStatus.ANALYZING},
    JobStatus.ANALYZING: {JobStatus.GENERATING_THUMBNAIL, JobStatus.FAILED},
    JobStatus.GENERATING_THUMBNAIL: {JobStatus.READY_TO_UPLOAD, JobStatus.FAILED},
    JobStatus.READY_TO_UPLOAD: {JobStatus.UPLOADING},
    JobStatus.UPLOADING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


def is_allowed_transition(current, target):
    return target in ALLOWED_TRANSITIONS.get(current, set())


class Metadata(BaseModel):
    """Generated title/description/tags bundle for one video.

    Field aliases match the camelCase keys of the structured Gemini response,
    and validation is strict so a malformed response is rejected instead of
    being coerced.
    """

    model_config = ConfigDict(
        frozen=True,
        strict=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    title: str
    description: str
    tags: list[str]
    thumbnail_prompt: str
    thumbnail_url: Optional[str] = None
    estimated_cost: float = 0.0


class Job(BaseModel):
    """One request to turn a concept or file into a published video.

    Instances are immutable; the orchestrator replaces the whole job on
    every update.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    concept: str
    filename: str
    file_size: Optional[int] = None
    source_file: Optional[Path] = None
    status: JobStatus = JobStatus.IDLE
    result: Optional[Metadata] = None
    remote_id: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(cls, concept="", source_file=None):
        """Build a new IDLE job from user input.

        A file without a concept gets a placeholder concept derived from its
        name. Text-only jobs get a draft filename and cannot be uploaded.
        """
        if source_file is not None:
            path = Path(source_file)
            return cls(
                concept=concept if concept.strip() else f"A video file named {path.name}",
                filename=path.name,
                file_size=path.stat().st_size,
                source_file=path,
            )
        return cls(
            concept=concept,
            filename=f"video_draft_{random.randint(0, 999)}.mp4",
        )

    @property
    def display_size(self):
        if self.file_size is None:
            return "Unknown"
        return f"{self.file_size / (1024 * 1024):.1f} MB"

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def can_upload(self):
        return (
            self.status == JobStatus.READY_TO_UPLOAD
            and self.result is not None
            and self.source_file is not None
        )

    @property
    def youtube_url(self):
        if self.status != JobStatus.COMPLETED or not self.remote_id:
            return None
        return f"https://www.youtube.com/watch?v={self.remote_id}"

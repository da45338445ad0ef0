"""Concept-to-YouTube automation: Gemini metadata + thumbnails, resumable uploads."""

from tube_automator.auth import CredentialProvider, OAuthCredentials, StaticCredentials, build_credentials
from tube_automator.config import AppConfig, load_config
from tube_automator.errors import (
    ConfigurationError,
    JobStateError,
    ProviderError,
    ThumbnailAttachError,
    TubeAutomatorError,
    UploadError,
)
from tube_automator.gemini import FALLBACK_THUMBNAIL_URL, analyze_video_concept, generate_thumbnail
from tube_automator.models import Job, JobStatus, Metadata
from tube_automator.orchestrator import JobOrchestrator
from tube_automator.youtube import ProgressReader, YouTubeUploader

__all__ = [
    "AppConfig",
    "load_config",
    "CredentialProvider",
    "OAuthCredentials",
    "StaticCredentials",
    "build_credentials",
    "TubeAutomatorError",
    "ConfigurationError",
    "ProviderError",
    "UploadError",
    "ThumbnailAttachError",
    "JobStateError",
    "FALLBACK_THUMBNAIL_URL",
    "analyze_video_concept",
    "generate_thumbnail",
    "Job",
    "JobStatus",
    "Metadata",
    "JobOrchestrator",
    "ProgressReader",
    "YouTubeUploader",
]

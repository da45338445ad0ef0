"""YouTube Data API v3 upload client.

Video upload uses the resumable protocol: one POST opens an upload session and
returns its URL in the Location header, then a single PUT sends the whole file
to that URL. The thumbnail is attached afterwards with thumbnails.set.
"""

import logging
import mimetypes
from pathlib import Path

import requests

from tube_automator.config import DEFAULT_CATEGORY_ID
from tube_automator.errors import ThumbnailAttachError, UploadError
from tube_automator.gemini import decode_data_uri
from tube_automator.models import DESCRIPTION_MAX_CHARS, TITLE_MAX_CHARS

logger = logging.getLogger("tube_automator.youtube")

UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"
THUMBNAIL_URL = "https://www.googleapis.com/upload/youtube/v3/thumbnails/set"
DEFAULT_VIDEO_MIME = "video/mp4"


class ProgressReader:
    """File-like wrapper that reports read progress as integer percentages.

    The sink is called only when the rounded percentage changes, so values
    are strictly increasing and a complete read always ends with 100.
    """

    def __init__(self, fileobj, total_size, on_progress=None):
        self._fileobj = fileobj
        self._total = total_size
        self._on_progress = on_progress
        self._read = 0
        self._last = None

    def __len__(self):
        return self._total

    @property
    def bytes_read(self):
        return self._read

    def read(self, size=-1):
        chunk = self._fileobj.read(size)
        self._read += len(chunk)
        self._report()
        return chunk

    def _report(self):
        if self._total <= 0:
            percent = 100
        else:
            percent = round(self._read * 100 / self._total)
        if percent != self._last:
            self._last = percent
            if self._on_progress:
                self._on_progress(percent)


def build_upload_body(metadata, category_id=DEFAULT_CATEGORY_ID, privacy="private"):
    """Snippet/status body for the session-initiation request.

    The tags are also appended to the description as a visible block.
    """
    tags = list(metadata.tags)
    description = metadata.description
    if tags:
        description = f"{description}\n\nTags: {', '.join(tags)}"
    return {
        "snippet": {
            "title": metadata.title[:TITLE_MAX_CHARS],
            "description": description[:DESCRIPTION_MAX_CHARS],
            "tags": tags,
            "categoryId": category_id,
        },
        "status": {
            "privacyStatus": privacy,
            "selfDeclaredMadeForKids": False,
        },
    }


def _is_success(resp):
    return 200 <= resp.status_code < 300


def _error_detail(resp):
    return f"{resp.status_code} {resp.reason or ''}".strip() + f": {resp.text[:300]}"


class YouTubeUploader:
    """Uploads videos and thumbnails with the token held by a CredentialProvider."""

    def __init__(self, credentials, category_id=DEFAULT_CATEGORY_ID, privacy="private",
                 init_timeout=60, transfer_timeout=600):
        self.credentials = credentials
        self.category_id = category_id
        self.privacy = privacy
        self.init_timeout = init_timeout
        self.transfer_timeout = transfer_timeout

    def _auth_headers(self):
        token = self.credentials.token
        if not token:
            raise UploadError("Not connected to YouTube: no access token")
        return {"Authorization": f"Bearer {token}"}

    def start_session(self, metadata, file_size, mime_type=DEFAULT_VIDEO_MIME):
        """Open a resumable upload session and return its URL."""
        headers = {
            **self._auth_headers(),
            "Content-Type": "application/json; charset=UTF-8",
            "X-Upload-Content-Length": str(file_size),
            "X-Upload-Content-Type": mime_type,
        }
        params = {"uploadType": "resumable", "part": "snippet,status"}

        try:
            resp = requests.post(
                UPLOAD_URL,
                headers=headers,
                params=params,
                json=build_upload_body(metadata, self.category_id, self.privacy),
                timeout=self.init_timeout,
            )
        except requests.RequestException as exc:
            raise UploadError(f"Network error while starting upload: {exc}") from exc

        if not _is_success(resp):
            raise UploadError(
                f"Failed to initiate upload: {_error_detail(resp)}",
                status_code=resp.status_code,
            )

        session_url = resp.headers.get("Location")
        if not session_url:
            raise UploadError(
                "No upload location header received from YouTube.",
                status_code=resp.status_code,
            )
        return session_url

    def transfer(self, session_url, video_path, file_size, mime_type=DEFAULT_VIDEO_MIME,
                 on_progress=None):
        """PUT the whole file to the session URL and return the new video id."""
        headers = {
            **self._auth_headers(),
            "Content-Type": mime_type,
            "Content-Length": str(file_size),
        }

        try:
            with open(video_path, "rb") as f:
                body = ProgressReader(f, file_size, on_progress)
                resp = requests.put(
                    session_url,
                    headers=headers,
                    data=body,
                    timeout=self.transfer_timeout,
                )
        except requests.RequestException as exc:
            raise UploadError(f"Network error during upload: {exc}") from exc

        if not _is_success(resp):
            raise UploadError(
                f"Upload failed with status {resp.status_code}: {resp.text[:300]}",
                status_code=resp.status_code,
            )

        try:
            video_id = resp.json().get("id")
        except (ValueError, AttributeError) as exc:
            raise UploadError("Upload response was not a JSON object", status_code=resp.status_code) from exc
        if not video_id:
            raise UploadError("Upload response did not include a video id", status_code=resp.status_code)
        return video_id

    def upload_video(self, video_path, metadata, on_progress=None, mime_type=None):
        """Upload a video file with the given metadata.

        Args:
            video_path: Path to the video file.
            metadata: Metadata used for the snippet.
            on_progress: Callable receiving integer percentages 0-100.
            mime_type: Content type; guessed from the file name if omitted.

        Returns:
            The YouTube video id.

        Raises:
            UploadError: initiation or transfer failed. Not retried.
        """
        video_file = Path(video_path)
        if not video_file.exists():
            raise UploadError(f"Video file not found: {video_file}")

        file_size = video_file.stat().st_size
        mime_type = mime_type or mimetypes.guess_type(video_file.name)[0] or DEFAULT_VIDEO_MIME

        logger.info(
            "upload_start file=%s size_mb=%.1f privacy=%s tags=%d",
            video_file.name, file_size / (1024 * 1024), self.privacy, len(metadata.tags),
        )
        session_url = self.start_session(metadata, file_size, mime_type)
        video_id = self.transfer(session_url, video_file, file_size, mime_type, on_progress)
        logger.info("upload_complete video_id=%s", video_id)
        return video_id

    def upload_thumbnail(self, video_id, thumbnail_url, timeout=60):
        """Attach an inline (data URI) thumbnail to an uploaded video."""
        mime_type, blob = decode_data_uri(thumbnail_url)
        try:
            headers = {
                **self._auth_headers(),
                "Content-Type": mime_type,
                "Content-Length": str(len(blob)),
            }
        except UploadError as exc:
            raise ThumbnailAttachError(str(exc)) from exc

        try:
            resp = requests.post(
                THUMBNAIL_URL,
                headers=headers,
                params={"videoId": video_id, "uploadType": "media"},
                data=blob,
                timeout=timeout,
            )
        except requests.RequestException as exc:
            raise ThumbnailAttachError(f"Network error while setting thumbnail: {exc}") from exc

        if not _is_success(resp):
            # 403 usually means the channel is not verified for custom thumbnails
            raise ThumbnailAttachError(
                f"Failed to upload thumbnail: {_error_detail(resp)}",
                status_code=resp.status_code,
            )
        logger.info("thumbnail_attached video_id=%s bytes=%d", video_id, len(blob))

"""Settings loaded from the environment (optionally via a .env file)."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from tube_automator.errors import ConfigurationError

PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_DIR = PACKAGE_DIR.parent
ENV_PATH = PROJECT_DIR / ".env"
TOKEN_PATH = PROJECT_DIR / "youtube_token.json"

DEFAULT_METADATA_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-3-pro-image-preview"

# 22 = People & Blogs
DEFAULT_CATEGORY_ID = "22"
PRIVACY_STATUSES = ("private", "unlisted", "public")


@dataclass(frozen=True)
class AppConfig:
    gemini_api_key: str = ""
    youtube_client_id: str = ""
    youtube_client_secret: str = ""
    youtube_refresh_token: str = ""
    youtube_access_token: str = ""
    metadata_model: str = DEFAULT_METADATA_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    category_id: str = DEFAULT_CATEGORY_ID
    privacy_status: str = "private"
    slack_webhook_url: str = ""
    token_path: Path = TOKEN_PATH

    def __post_init__(self):
        if self.privacy_status not in PRIVACY_STATUSES:
            raise ConfigurationError(
                f"Invalid privacy status {self.privacy_status!r}; "
                f"expected one of {', '.join(PRIVACY_STATUSES)}"
            )

    @property
    def is_configured(self):
        """Both the Gemini key and the OAuth client id are needed to run."""
        return bool(self.gemini_api_key.strip() and self.youtube_client_id.strip())

    def missing_keys(self):
        missing = []
        if not self.gemini_api_key.strip():
            missing.append("GEMINI_API_KEY")
        if not self.youtube_client_id.strip():
            missing.append("GOOGLE_CLIENT_ID")
        return missing


def load_config(env_path=None):
    """Build an AppConfig from the environment.

    Values from the .env file (project root by default) are loaded first but
    never override variables already set in the process environment.
    """
    path = Path(env_path) if env_path else ENV_PATH
    if path.exists():
        load_dotenv(path)

    return AppConfig(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        youtube_client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
        youtube_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", ""),
        youtube_refresh_token=os.getenv("YOUTUBE_REFRESH_TOKEN", ""),
        youtube_access_token=os.getenv("YOUTUBE_ACCESS_TOKEN", ""),
        metadata_model=os.getenv("GEMINI_METADATA_MODEL") or DEFAULT_METADATA_MODEL,
        image_model=os.getenv("GEMINI_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
        category_id=os.getenv("YOUTUBE_CATEGORY_ID") or DEFAULT_CATEGORY_ID,
        privacy_status=(os.getenv("YOUTUBE_PRIVACY") or "private").strip().lower(),
        slack_webhook_url=os.getenv("SLACK_WEBHOOK_URL", ""),
        token_path=Path(os.getenv("YOUTUBE_TOKEN_PATH") or TOKEN_PATH),
    )

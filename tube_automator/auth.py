"""Access-token providers for the YouTube upload scope.

The rest of the package only needs three things from authentication: ask for
a token (fire-and-forget), be told when one arrives, and forget it again.
"""

import json
import logging
import threading
from pathlib import Path

from tube_automator.errors import ConfigurationError

logger = logging.getLogger("tube_automator.auth")

SCOPES = ["https://www.googleapis.com/auth/youtube.upload"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


class CredentialProvider:
    """Holds one process-wide bearer token.

    request_token() only starts acquisition; the token is handed over later
    through receive_token(), which notifies every listener. Listeners may be
    called from a background thread.
    """

    def __init__(self, token=None):
        self._token = token or None
        self._listeners = []
        self._lock = threading.Lock()

    @property
    def token(self):
        return self._token

    @property
    def has_token(self):
        return bool(self._token)

    def add_listener(self, callback):
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback):
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def receive_token(self, token):
        if not token:
            logger.error("token_response_invalid")
            return
        self._token = token
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            callback(token)

    def invalidate(self):
        self._token = None

    def request_token(self):
        raise NotImplementedError


class StaticCredentials(CredentialProvider):
    """Provider for a pre-issued token. request_token() delivers nothing."""

    def __init__(self, token=None):
        super().__init__(token)
        self.requests = 0

    def request_token(self):
        self.requests += 1
        logger.info("token_requested provider=static has_token=%s", self.has_token)


class OAuthCredentials(CredentialProvider):
    """Google OAuth provider for installed apps.

    Refreshes a stored refresh token when one is available, otherwise runs the
    browser consent flow. Either way a single attempt is made on a background
    thread and the access token is delivered through receive_token().
    """

    def __init__(self, client_id, client_secret="", refresh_token=None, token_path=None, port=8080):
        super().__init__()
        if not client_id:
            raise ConfigurationError("GOOGLE_CLIENT_ID is required for YouTube sign-in")
        self.client_id = client_id.strip()
        self.client_secret = client_secret
        self.refresh_token = refresh_token or None
        self.token_path = Path(token_path) if token_path else None
        self.port = port
        self._pending = None

        if not self.refresh_token and self.token_path and self.token_path.exists():
            with open(self.token_path, "r", encoding="utf-8") as f:
                self.refresh_token = json.load(f).get("refresh_token")

    @property
    def pending(self):
        return self._pending is not None and self._pending.is_alive()

    def request_token(self):
        if self.pending:
            logger.info("token_request_already_pending")
            return
        self._pending = threading.Thread(target=self._acquire, daemon=True)
        self._pending.start()

    def wait(self, timeout=None):
        """Block until an in-progress request finishes. Returns has_token."""
        if self._pending is not None:
            self._pending.join(timeout)
        return self.has_token

    def _acquire(self):
        try:
            if self.refresh_token:
                token = self._refresh()
            else:
                token = self.run_consent_flow()
        except Exception as exc:
            logger.error("token_request_failed error=%s: %s", exc.__class__.__name__, exc)
            return
        self.receive_token(token)

    def _refresh(self):
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials

        credentials = Credentials(
            token=None,
            refresh_token=self.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=SCOPES,
        )
        logger.info("token_refresh_start")
        credentials.refresh(Request())
        return credentials.token

    def run_consent_flow(self):
        """Run the browser consent flow and save the refresh token."""
        from google_auth_oauthlib.flow import InstalledAppFlow

        client_config = {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": TOKEN_URI,
                "redirect_uris": [f"http://localhost:{self.port}/"],
            }
        }
        flow = InstalledAppFlow.from_client_config(client_config, SCOPES)
        credentials = flow.run_local_server(port=self.port, prompt="consent")

        self.refresh_token = credentials.refresh_token
        if self.token_path and credentials.refresh_token:
            self.token_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.token_path, "w", encoding="utf-8") as f:
                json.dump({
                    "refresh_token": credentials.refresh_token,
                    "client_id": self.client_id,
                    "scopes": SCOPES,
                }, f, indent=2)
            logger.info("refresh_token_saved path=%s", self.token_path)
        return credentials.token

    def invalidate(self):
        super().invalidate()
        logger.info("token_invalidated provider=oauth")


def build_credentials(config):
    """Pick a provider for the given AppConfig.

    A pre-issued access token wins; otherwise an OAuth client id is required.
    """
    if config.youtube_access_token:
        return StaticCredentials(config.youtube_access_token)
    return OAuthCredentials(
        client_id=config.youtube_client_id,
        client_secret=config.youtube_client_secret,
        refresh_token=config.youtube_refresh_token or None,
        token_path=config.token_path,
    )

"""Shared test fixtures for the TubeAutomator test suite."""

import base64
import json
import os
import sys

import pytest
import requests

# Add project root to path
PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_DIR)

from tube_automator.config import AppConfig
from tube_automator.models import Metadata

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-thumbnail"


class FakeResponse:
    """Just enough of requests.Response for the client code."""

    def __init__(self, status_code=200, json_data=None, text=None, headers=None, reason=""):
        self.status_code = status_code
        self.headers = headers or {}
        self.reason = reason
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        self.text = text

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class RecordingHTTP:
    """Stands in for requests.post / requests.put and records each call.

    Responses are popped in order; an Exception instance is raised instead of
    returned. A body with read() is drained in small chunks like a transport.
    """

    def __init__(self, *responses, chunk_size=7):
        self.responses = list(responses)
        self.calls = []
        self.chunk_size = chunk_size

    def __call__(self, url, **kwargs):
        body = kwargs.get("data")
        if hasattr(body, "read"):
            sent = b""
            while True:
                chunk = body.read(self.chunk_size)
                if not chunk:
                    break
                sent += chunk
            kwargs = {**kwargs, "sent_bytes": sent}
        self.calls.append((url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def gemini_text_response(text):
    return FakeResponse(200, {"candidates": [{"content": {"parts": [{"text": text}]}}]})


def gemini_image_response(data_b64, mime="image/png"):
    return FakeResponse(200, {
        "candidates": [{
            "content": {
                "parts": [
                    {"text": "Here is your thumbnail"},
                    {"inlineData": {"mimeType": mime, "data": data_b64}},
                ],
            },
        }],
    })


@pytest.fixture
def metadata_fields():
    """Structured metadata as Gemini returns it (camelCase keys)."""
    return {
        "title": "Perfect Pasta in 10 Minutes 🍝",
        "description": "Learn the fastest pasta ever.\n\nStep by step.\n\nSubscribe! 🔥",
        "tags": [f"tag{i}" for i in range(15)],
        "thumbnailPrompt": "Close-up of steaming pasta, bold text 'DONE IN 10'",
    }


@pytest.fixture
def sample_metadata(metadata_fields):
    return Metadata.model_validate({**metadata_fields, "estimatedCost": 0.0005})


@pytest.fixture
def inline_thumbnail():
    return "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "knife_skills.mp4"
    path.write_bytes(b"\x00\x01fake-mp4-payload" * 64)
    return path


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        gemini_api_key="VALID_KEY",
        youtube_client_id="client-id.apps.googleusercontent.com",
        token_path=tmp_path / "youtube_token.json",
    )

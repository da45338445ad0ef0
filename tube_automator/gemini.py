"""Metadata and thumbnail generation via the Gemini REST API.

analyze_video_concept() asks the text model for a schema-constrained JSON
object so the response never has to be scraped out of free text.
generate_thumbnail() never raises on provider failure; it degrades to a
fixed placeholder image so a thumbnail problem cannot abort a job.
"""

import base64
import binascii
import json
import logging
import re

import requests
from pydantic import ValidationError

from tube_automator.config import DEFAULT_IMAGE_MODEL, DEFAULT_METADATA_MODEL
from tube_automator.errors import ConfigurationError, ProviderError, ThumbnailAttachError
from tube_automator.models import Metadata

logger = logging.getLogger("tube_automator.gemini")

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

# Flash pricing is low enough that a flat per-analysis estimate is used.
ESTIMATED_ANALYSIS_COST = 0.0005

FALLBACK_THUMBNAIL_URL = "https://picsum.photos/1280/720?grayscale&blur=2"

METADATA_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {
            "type": "STRING",
            "description": "A click-baity, high CTR YouTube title under 60 chars.",
        },
        "description": {
            "type": "STRING",
            "description": "An engaging 3-paragraph description with emojis.",
        },
        "tags": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "15 SEO-optimized tags.",
        },
        "thumbnailPrompt": {
            "type": "STRING",
            "description": "A detailed prompt for an AI image generator to create a high-CTR thumbnail.",
        },
    },
    "required": ["title", "description", "tags", "thumbnailPrompt"],
}

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def _require_key(api_key):
    if not api_key or not api_key.strip():
        raise ConfigurationError("Gemini API key is missing")


def _generate_content(api_key, model, payload, timeout):
    resp = requests.post(
        GEMINI_URL.format(model=model),
        params={"key": api_key},
        headers={"Content-Type": "application/json"},
        json=payload,
        timeout=timeout,
    )
    resp.raise_for_status()
    return resp.json()


def _first_parts(data):
    candidates = data.get("candidates") or [{}]
    return (candidates[0].get("content") or {}).get("parts") or []


def analyze_video_concept(api_key, concept, model=DEFAULT_METADATA_MODEL, timeout=120):
    """Generate title, description, tags and a thumbnail prompt for a concept.

    Raises:
        ConfigurationError: api_key is empty (no request is made).
        ProviderError: transport failure, empty response, or a response that
            does not satisfy the metadata schema.
    """
    _require_key(api_key)

    payload = {
        "contents": [{
            "parts": [{
                "text": (
                    "Analyze this video concept/transcript and provide metadata optimized "
                    f'for high retention and CTR. Concept: "{concept}"'
                ),
            }],
        }],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": METADATA_SCHEMA,
            "temperature": 0.7,
        },
    }

    try:
        data = _generate_content(api_key, model, payload, timeout)
    except requests.RequestException as exc:
        detail = str(exc)
        if getattr(exc, "response", None) is not None:
            detail = f"{exc.response.status_code}: {exc.response.text[:200]}"
        raise ProviderError(f"Metadata request failed: {detail}") from exc
    except ValueError as exc:
        raise ProviderError("Metadata response was not JSON") from exc

    try:
        text = "".join(part.get("text", "") for part in _first_parts(data))
    except (KeyError, AttributeError, TypeError) as exc:
        raise ProviderError("Malformed Gemini response") from exc
    if not text.strip():
        raise ProviderError("No response from Gemini")

    try:
        fields = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProviderError(f"Gemini returned malformed JSON: {text[:120]}") from exc
    if not isinstance(fields, dict):
        raise ProviderError("Gemini returned JSON that is not an object")

    try:
        metadata = Metadata.model_validate({
            "title": fields.get("title"),
            "description": fields.get("description"),
            "tags": fields.get("tags"),
            "thumbnailPrompt": fields.get("thumbnailPrompt"),
            "estimatedCost": ESTIMATED_ANALYSIS_COST,
        })
    except ValidationError as exc:
        raise ProviderError(f"Gemini response failed schema validation: {exc}") from exc

    logger.info("metadata_generated title=%r tags=%d", metadata.title, len(metadata.tags))
    return metadata


def generate_thumbnail(api_key, prompt, model=DEFAULT_IMAGE_MODEL, timeout=120):
    """Generate a thumbnail and return it as a data URI.

    Exactly one attempt. On any provider failure FALLBACK_THUMBNAIL_URL is
    returned instead of raising.
    """
    _require_key(api_key)

    payload = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
    }

    try:
        data = _generate_content(api_key, model, payload, timeout)
        for part in _first_parts(data):
            inline = part.get("inlineData") or {}
            if inline.get("data"):
                mime = inline.get("mimeType") or "image/png"
                logger.info("thumbnail_generated mime=%s bytes_b64=%d", mime, len(inline["data"]))
                return f"data:{mime};base64,{inline['data']}"
        logger.warning("thumbnail_fallback reason=no_image_in_response")
    except requests.RequestException as exc:
        logger.warning("thumbnail_fallback reason=request_failed error=%s", str(exc)[:150])
    except Exception as exc:
        logger.warning("thumbnail_fallback reason=malformed_response error=%s: %s",
                       exc.__class__.__name__, str(exc)[:150])

    return FALLBACK_THUMBNAIL_URL


def is_inline_image(url):
    return bool(url) and url.startswith("data:")


def decode_data_uri(url):
    """Split a base64 data URI into (mime_type, raw bytes)."""
    match = _DATA_URI_RE.match(url or "")
    if not match:
        raise ThumbnailAttachError("Thumbnail is not an inline base64 image")
    try:
        blob = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ThumbnailAttachError("Thumbnail payload is not valid base64") from exc
    return match.group("mime"), blob

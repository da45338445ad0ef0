"""Tests for tube_automator.gemini — metadata and thumbnail generation."""

import base64
import json

import pytest
import requests

from conftest import PNG_BYTES, FakeResponse, RecordingHTTP, gemini_image_response, gemini_text_response
from tube_automator.errors import ConfigurationError, ProviderError, ThumbnailAttachError
from tube_automator.gemini import (
    ESTIMATED_ANALYSIS_COST,
    FALLBACK_THUMBNAIL_URL,
    analyze_video_concept,
    decode_data_uri,
    generate_thumbnail,
    is_inline_image,
)


@pytest.fixture
def fake_post(monkeypatch):
    def install(*responses):
        fake = RecordingHTTP(*responses)
        monkeypatch.setattr("tube_automator.gemini.requests.post", fake)
        return fake
    return install


class TestAnalyzeVideoConcept:
    def test_returns_metadata(self, fake_post, metadata_fields):
        fake = fake_post(gemini_text_response(json.dumps(metadata_fields)))
        metadata = analyze_video_concept("VALID_KEY", "cooking tutorial")

        assert metadata.title == metadata_fields["title"]
        assert len(metadata.tags) == 15
        assert metadata.thumbnail_prompt == metadata_fields["thumbnailPrompt"]
        assert metadata.thumbnail_url is None
        assert metadata.estimated_cost == ESTIMATED_ANALYSIS_COST
        assert len(fake.calls) == 1

    def test_request_constrains_output_to_schema(self, fake_post, metadata_fields):
        fake = fake_post(gemini_text_response(json.dumps(metadata_fields)))
        analyze_video_concept("VALID_KEY", "cooking tutorial", model="gemini-test")

        url, kwargs = fake.calls[0]
        assert "models/gemini-test:generateContent" in url
        assert kwargs["params"] == {"key": "VALID_KEY"}
        config = kwargs["json"]["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        schema = config["responseSchema"]
        assert set(schema["required"]) == {"title", "description", "tags", "thumbnailPrompt"}
        assert schema["properties"]["tags"]["items"] == {"type": "STRING"}
        assert "cooking tutorial" in kwargs["json"]["contents"][0]["parts"][0]["text"]

    @pytest.mark.parametrize("key", ["", "   ", None])
    def test_missing_key_fails_before_request(self, fake_post, key):
        fake = fake_post()
        with pytest.raises(ConfigurationError):
            analyze_video_concept(key, "cooking tutorial")
        assert fake.calls == []

    def test_empty_text_is_provider_error(self, fake_post):
        fake_post(gemini_text_response(""))
        with pytest.raises(ProviderError, match="No response"):
            analyze_video_concept("VALID_KEY", "c")

    def test_no_candidates_is_provider_error(self, fake_post):
        fake_post(FakeResponse(200, {"candidates": []}))
        with pytest.raises(ProviderError):
            analyze_video_concept("VALID_KEY", "c")

    def test_malformed_json_is_provider_error(self, fake_post):
        fake_post(gemini_text_response("Sure! Here is a title: Pasta"))
        with pytest.raises(ProviderError, match="malformed"):
            analyze_video_concept("VALID_KEY", "c")

    def test_missing_required_field_rejected(self, fake_post, metadata_fields):
        del metadata_fields["tags"]
        fake_post(gemini_text_response(json.dumps(metadata_fields)))
        with pytest.raises(ProviderError, match="schema"):
            analyze_video_concept("VALID_KEY", "c")

    def test_non_object_json_rejected(self, fake_post):
        fake_post(gemini_text_response("[1, 2, 3]"))
        with pytest.raises(ProviderError):
            analyze_video_concept("VALID_KEY", "c")

    @pytest.mark.parametrize("payload", [
        {"candidates": {"x": 1}},
        {"candidates": [{"content": {"parts": ["plain string"]}}]},
        {"candidates": [{"content": {"parts": [{"text": 42}]}}]},
    ])
    def test_malformed_envelope_is_provider_error(self, fake_post, payload):
        fake_post(FakeResponse(200, payload))
        with pytest.raises(ProviderError, match="Malformed"):
            analyze_video_concept("VALID_KEY", "c")

    def test_http_error_is_provider_error(self, fake_post):
        fake_post(FakeResponse(429, text='{"error": "quota"}'))
        with pytest.raises(ProviderError, match="429"):
            analyze_video_concept("VALID_KEY", "c")

    def test_network_error_is_provider_error(self, fake_post):
        fake_post(requests.ConnectionError("connection reset"))
        with pytest.raises(ProviderError, match="connection reset"):
            analyze_video_concept("VALID_KEY", "c")


class TestGenerateThumbnail:
    def test_returns_inline_data_uri(self, fake_post):
        payload = base64.b64encode(PNG_BYTES).decode()
        fake = fake_post(gemini_image_response(payload, mime="image/jpeg"))
        url = generate_thumbnail("VALID_KEY", "steaming pasta")

        assert url == f"data:image/jpeg;base64,{payload}"
        assert fake.calls[0][1]["json"]["contents"][0]["parts"][0]["text"] == "steaming pasta"

    def test_missing_mime_defaults_to_png(self, fake_post):
        fake_post(FakeResponse(200, {
            "candidates": [{"content": {"parts": [{"inlineData": {"data": "QUJD"}}]}}],
        }))
        assert generate_thumbnail("VALID_KEY", "p") == "data:image/png;base64,QUJD"

    def test_no_image_falls_back(self, fake_post):
        fake_post(gemini_text_response("I cannot draw that"))
        assert generate_thumbnail("VALID_KEY", "p") == FALLBACK_THUMBNAIL_URL

    def test_quota_error_falls_back(self, fake_post):
        fake_post(FakeResponse(429, text="RESOURCE_EXHAUSTED"))
        assert generate_thumbnail("VALID_KEY", "p") == FALLBACK_THUMBNAIL_URL

    def test_network_error_falls_back(self, fake_post):
        fake_post(requests.Timeout("timed out"))
        assert generate_thumbnail("VALID_KEY", "p") == FALLBACK_THUMBNAIL_URL

    @pytest.mark.parametrize("payload", [
        {"candidates": {"x": 1}},
        {"candidates": [{"content": {"parts": [{"inlineData": {"data": 123}}]}}]},
        {"candidates": [{"content": {"parts": "not-a-list"}}]},
    ])
    def test_malformed_payload_falls_back(self, fake_post, payload):
        fake_post(FakeResponse(200, payload))
        assert generate_thumbnail("VALID_KEY", "p") == FALLBACK_THUMBNAIL_URL

    def test_single_attempt_and_same_fallback_each_time(self, fake_post):
        fake = fake_post(FakeResponse(500, text="boom"), FakeResponse(500, text="boom"))
        first = generate_thumbnail("VALID_KEY", "p")
        second = generate_thumbnail("VALID_KEY", "p")
        assert first == second == FALLBACK_THUMBNAIL_URL
        assert len(fake.calls) == 2

    def test_missing_key_raises(self, fake_post):
        fake = fake_post()
        with pytest.raises(ConfigurationError):
            generate_thumbnail("", "p")
        assert fake.calls == []


class TestDataUri:
    def test_decode(self, inline_thumbnail):
        mime, blob = decode_data_uri(inline_thumbnail)
        assert mime == "image/png"
        assert blob == PNG_BYTES

    def test_placeholder_is_not_inline(self):
        assert not is_inline_image(FALLBACK_THUMBNAIL_URL)
        assert not is_inline_image(None)
        assert is_inline_image("data:image/png;base64,QUJD")

    def test_decode_rejects_url(self):
        with pytest.raises(ThumbnailAttachError):
            decode_data_uri(FALLBACK_THUMBNAIL_URL)

    def test_decode_rejects_bad_base64(self):
        with pytest.raises(ThumbnailAttachError):
            decode_data_uri("data:image/png;base64,!!!not-base64")

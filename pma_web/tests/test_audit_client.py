from __future__ import annotations

import asyncio
import base64
import io
import json
from pathlib import Path
from typing import List, Optional

import httpx
import pytest

from pma_web.domain.errors import ConfigurationFailure, IOFailure, SchemaFailure, ServiceFailure
from pma_web.domain.models import AuditResult, MediaAsset
from pma_web.services.audit_client import RESPONSE_SCHEMA, AuditClient

MP4_BYTES = b"\x00\x00\x00\x18ftypmp42fake-video"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-blueprint"

GOOD_BODY = {"anomaly_detection": "A", "root_cause_analysis": "B", "prescribed_fix": "C"}


# -----------------------------
# Test doubles
# -----------------------------
class RecordingGemini:
    """Stands in for generateContent: records requests, answers with a canned response."""

    def __init__(self, text: Optional[str] = None, status_code: int = 200, body: Optional[dict] = None):
        self.requests: List[httpx.Request] = []
        self._text = text
        self._status_code = status_code
        self._body = body

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._body is not None:
            return httpx.Response(self._status_code, json=self._body)
        return httpx.Response(
            self._status_code,
            json={"candidates": [{"content": {"role": "model", "parts": [{"text": self._text}]}}]},
        )

    @property
    def payload(self) -> dict:
        return json.loads(self.requests[-1].content)


# -----------------------------
# Helpers
# -----------------------------
def make_client(handler, api_key: str = "test-key") -> AuditClient:
    return AuditClient(
        api_key=api_key,
        model="gemini-test",
        timeout_seconds=5,
        base_url="https://gemini.invalid/v1beta",
        transport=httpx.MockTransport(handler),
    )


def video_asset() -> MediaAsset:
    return MediaAsset(filename="clip.mp4", media_type="video/mp4", source=io.BytesIO(MP4_BYTES))


def blueprint_asset() -> MediaAsset:
    return MediaAsset(filename="plan.png", media_type="image/png", source=io.BytesIO(PNG_BYTES))


def submit(client: AuditClient, video=None, log_text="", blueprint=None, goal="") -> AuditResult:
    return asyncio.run(client.submit(video, log_text, blueprint, goal))


# -----------------------------
# Tests
# -----------------------------
def test_full_request_maps_response_fields():
    gemini = RecordingGemini(text=json.dumps(GOOD_BODY))
    client = make_client(gemini)

    result = submit(client, video_asset(), "log", blueprint_asset(), "goal")

    assert result == AuditResult(anomaly_detection="A", root_cause_analysis="B", prescribed_fix="C")
    assert result.as_dict() == {"anomalyDetection": "A", "rootCauseAnalysis": "B", "prescribedFix": "C"}


def test_parts_are_ordered_video_blueprint_text():
    gemini = RecordingGemini(text=json.dumps(GOOD_BODY))
    submit(make_client(gemini), video_asset(), "log", blueprint_asset(), "goal")

    parts = gemini.payload["contents"][0]["parts"]
    assert len(parts) == 3
    assert parts[0]["inlineData"]["mimeType"] == "video/mp4"
    assert base64.b64decode(parts[0]["inlineData"]["data"]) == MP4_BYTES
    assert parts[1]["inlineData"]["mimeType"] == "image/png"
    assert base64.b64decode(parts[1]["inlineData"]["data"]) == PNG_BYTES
    assert "Diagnostic Goal (Vibe Code): goal" in parts[2]["text"]


def test_text_only_request_has_exactly_one_part():
    gemini = RecordingGemini(text=json.dumps(GOOD_BODY))
    submit(make_client(gemini), None, "Temp spike at 14:02, 95°C", None, "")

    parts = gemini.payload["contents"][0]["parts"]
    assert len(parts) == 1
    assert "Temp spike at 14:02, 95°C" in parts[0]["text"]
    assert "General System Health Check" in parts[0]["text"]


def test_request_declares_json_schema_and_credentials():
    gemini = RecordingGemini(text=json.dumps(GOOD_BODY))
    submit(make_client(gemini), None, "log", None, "")

    req = gemini.requests[0]
    assert req.url.path == "/v1beta/models/gemini-test:generateContent"
    assert req.headers["x-goog-api-key"] == "test-key"

    config = gemini.payload["generationConfig"]
    assert config["responseMimeType"] == "application/json"
    assert config["responseSchema"] == RESPONSE_SCHEMA
    assert sorted(RESPONSE_SCHEMA["required"]) == ["anomaly_detection", "prescribed_fix", "root_cause_analysis"]
    assert set(RESPONSE_SCHEMA["properties"]) == set(RESPONSE_SCHEMA["required"])


def test_multi_part_text_is_joined():
    text = json.dumps(GOOD_BODY)
    body = {"candidates": [{"content": {"parts": [{"text": text[:10]}, {"text": text[10:]}]}}]}
    result = submit(make_client(RecordingGemini(body=body)), None, "log", None, "")
    assert result.prescribed_fix == "C"


@pytest.mark.parametrize("api_key", ["", "   "])
def test_missing_credential_fails_before_encode_or_network(tmp_path: Path, api_key):
    gemini = RecordingGemini(text=json.dumps(GOOD_BODY))
    unreadable = MediaAsset.from_path(tmp_path / "missing.mp4")

    with pytest.raises(ConfigurationFailure):
        submit(make_client(gemini, api_key=api_key), unreadable, "log", None, "")

    assert gemini.requests == []


def test_unreadable_video_is_attributed_to_video(tmp_path: Path):
    gemini = RecordingGemini(text=json.dumps(GOOD_BODY))

    with pytest.raises(IOFailure) as exc:
        submit(make_client(gemini), MediaAsset.from_path(tmp_path / "missing.mp4"), "log", blueprint_asset(), "")

    assert exc.value.asset == "video"
    assert str(exc.value) == "Failed to process video file."
    assert gemini.requests == []


def test_unreadable_blueprint_is_attributed_to_blueprint(tmp_path: Path):
    gemini = RecordingGemini(text=json.dumps(GOOD_BODY))

    with pytest.raises(IOFailure) as exc:
        submit(make_client(gemini), video_asset(), "log", MediaAsset.from_path(tmp_path / "missing.png"), "")

    assert exc.value.asset == "blueprint"
    assert str(exc.value) == "Failed to process blueprint file."
    assert gemini.requests == []


def test_http_error_passes_service_message_through():
    body = {"error": {"code": 429, "message": "Resource has been exhausted (e.g. check quota).", "status": "RESOURCE_EXHAUSTED"}}
    gemini = RecordingGemini(status_code=429, body=body)

    with pytest.raises(ServiceFailure) as exc:
        submit(make_client(gemini), None, "log", None, "")

    assert exc.value.status_code == 429
    assert "exhausted" in str(exc.value)


def test_http_error_without_body_mentions_status():
    def handler(request):
        return httpx.Response(503, text="upstream down")

    with pytest.raises(ServiceFailure) as exc:
        submit(make_client(handler), None, "log", None, "")

    assert "503" in str(exc.value)


def test_transport_error_is_service_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ServiceFailure):
        submit(make_client(handler), None, "log", None, "")


def test_timeout_is_service_failure():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ServiceFailure) as exc:
        submit(make_client(handler), None, "log", None, "")

    assert "did not answer within 5 seconds" in str(exc.value)


@pytest.mark.parametrize(
    "body",
    [
        {"candidates": []},
        {"candidates": [{"content": {"parts": [{"text": ""}]}}]},
        {"candidates": [{"finishReason": "SAFETY"}]},
        {"promptFeedback": {"blockReason": "SAFETY"}},
    ],
)
def test_empty_text_is_service_failure(body):
    with pytest.raises(ServiceFailure) as exc:
        submit(make_client(RecordingGemini(body=body)), None, "log", None, "")

    assert str(exc.value) == "No response text received from Gemini."


@pytest.mark.parametrize(
    "text",
    [
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"anomaly_detection": "A", "root_cause_analysis": "B"}),
        json.dumps({"anomaly_detection": "A", "root_cause_analysis": "B", "prescribed_fix": None}),
    ],
)
def test_bad_body_is_schema_failure(text):
    with pytest.raises(SchemaFailure):
        submit(make_client(RecordingGemini(text=text)), None, "log", None, "")


def test_from_settings_reads_injected_values():
    class Settings:
        gemini_api_key = "k"
        gemini_model = "m"
        gemini_timeout_seconds = 12.0
        gemini_base_url = "https://example.invalid/v1/"

    client = AuditClient.from_settings(Settings())

    assert client.api_key == "k"
    assert client.endpoint == "https://example.invalid/v1/models/m:generateContent"

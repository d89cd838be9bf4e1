from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from pma_web.config.ini_config import DEFAULT_BASE_URL, DEFAULT_MODEL
from pma_web.domain.errors import ConfigurationFailure, SchemaFailure, ServiceFailure
from pma_web.domain.models import (
    AuditResult,
    ImagePart,
    MediaAsset,
    RequestPart,
    TextPart,
    VideoPart,
)
from pma_web.services.encoder import encode_asset
from pma_web.services.prompt_builder import RESPONSE_KEYS, build_prompt

logger = logging.getLogger(__name__)

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {k: {"type": "STRING"} for k in RESPONSE_KEYS},
    "required": list(RESPONSE_KEYS),
}


def build_payload(parts: List[RequestPart]) -> dict:
    return {
        "contents": [{"role": "user", "parts": [p.to_wire() for p in parts]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def extract_text(body: dict) -> str:
    """Joins the text parts of the first candidate; empty string if there are none."""
    candidates = body.get("candidates") or []
    if not candidates:
        return ""
    parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


def parse_result(text: str) -> AuditResult:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaFailure() from e

    if not isinstance(raw, dict):
        raise SchemaFailure()

    missing = [k for k in RESPONSE_KEYS if not isinstance(raw.get(k), str)]
    if missing:
        logger.warning("Audit response missing fields: %s", ", ".join(missing))
        raise SchemaFailure()

    return AuditResult(
        anomaly_detection=raw["anomaly_detection"],
        root_cause_analysis=raw["root_cause_analysis"],
        prescribed_fix=raw["prescribed_fix"],
    )


def _service_error_message(response: httpx.Response) -> str:
    try:
        detail = (response.json().get("error") or {}).get("message")
    except (ValueError, AttributeError):
        detail = None
    return detail or f"Gemini request failed with HTTP {response.status_code}."


@dataclass
class AuditClient:
    """
    Sends one multi-modal audit to Gemini's generateContent endpoint.
    Single attempt; the timeout bounds the whole round trip.
    """
    api_key: str
    model: str = DEFAULT_MODEL
    timeout_seconds: float = 300.0
    base_url: str = DEFAULT_BASE_URL
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "AuditClient":
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout_seconds=settings.gemini_timeout_seconds,
            base_url=settings.gemini_base_url,
            transport=transport,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/models/{self.model}:generateContent"

    async def build_parts(
        self,
        video: Optional[MediaAsset],
        log_text: str,
        blueprint: Optional[MediaAsset],
        goal: str,
    ) -> List[RequestPart]:
        # Media first: the prompt refers to "the video" and "the blueprint"
        parts: List[RequestPart] = []
        if video is not None:
            parts.append(VideoPart(await encode_asset(video, label="video")))
        if blueprint is not None:
            parts.append(ImagePart(await encode_asset(blueprint, label="blueprint")))
        parts.append(TextPart(build_prompt(log_text, goal)))
        return parts

    async def submit(
        self,
        video: Optional[MediaAsset],
        log_text: str,
        blueprint: Optional[MediaAsset],
        goal: str,
    ) -> AuditResult:
        if not (self.api_key or "").strip():
            raise ConfigurationFailure()

        parts = await self.build_parts(video, log_text, blueprint, goal)
        text = await self._generate(build_payload(parts))
        return parse_result(text)

    async def _generate(self, payload: dict) -> str:
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

        logger.info("Submitting audit to %s (%d parts)", self.model, len(payload["contents"][0]["parts"]))
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(self.endpoint, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise ServiceFailure(f"Gemini did not answer within {self.timeout_seconds:g} seconds.") from e
        except httpx.HTTPError as e:
            raise ServiceFailure(f"Gemini request failed: {e}") from e

        if response.is_error:
            raise ServiceFailure(_service_error_message(response), status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise ServiceFailure("Gemini returned an unreadable response.", status_code=response.status_code) from e

        text = extract_text(body) if isinstance(body, dict) else ""
        if not text.strip():
            raise ServiceFailure("No response text received from Gemini.", status_code=response.status_code)
        return text

"""Gemini backend for stats extraction and concept image generation."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING, Any

import httpx

from robotforge.errors import DecodeError, ServiceError
from robotforge.models.robot import ATK_RANGE, DEF_RANGE, HP_RANGE
from robotforge.pipeline.stats import parse_stats

if TYPE_CHECKING:
    from robotforge.config import GeminiSettings
    from robotforge.models import RobotStats

logger = logging.getLogger(__name__)

STATS_PROMPT = (
    "Estimate the calories, protein and dietary fiber of the food in this photo and "
    f"derive HP ({HP_RANGE[0]}-{HP_RANGE[1]}), ATK ({ATK_RANGE[0]}-{ATK_RANGE[1]}) and "
    f"DEF ({DEF_RANGE[0]}-{DEF_RANGE[1]}) from them. The robot is a weapon "
    "built by the fictional company 'Oishii Industries'. Write its lore (Lore), a robot "
    "name (Name) and a detailed English appearance prompt (VisualDescription) for a "
    "mechanical combat robot themed on this food, to be fed to a text-to-image model. "
    "The VisualDescription must state 'full body standing' and 'extreme full body shot, "
    "feet completely visible'. Output only flat JSON with this schema:\n\n"
    '{"name": "name", "lore": "lore", "hp": 1000, "atk": 50, "def": 20, '
    '"visual_description": "prompt"}'
)

IMAGE_PROMPT_SUFFIX = (
    ", highly zoomed out, full A-pose with slightly spread arms. The ENTIRE body from "
    "the top of the head to the bottom of the feet MUST be completely visible inside "
    "the frame. Leave plenty of empty white space around the character. DO NOT crop "
    "the image at the ankles or head. single white background `#FFFFFF`, mechanical "
    "combat robot design, clear silhouette."
)


def build_image_prompt(visual_description: str) -> str:
    return f"{visual_description}{IMAGE_PROMPT_SUFFIX}"


class GeminiBackend:
    """Text/image generation via the ``generateContent`` REST API."""

    def __init__(
        self,
        settings: GeminiSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._api_key: str = ""
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        self._api_key = self._settings.require_api_key()
        self._client = httpx.AsyncClient(
            base_url=self._settings.base_url,
            timeout=httpx.Timeout(self._settings.timeout, connect=10.0),
            transport=self._transport,
        )

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def generate_stats(self, image_b64: str) -> RobotStats:
        """Ask the model for flat JSON stats and parse them, with fallback."""
        body = {
            "contents": [
                {
                    "parts": [
                        {"text": STATS_PROMPT},
                        {"inlineData": {"mimeType": "image/png", "data": image_b64}},
                    ],
                },
            ],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        data = await self._generate(self._settings.stats_model, body)
        text = _first_text(data)
        return parse_stats(text)

    async def generate_image(self, prompt: str) -> bytes:
        """Generate a full-body concept image for *prompt* and return PNG bytes."""
        body = {"contents": [{"parts": [{"text": build_image_prompt(prompt)}]}]}
        data = await self._generate(self._settings.image_model, body)
        encoded = _first_inline_data(data)
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            msg = f"Image data from {self._settings.image_model} is not valid base64: {exc}"
            raise DecodeError(msg) from exc

    async def _generate(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        client = self._ensure_client()
        try:
            resp = await client.post(
                f"/models/{model}:generateContent",
                params={"key": self._api_key},
                json=body,
            )
        except httpx.HTTPError as exc:
            msg = f"Failed to send request to {model}: {exc}"
            raise ServiceError(msg) from exc

        if not resp.is_success:
            msg = f"Gemini API error ({model}): {resp.status_code} - {resp.text}"
            raise ServiceError(msg, status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            msg = f"Failed to parse {model} response JSON: {exc}"
            raise DecodeError(msg) from exc
        if not isinstance(data, dict):
            msg = f"Unexpected {model} response: {data!r}"
            raise DecodeError(msg)
        return data

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client


def _candidate_parts(data: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = data.get("candidates") or []
    if not candidates:
        msg = "No candidates returned"
        raise DecodeError(msg)
    parts = (candidates[0].get("content") or {}).get("parts") or []
    if not parts:
        msg = "No parts returned"
        raise DecodeError(msg)
    return parts


def _first_text(data: dict[str, Any]) -> str:
    for part in _candidate_parts(data):
        text = part.get("text")
        if isinstance(text, str):
            return text
    msg = "No text part returned"
    raise DecodeError(msg)


def _first_inline_data(data: dict[str, Any]) -> str:
    for part in _candidate_parts(data):
        inline = part.get("inlineData") or part.get("inline_data") or {}
        encoded = inline.get("data")
        if encoded:
            return str(encoded)
    msg = "No image data returned from the image model"
    raise DecodeError(msg)

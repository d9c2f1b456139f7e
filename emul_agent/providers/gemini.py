"""Gemini ``generateContent`` provider over httpx."""

from __future__ import annotations

import json
from typing import Any

import httpx
from loguru import logger

from emul_agent.errors import MalformedResponseError, RemoteAPIError, TransportError
from emul_agent.providers.base import GenerationProvider

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-pro"


def build_request_body(
    contents: list[dict[str, Any]],
    system_prompt: str,
    tools: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "contents": contents,
        "systemInstruction": {"parts": [{"text": system_prompt}]},
        "generationConfig": {"responseMimeType": "text/plain"},
    }
    if tools:
        body["tools"] = [{"functionDeclarations": tools}]
    return body


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        message = str(error.get("message") or "").strip()
        status = str(error.get("status") or "").strip()
        if message and status:
            return f"{status}: {message}"
        return message or status or json.dumps(error)
    return str(error)


def _error_status(error: Any, default: int | None = None) -> int | None:
    if isinstance(error, dict):
        try:
            return int(error.get("code"))
        except (TypeError, ValueError):
            return default
    return default


class GeminiProvider(GenerationProvider):
    """Google Gemini REST provider."""

    def __init__(
        self,
        api_key: str,
        default_model: str = DEFAULT_MODEL,
        api_base: str | None = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.api_base = (api_base or DEFAULT_API_BASE).rstrip("/")
        self.timeout = timeout

    def get_default_model(self) -> str:
        return self.default_model

    def _endpoint(self, model: str) -> str:
        return f"{self.api_base}/models/{model}:generateContent"

    async def generate(
        self,
        contents: list[dict[str, Any]],
        system_prompt: str,
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> dict[str, Any]:
        model_name = model or self.default_model
        body = build_request_body(contents, system_prompt, tools)
        logger.debug(f"Sending {len(contents)} turn(s) to {model_name} (tools={bool(tools)})")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self._endpoint(model_name),
                    params={"key": self.api_key},
                    json=body,
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Gemini request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            if response.status_code >= 400:
                raise RemoteAPIError(
                    f"Gemini API returned HTTP {response.status_code}",
                    status=response.status_code,
                ) from e
            raise TransportError(f"Failed to parse Gemini JSON response: {e}") from e

        if response.status_code >= 400:
            error = payload.get("error") if isinstance(payload, dict) else payload
            raise RemoteAPIError(
                f"Gemini API error (HTTP {response.status_code}): {_error_message(error)}",
                status=response.status_code,
            )

        if not isinstance(payload, dict):
            raise MalformedResponseError("Invalid response structure from Gemini API: not an object")

        if "candidates" not in payload:
            if "error" in payload:
                error = payload["error"]
                logger.error(f"Gemini API returned an error: {error}")
                raise RemoteAPIError(
                    f"Gemini API error: {_error_message(error)}",
                    status=_error_status(error),
                )
            logger.error("Gemini response missing 'candidates'")
            raise MalformedResponseError(
                "Invalid response structure from Gemini API: Missing 'candidates'"
            )

        return payload

"""Google Gemini ``generateContent`` adapter over httpx."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from app.adapters.llm.base import AbstractLLMClient, LLMResponse
from app.core.errors import LLMAppError, UpstreamAppError

logger = logging.getLogger(__name__)

# Upstream diagnostics are forwarded to callers; keep them bounded
MAX_UPSTREAM_MESSAGE_CHARS = 1000


def extract_candidate_text(envelope: Any) -> str | None:
    """Return the generated text of the first candidate.

    Multi-part candidates (e.g. when a grounding tool is used) are joined in
    order. Returns None when the envelope carries no text.
    """
    if not isinstance(envelope, dict):
        return None
    candidates = envelope.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None

    texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
    if not texts:
        return None
    return "".join(texts)


class GeminiClient(AbstractLLMClient):
    """Client for the Gemini REST API returning JSON text.

    The API key travels as the ``key`` query parameter. It is never included in
    raised errors or log records.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_seconds: float = 20.0,
        enable_search_tool: bool = False,
        enforce_response_schema: bool = True,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Gemini client.

        Args:
            api_key: Provider API key.
            model: Model id (e.g., "gemini-2.5-flash").
            base_url: API root, without trailing slash.
            timeout_seconds: Total timeout applied to each call.
            enable_search_tool: Attach the google_search grounding tool.
            enforce_response_schema: Send the response schema when given one.
            http_client: Optional preconfigured httpx client (tests inject a
                MockTransport here).
        """
        self._api_key = api_key
        self.model = model
        self.endpoint = f"{base_url.rstrip('/')}/models/{model}:generateContent"
        self.enable_search_tool = enable_search_tool
        self.enforce_response_schema = enforce_response_schema
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    def build_payload(
        self,
        prompt: str,
        *,
        system_instruction: str,
        schema: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build the generateContent request body."""
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "systemInstruction": {"parts": [{"text": system_instruction}]},
        }

        if self.enable_search_tool:
            # Controlled JSON output is rejected when tools are attached;
            # the system instruction carries the output contract instead.
            payload["tools"] = [{"google_search": {}}]
            return payload

        generation_config: dict[str, Any] = {"responseMimeType": "application/json"}
        if schema is not None and self.enforce_response_schema:
            generation_config["responseSchema"] = schema
        payload["generationConfig"] = generation_config
        return payload

    async def generate_json(
        self,
        prompt: str,
        *,
        system_instruction: str,
        schema: dict[str, Any] | None = None,
    ) -> LLMResponse:
        payload = self.build_payload(prompt, system_instruction=system_instruction, schema=schema)

        try:
            response = await self._client.post(
                self.endpoint,
                params={"key": self._api_key},
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException as exc:
            logger.error("upstream.timeout", extra={"model": self.model})
            raise LLMAppError(
                code="upstream_timeout",
                message="El servicio de IA no respondió a tiempo.",
                details={"model": self.model},
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "upstream.transport_error",
                extra={"model": self.model, "error_type": type(exc).__name__},
            )
            raise LLMAppError(
                code="upstream_unreachable",
                message="Error al contactar la API de IA.",
                details={"model": self.model},
            ) from exc

        if not response.is_success:
            self._raise_for_upstream_status(response)

        try:
            envelope = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.error("upstream.invalid_envelope", extra={"model": self.model, "reason": "not_json"})
            raise LLMAppError(
                code="upstream_malformed_response",
                message="La API de IA devolvió una respuesta no válida.",
            ) from exc

        text = extract_candidate_text(envelope)
        if text is None:
            finish_reason = None
            candidates = envelope.get("candidates") if isinstance(envelope, dict) else None
            if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
                finish_reason = candidates[0].get("finishReason")
            logger.error(
                "upstream.invalid_envelope",
                extra={"model": self.model, "reason": "no_candidate_text", "finish_reason": finish_reason},
            )
            raise LLMAppError(
                code="upstream_malformed_response",
                message="La API de IA devolvió una respuesta no válida.",
            )

        logger.info(
            "upstream.success",
            extra={"model": self.model, "status_code": response.status_code, "chars": len(text)},
        )
        return LLMResponse(text=text, body=response.content)

    def _raise_for_upstream_status(self, response: httpx.Response) -> None:
        error_text = response.text.strip()[:MAX_UPSTREAM_MESSAGE_CHARS]
        # Only client/server error statuses are forwarded as-is
        status_code = response.status_code if 400 <= response.status_code < 600 else 502

        logger.error(
            "upstream.error",
            extra={
                "model": self.model,
                "upstream_status": response.status_code,
                "status_code": status_code,
                "upstream_body": error_text,
            },
        )
        raise UpstreamAppError(
            code="upstream_error",
            message=f"Error al contactar la API de IA. {error_text}".strip(),
            details={"upstream_status": response.status_code},
            status_code=status_code,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any ``app`` import so the global
settings object is built from them.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("LLM_MODEL", "gemini-2.5-flash")
os.environ.setdefault("LLM_API_KEY", "test-gemini-key")
os.environ.setdefault("QUOTA_STORE_BACKEND", "memory")
os.environ.setdefault("APP_DAILY_QUOTA_LIMIT", "3")
os.environ.setdefault("LOG_FORMAT", "plain")

import json
from typing import Any

import pytest

from app.adapters.llm.base import AbstractLLMClient, LLMResponse
from app.adapters.quota_store.in_memory import InMemoryQuotaStore


VERDICT = {
    "myth": "Los humanos solo usamos el 10% del cerebro.",
    "isTrue": False,
    "explanation": "Las técnicas de neuroimagen muestran actividad en prácticamente todo el cerebro.",
    "evidenceLevel": "Alta",
}

# Key order and spacing differ from json.dumps defaults on purpose: the body
# must be forwarded byte for byte.
VERDICT_TEXT = (
    '{"myth":"Los humanos solo usamos el 10% del cerebro.","isTrue":false,'
    '"explanation":"Las técnicas de neuroimagen muestran actividad en prácticamente todo el cerebro.",'
    '"evidenceLevel":"Alta"}'
)


def gemini_envelope(text: str) -> dict[str, Any]:
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": text}]},
                "finishReason": "STOP",
            }
        ],
        "modelVersion": "gemini-2.5-flash",
    }


class FakeLLMClient(AbstractLLMClient):
    """Scriptable LLM client recording every call."""

    def __init__(self, text: str = VERDICT_TEXT, error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def generate_json(self, prompt, *, system_instruction, schema=None) -> LLMResponse:
        self.calls.append({"prompt": prompt, "system_instruction": system_instruction, "schema": schema})
        if self.error is not None:
            raise self.error
        body = json.dumps(gemini_envelope(self.text)).encode("utf-8")
        return LLMResponse(text=self.text, body=body)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def store() -> InMemoryQuotaStore:
    return InMemoryQuotaStore()


@pytest.fixture
def llm() -> FakeLLMClient:
    return FakeLLMClient()

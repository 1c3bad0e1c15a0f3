"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from app.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    redact,
    set_request_id,
)


@pytest.fixture
def capture():
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def test_redacts_provider_key_and_credentials(capture):
    logger, stream = capture

    logger.info(
        "config_loaded",
        extra={
            "api_key": "AIza-secret-123",
            "credentials_base64": "eyJ0eXBlIjoic2VydmljZV9hY2NvdW50In0=",
            "model": "gemini-2.5-flash",
        },
    )

    output = stream.getvalue()
    assert "AIza-secret-123" not in output
    assert "eyJ0eXBl" not in output
    assert "gemini-2.5-flash" in output


def test_redacts_claim_and_caller_address(capture):
    logger, stream = capture

    logger.info(
        "verification_event",
        extra={"user_query": "Las vacunas causan autismo", "caller_key": "203.0.113.7", "limit": 3},
    )

    output = stream.getvalue()
    assert "vacunas" not in output
    assert "203.0.113.7" not in output
    assert json.loads(output)["limit"] == 3


def test_redacts_nested_values(capture):
    logger, stream = capture

    logger.info(
        "nested_event",
        extra={"params": {"key": "AIza-nested", "alt": "json"}},
    )

    data = json.loads(stream.getvalue())
    assert data["params"] == {"key": "[REDACTED]", "alt": "json"}


def test_safe_fields_pass_through(capture):
    logger, stream = capture

    logger.info(
        "quota.allowed",
        extra={"key_hash": "abcd1234", "day": "2024-01-01", "count": 2, "remaining": 1},
    )

    data = json.loads(stream.getvalue())
    assert data["message"] == "quota.allowed"
    assert data["key_hash"] == "abcd1234"
    assert data["remaining"] == 1
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_from_context(capture):
    logger, stream = capture
    set_request_id("req-123")

    logger.info("with_context")

    assert json.loads(stream.getvalue())["request_id"] == "req-123"


def test_redact_helper_handles_sequences():
    assert redact([{"token": "t"}, ("a", {"password": "p"})]) == [
        {"token": "[REDACTED]"},
        ("a", {"password": "[REDACTED]"}),
    ]

"""OpenAPI customization.

Adds tag descriptions and documents the quota headers returned by the
verification endpoint, keeping documentation concerns out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_QUOTA_HEADERS: Dict[str, Any] = {
    "X-RateLimit-Limit": {
        "description": "Daily verification limit per caller.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Remaining": {
        "description": "Verifications left today for this caller.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "UNIX time of the next UTC midnight, when the quota resets.",
        "schema": {"type": "integer"},
    },
}

_RETRY_AFTER_HEADER: Dict[str, Any] = {
    "Retry-After": {
        "description": "Seconds until the quota resets.",
        "schema": {"type": "integer"},
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation with tags and quota headers."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Verification",
                "description": "Claim verification, limited per caller address and UTC day.",
            },
            {
                "name": "Health",
                "description": "Liveness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        operation = schema.get("paths", {}).get("/verifyMyth", {}).get("post")
        if isinstance(operation, dict):
            responses = operation.get("responses", {})
            if "200" in responses:
                responses["200"].setdefault("headers", {}).update(_QUOTA_HEADERS)
            if "429" in responses:
                responses["429"].setdefault("headers", {}).update({**_QUOTA_HEADERS, **_RETRY_AFTER_HEADER})

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

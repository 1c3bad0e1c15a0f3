"""Firestore-backed usage-counter store.

Each (caller, day) counter is one document ``{caller}_{day}`` in the
configured collection with an integer ``count`` field. Writes use merge
semantics so any other fields on the document survive.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any

from google.cloud import firestore
from google.oauth2 import service_account

from app.adapters.quota_store.base import AbstractQuotaStore
from app.core.errors import ConfigurationAppError, StoreAppError

logger = logging.getLogger(__name__)

COUNT_FIELD = "count"
UPDATED_AT_FIELD = "updatedAt"

# Characters Firestore does not allow inside a document id
_FORBIDDEN_ID_CHARS = str.maketrans({"/": "_"})


def load_service_account_info(encoded: str) -> dict[str, Any]:
    """Decode base64 service-account JSON.

    Args:
        encoded: Base64 text of the service-account JSON file.

    Returns:
        Parsed service-account mapping.

    Raises:
        ConfigurationAppError: If the value is not base64 JSON describing an object.
    """
    try:
        raw = base64.b64decode(encoded.strip(), validate=True)
        info = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigurationAppError(
            code="store_credentials_invalid",
            message="Error de configuración del servidor.",
            details={"hint": "QUOTA_STORE_CREDENTIALS_BASE64 must be base64-encoded service-account JSON"},
        ) from exc

    if not isinstance(info, dict):
        raise ConfigurationAppError(
            code="store_credentials_invalid",
            message="Error de configuración del servidor.",
            details={"hint": "Service-account JSON must be an object"},
        )
    return info


def build_firestore_client(
    credentials_base64: str,
    project_id: str | None = None,
) -> firestore.AsyncClient:
    """Create an async Firestore client from base64 service-account credentials."""
    info = load_service_account_info(credentials_base64)
    try:
        credentials = service_account.Credentials.from_service_account_info(info)
    except (ValueError, KeyError) as exc:
        raise ConfigurationAppError(
            code="store_credentials_invalid",
            message="Error de configuración del servidor.",
            details={"hint": "Service-account JSON is missing required fields"},
        ) from exc

    return firestore.AsyncClient(
        project=project_id or info.get("project_id"),
        credentials=credentials,
    )


def _document_id(key: str) -> str:
    return key.translate(_FORBIDDEN_ID_CHARS)


def _count_from(data: dict[str, Any] | None) -> int:
    if not data:
        return 0
    value = data.get(COUNT_FIELD, 0)
    # A counter that is not an integer cannot bound the caller; refuse it
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        logger.error(
            "quota_store.corrupt_counter",
            extra={"backend": "firestore", "value_type": type(value).__name__},
        )
        raise StoreAppError(
            code="quota_store_corrupt",
            message="Error al procesar la solicitud.",
        )
    return value


class FirestoreQuotaStore(AbstractQuotaStore):
    """Counter store over a Firestore collection.

    ``increment_if_below`` runs inside a Firestore transaction: the read and the
    merge-increment commit together, and Firestore retries the transaction when
    a concurrent request touched the same document, so the count can never
    pass the limit.
    """

    def __init__(self, client: firestore.AsyncClient, collection: str = "rateLimits") -> None:
        self._client = client
        self._collection = collection

    def _ref(self, key: str):
        return self._client.collection(self._collection).document(_document_id(key))

    async def get_count(self, key: str) -> int:
        try:
            snapshot = await self._ref(key).get()
        except Exception as exc:
            logger.error(
                "quota_store.read_failed",
                extra={"backend": "firestore", "error_type": type(exc).__name__},
            )
            raise StoreAppError(
                code="quota_store_unavailable",
                message="Error al procesar la solicitud.",
            ) from exc

        if not snapshot.exists:
            return 0
        return _count_from(snapshot.to_dict())

    async def increment_if_below(self, key: str, limit: int) -> int | None:
        if limit < 1:
            raise ValueError("limit must be >= 1")

        ref = self._ref(key)

        @firestore.async_transactional
        async def _consume(transaction, doc_ref) -> int | None:
            snapshot = await doc_ref.get(transaction=transaction)
            current = _count_from(snapshot.to_dict()) if snapshot.exists else 0
            if current >= limit:
                return None
            transaction.set(
                doc_ref,
                {
                    COUNT_FIELD: firestore.Increment(1),
                    UPDATED_AT_FIELD: firestore.SERVER_TIMESTAMP,
                },
                merge=True,
            )
            return current + 1

        try:
            return await _consume(self._client.transaction(), ref)
        except StoreAppError:
            raise
        except Exception as exc:
            logger.error(
                "quota_store.write_failed",
                extra={"backend": "firestore", "error_type": type(exc).__name__},
            )
            raise StoreAppError(
                code="quota_store_unavailable",
                message="Error al procesar la solicitud.",
            ) from exc

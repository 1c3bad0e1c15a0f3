"""Factory for the configured usage-counter store."""

from app.adapters.quota_store.base import AbstractQuotaStore
from app.adapters.quota_store.firestore_store import FirestoreQuotaStore, build_firestore_client
from app.adapters.quota_store.in_memory import InMemoryQuotaStore
from app.core.config import QuotaStoreSettings, settings
from app.core.errors import ConfigurationAppError


def create_quota_store(store_settings: QuotaStoreSettings | None = None) -> AbstractQuotaStore:
    """Instantiate the counter store selected by QUOTA_STORE_BACKEND.

    Returns:
        AbstractQuotaStore: Configured store instance.

    Raises:
        ConfigurationAppError: If Firestore is selected without usable credentials.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryQuotaStore()

    if backend == "firestore":
        if not cfg.credentials_base64:
            raise ConfigurationAppError(
                code="store_missing_credentials",
                message="Error de configuración del servidor.",
                details={"hint": "Set QUOTA_STORE_CREDENTIALS_BASE64 (or FIREBASE_SERVICE_ACCOUNT_BASE64)"},
            )
        client = build_firestore_client(cfg.credentials_base64, cfg.project_id)
        return FirestoreQuotaStore(client, collection=cfg.collection)

    raise ConfigurationAppError(
        code="store_unknown_backend",
        message="Error de configuración del servidor.",
        details={"hint": f"Unknown quota store backend '{backend}'. Supported: firestore, memory"},
    )

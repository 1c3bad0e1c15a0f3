"""Usage-counter store adapters (Firestore in production, in-memory for tests)."""

from app.adapters.quota_store.base import AbstractQuotaStore, counter_key
from app.adapters.quota_store.factory import create_quota_store
from app.adapters.quota_store.firestore_store import FirestoreQuotaStore
from app.adapters.quota_store.in_memory import InMemoryQuotaStore

__all__ = [
    "AbstractQuotaStore",
    "FirestoreQuotaStore",
    "InMemoryQuotaStore",
    "counter_key",
    "create_quota_store",
]

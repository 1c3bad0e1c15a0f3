"""FastAPI dependencies providing the store, the gate and the verifier.

Collaborators are built on first use and cached on ``app.state`` for the
life of the process. A construction failure (missing secret or credentials)
is raised as a ``ConfigurationAppError`` for that request only and is not
cached, so fixing the environment does not require a restart. Tests replace
``get_quota_store`` / ``get_llm_client`` through ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from app.adapters.llm.base import AbstractLLMClient
from app.adapters.llm.factory import create_llm_client
from app.adapters.quota_store.base import AbstractQuotaStore
from app.adapters.quota_store.factory import create_quota_store
from app.core.config import settings
from app.services.quota_service import QuotaGate
from app.services.verification_service import VerificationService


def get_quota_store(request: Request) -> AbstractQuotaStore:
    store = getattr(request.app.state, "quota_store", None)
    if store is None:
        store = create_quota_store()
        request.app.state.quota_store = store
    return store


def get_llm_client(request: Request) -> AbstractLLMClient:
    client = getattr(request.app.state, "llm_client", None)
    if client is None:
        client = create_llm_client()
        request.app.state.llm_client = client
    return client


def get_quota_gate(
    store: Annotated[AbstractQuotaStore, Depends(get_quota_store)],
) -> QuotaGate:
    return QuotaGate(store, limit=settings.app.daily_quota_limit)


def get_verification_service(
    llm: Annotated[AbstractLLMClient, Depends(get_llm_client)],
) -> VerificationService:
    return VerificationService(
        llm,
        max_query_chars=settings.app.max_query_chars,
        pass_through_mode=settings.app.pass_through_mode,
    )

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from app.api.deps import get_quota_gate, get_verification_service
from app.core.config import settings
from app.core.identity import get_caller_key
from app.core.quota import enforce_daily_quota, quota_headers
from app.schemas.verification import MessageResponse, VerificationVerdict, VerifyMythRequest
from app.services.quota_service import QuotaGate
from app.services.verification_service import VerificationService

router = APIRouter(tags=["Verification"])

_ERROR_RESPONSES = {
    400: {"model": MessageResponse, "description": "Missing, blank or too long userQuery"},
    405: {"model": MessageResponse, "description": "Method other than POST"},
    429: {"model": MessageResponse, "description": "Daily quota exhausted"},
    500: {"model": MessageResponse, "description": "Configuration, store or provider failure"},
}


@router.post(
    "/verifyMyth",
    response_model=VerificationVerdict,
    responses=_ERROR_RESPONSES,
)
@router.post(
    "/.netlify/functions/verifyMyth",
    response_model=VerificationVerdict,
    responses=_ERROR_RESPONSES,
    include_in_schema=False,
)
async def verify_myth(
    payload: VerifyMythRequest,
    caller_key: Annotated[str, Depends(get_caller_key)],
    gate: Annotated[QuotaGate, Depends(get_quota_gate)],
    service: Annotated[VerificationService, Depends(get_verification_service)],
) -> Response:
    """Verify a factual claim, charging one unit of the caller's daily quota.

    The claim is validated before the quota is touched, so a bad request never
    consumes quota. Once admitted, the attempt stays charged whatever the
    provider answers.

    Returns:
        200 with the verdict JSON exactly as generated by the provider (or the
        raw provider envelope when APP_PASS_THROUGH_MODE=envelope).
    """
    service.validate_claim(payload.userQuery)

    decision = await enforce_daily_quota(gate, caller_key)

    result = await service.verify(payload.userQuery)

    headers = {}
    if settings.app.quota_include_headers:
        headers = quota_headers(decision)
    return Response(content=result.content, media_type="application/json", headers=headers)

"""Myth verification service: prompt, provider call and verdict validation.

This service turns a caller's claim into a validated verdict:
- Builds the fixed fact-checking instruction and user turn
- Requests schema-constrained JSON from the provider
- Validates the generated JSON against ``VerificationVerdict`` before it is
  forwarded, so malformed provider output never reaches the caller
- Returns the exact bytes to send for the configured pass-through mode
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from app.adapters.llm.base import AbstractLLMClient
from app.core.errors import LLMAppError, ValidationAppError
from app.schemas.verification import VerificationVerdict

logger = logging.getLogger(__name__)

PASS_THROUGH_VERDICT = "verdict"
PASS_THROUGH_ENVELOPE = "envelope"

SYSTEM_PROMPT = (
    "Actúa como un experto en divulgación científica y fact-checking. Tu misión es "
    "analizar la afirmación del usuario y devolver SIEMPRE una respuesta en formato JSON. "
    "La respuesta DEBE seguir estrictamente este esquema: "
    '{ "myth": "La afirmación original del usuario, reformulada si es necesario para mayor claridad.", '
    '"isTrue": boolean (true si la afirmación es mayormente verdadera, false si es mayormente falsa o engañosa), '
    '"explanation": "Una explicación concisa, clara y directa (2-4 frases) que justifique el veredicto, '
    'explicando el consenso científico actual.", '
    "\"evidenceLevel\": \"String que debe ser 'Alta', 'Moderada' o 'Baja', indicando el grado de certeza "
    'y consenso científico sobre el tema." } '
    "Basa tus respuestas en la evidencia científica más robusta y actual disponible. "
    "Nunca te desvíes del formato JSON."
)

# Gemini responseSchema (OpenAPI subset); pydantic's JSON schema uses
# keywords the provider rejects, so the wire schema is spelled out here.
VERDICT_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "myth": {"type": "STRING"},
        "isTrue": {"type": "BOOLEAN"},
        "explanation": {"type": "STRING"},
        "evidenceLevel": {"type": "STRING", "enum": ["Alta", "Moderada", "Baja"]},
    },
    "required": ["myth", "isTrue", "explanation", "evidenceLevel"],
    "propertyOrdering": ["myth", "isTrue", "explanation", "evidenceLevel"],
}

_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


def build_prompt(claim: str) -> str:
    """Wrap the caller's claim in the fixed user-turn template."""
    return f'Afirmación a verificar: "{claim}"'


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if any.

    Examples:
        >>> strip_code_fence('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
        >>> strip_code_fence('{"a": 1}')
        '{"a": 1}'
    """
    match = _CODE_FENCE.match(text)
    return match.group(1) if match else text


@dataclass(frozen=True)
class VerificationResult:
    """Validated verdict plus the response body to forward."""

    verdict: VerificationVerdict
    content: bytes


class VerificationService:
    """Service verifying claims through an LLM client.

    Attributes:
        llm: Provider client.
        max_query_chars: Longest claim accepted.
        pass_through_mode: ``verdict`` or ``envelope``.
    """

    def __init__(
        self,
        llm: AbstractLLMClient,
        *,
        max_query_chars: int = 1000,
        pass_through_mode: str = PASS_THROUGH_VERDICT,
    ) -> None:
        if pass_through_mode not in (PASS_THROUGH_VERDICT, PASS_THROUGH_ENVELOPE):
            raise ValueError(f"unknown pass_through_mode: {pass_through_mode!r}")
        self.llm = llm
        self.max_query_chars = max_query_chars
        self.pass_through_mode = pass_through_mode

    def validate_claim(self, claim: str) -> str:
        """Check the claim length; blank claims are rejected by the request schema.

        Raises:
            ValidationAppError: If the claim is blank or too long.
        """
        if not claim or not claim.strip():
            raise ValidationAppError(
                code="missing_user_query",
                message="Falta el parámetro userQuery.",
                details={"fields": ["userQuery"]},
            )
        if len(claim) > self.max_query_chars:
            raise ValidationAppError(
                code="user_query_too_long",
                message=f"La afirmación supera el máximo de {self.max_query_chars} caracteres.",
                details={"max_chars": self.max_query_chars, "actual_chars": len(claim)},
            )
        return claim

    def parse_verdict(self, text: str) -> VerificationVerdict:
        """Validate generated text against the verdict schema.

        Raises:
            LLMAppError: If the text is not a JSON object matching the schema.
        """
        try:
            return VerificationVerdict.model_validate_json(text)
        except ValidationError as exc:
            logger.error(
                "verification.invalid_verdict",
                extra={
                    "error_count": exc.error_count(),
                    "fields": sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()}),
                },
            )
            raise LLMAppError(
                code="upstream_invalid_verdict",
                message="La API de IA devolvió un veredicto con formato no válido.",
            ) from exc

    async def verify(self, claim: str) -> VerificationResult:
        """Verify a claim and return the validated verdict.

        Args:
            claim: Caller-supplied claim text.

        Returns:
            VerificationResult with the verdict and the body to forward.

        Raises:
            ValidationAppError: If the claim is invalid.
            UpstreamAppError: If the provider answers with a non-success status.
            LLMAppError: If the provider call fails or the verdict is malformed.
        """
        claim = self.validate_claim(claim)

        response = await self.llm.generate_json(
            build_prompt(claim),
            system_instruction=SYSTEM_PROMPT,
            schema=VERDICT_RESPONSE_SCHEMA,
        )

        verdict_text = strip_code_fence(response.text)
        verdict = self.parse_verdict(verdict_text)

        logger.info(
            "verification.completed",
            extra={"is_true": verdict.isTrue, "evidence_level": verdict.evidenceLevel},
        )

        if self.pass_through_mode == PASS_THROUGH_ENVELOPE:
            return VerificationResult(verdict=verdict, content=response.body)
        return VerificationResult(verdict=verdict, content=verdict_text.encode("utf-8"))

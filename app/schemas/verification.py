"""Pydantic schemas for the myth verification endpoint."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


EvidenceLevel = Literal["Alta", "Moderada", "Baja"]


class VerifyMythRequest(BaseModel):
    """Claim submitted by the caller."""

    userQuery: str = Field(
        ...,
        description="Free-text claim to verify.",
        examples=["Los humanos solo usamos el 10% del cerebro."],
    )

    @field_validator("userQuery")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("userQuery must not be blank")
        return value


class VerificationVerdict(BaseModel):
    """Structured verdict produced by the provider.

    Field names are the public JSON contract and are kept in camelCase. The
    generated text is forwarded as-is, so types are checked strictly and
    unknown keys are rejected.
    """

    model_config = ConfigDict(strict=True, extra="forbid")

    myth: str = Field(
        ...,
        description="The user's claim, rephrased for clarity if needed.",
    )
    isTrue: bool = Field(
        ...,
        description="True if the claim is mostly true, False if mostly false or misleading.",
    )
    explanation: str = Field(
        ...,
        description="Concise 2-4 sentence justification grounded in current scientific consensus.",
    )
    evidenceLevel: EvidenceLevel = Field(
        ...,
        description="Degree of certainty and scientific consensus: Alta, Moderada or Baja.",
    )


class MessageResponse(BaseModel):
    """Error envelope returned on every non-200 path."""

    message: str
    code: str | None = None
    request_id: str | None = None

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LLMResponse:
    """Generated output of a provider call.

    Attributes:
        text: The generated text (expected to be a JSON document).
        body: The provider's raw HTTP response body, byte for byte.
    """

    text: str
    body: bytes


class AbstractLLMClient(ABC):
    """Interface for LLM clients that produce structured JSON outputs."""

    @abstractmethod
    async def generate_json(
        self,
        prompt: str,
        *,
        system_instruction: str,
        schema: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Generate a JSON response from the model.

        Args:
            prompt: User turn sent to the model.
            system_instruction: Persona and output contract for the model.
            schema: Optional provider-native response schema to enforce.

        Returns:
            LLMResponse with the generated text left exactly as produced.

        Raises:
            UpstreamAppError: If the provider answers with a non-success status.
            LLMAppError: If the call fails in transport or the envelope has no text.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources held by the client."""
        return None

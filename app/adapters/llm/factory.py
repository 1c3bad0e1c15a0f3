"""Factory pattern for creating LLM client instances."""

from app.adapters.llm.base import AbstractLLMClient
from app.adapters.llm.gemini_client import GeminiClient
from app.core.config import LLMSettings, settings
from app.core.errors import ConfigurationAppError


def create_llm_client(llm_settings: LLMSettings | None = None) -> AbstractLLMClient:
    """Instantiate the configured LLM client.

    Validates provider-specific requirements before any network call is made.

    Returns:
        AbstractLLMClient: Configured LLM client instance.

    Raises:
        ConfigurationAppError: If the API key is missing or the provider is unknown.
    """
    cfg = llm_settings or settings.llm
    provider = cfg.provider.lower()

    if provider == "gemini":
        if not cfg.api_key:
            raise ConfigurationAppError(
                code="llm_missing_api_key",
                message="API key no está configurada en el servidor.",
                details={"hint": "Set LLM_API_KEY (or GEMINI_API_KEY)"},
            )
        return GeminiClient(
            api_key=cfg.api_key,
            model=cfg.model,
            base_url=cfg.base_url,
            timeout_seconds=cfg.timeout_seconds,
            enable_search_tool=cfg.enable_search_tool,
            enforce_response_schema=cfg.enforce_response_schema,
        )

    raise ConfigurationAppError(
        code="llm_unknown_provider",
        message="Error de configuración del servidor.",
        details={"hint": f"Unknown LLM provider: '{provider}'. Supported providers: gemini"},
    )

"""Factory for creating the LLM client used by the decision classifier."""

from policy_api.adapters.llm.base import AbstractLLMClient
from policy_api.adapters.llm.openai_client import OpenAIClient
from policy_api.core.config import LLMSettings, settings
from policy_api.core.errors import ValidationAppError

SUPPORTED_PROVIDERS = ("openai",)


def create_llm_client(llm_settings: LLMSettings | None = None) -> AbstractLLMClient:
    """Instantiate the LLM client for the configured provider.

    Args:
        llm_settings: Provider configuration; defaults to the global settings.

    Returns:
        AbstractLLMClient: Configured LLM client instance.

    Raises:
        ValidationAppError: If the provider is unknown or misconfigured.
    """
    cfg = llm_settings or settings.llm
    provider = cfg.provider.lower()

    if provider == "openai":
        if not cfg.api_key:
            raise ValidationAppError(
                code="llm_missing_api_key",
                message="OpenAI provider requires LLM_API_KEY environment variable",
            )
        return OpenAIClient(
            api_key=cfg.api_key,
            model=cfg.model,
            base_url=cfg.base_url,
            timeout_seconds=cfg.timeout_seconds,
        )

    raise ValidationAppError(
        code="llm_unknown_provider",
        message=(
            f"Unknown LLM provider: '{provider}'. "
            f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        ),
    )

"""LLM adapter layer used by the yes/no decision classifier."""

from policy_api.adapters.llm.base import AbstractLLMClient
from policy_api.adapters.llm.factory import create_llm_client
from policy_api.adapters.llm.openai_client import OpenAIClient, extract_json_object

__all__ = [
    "AbstractLLMClient",
    "OpenAIClient",
    "create_llm_client",
    "extract_json_object",
]

"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment so settings never come from a developer's
.env file, and provides app builders with isolated service containers.
"""

import os

# Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

# Default env vars that all tests might need
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("LLM_MODEL", "gpt-4o-mini")
os.environ.setdefault("LLM_API_KEY", "test-key-123")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from policy_api.adapters.llm.base import AbstractLLMClient
from policy_api.core.app_factory import create_app
from policy_api.core.config import AppSettings, LLMSettings, Settings


class FakeLLMClient(AbstractLLMClient):
    """LLM stand-in returning a fixed answer, or raising ``error``.

    ``scores`` is returned for option-scoring prompts.
    """

    def __init__(self, answer: str = "yes", error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.scores: list[Any] | None = None
        self.prompts: list[str] = []
        self.calls: list[dict[str, Any]] = []

    async def generate_json(
        self,
        prompt: str,
        *,
        schema: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        self.prompts.append(prompt)
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if schema and "scores" in schema.get("properties", {}):
            return {"scores": self.scores, "reason": "fake"}
        return {"answer": self.answer}


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def make_client() -> Callable[..., TestClient]:
    """Build a TestClient over a fresh app.

    Keyword arguments override AppSettings fields. ``llm`` injects the
    classifier client; ``llm_settings`` replaces the LLM configuration.
    """

    def _make(
        *,
        llm: AbstractLLMClient | None = None,
        llm_settings: LLMSettings | None = None,
        **app_overrides: Any,
    ) -> TestClient:
        cfg = Settings(
            app=AppSettings(**app_overrides),
            llm=llm_settings or LLMSettings(),
        )
        return TestClient(create_app(cfg, llm_client=llm))

    return _make


@pytest.fixture
def client(make_client: Callable[..., TestClient], fake_llm: FakeLLMClient) -> TestClient:
    return make_client(llm=fake_llm)

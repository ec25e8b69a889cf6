"""Integration tests for LLM adapter layer."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from policy_api.adapters.llm import OpenAIClient, create_llm_client, extract_json_object
from policy_api.core.config import LLMSettings
from policy_api.core.errors import ValidationAppError


def _completion(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


class TestExtractJsonObject:
    @pytest.mark.parametrize(
        "text",
        [
            '{"answer": "yes"}',
            '```json\n{"answer": "yes"}\n```',
            'Sure! {"answer": "yes"} Hope that helps.',
        ],
    )
    def test_recovers_object(self, text: str) -> None:
        assert extract_json_object(text) == {"answer": "yes"}

    @pytest.mark.parametrize("text", ["yes", "[1, 2]", "{broken"])
    def test_rejects_non_objects(self, text: str) -> None:
        with pytest.raises(ValueError):
            extract_json_object(text)


class TestOpenAIClientIntegration:
    """Test OpenAI client integration with mocked API calls."""

    @pytest.mark.asyncio
    async def test_generate_json_success(self) -> None:
        client = OpenAIClient(api_key="test-key-123", model="gpt-4o-mini")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion('{"answer": "no"}'),
        ) as mock_create:
            result = await client.generate_json(
                prompt="Is it raining?",
                schema={"type": "object"},
                temperature=0.7,
                max_tokens=20,
            )

        assert result == {"answer": "no"}
        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["model"] == "gpt-4o-mini"
        assert call_kwargs["temperature"] == 0.7
        assert call_kwargs["max_tokens"] == 20
        assert call_kwargs["response_format"] == {"type": "json_object"}
        assert call_kwargs["messages"][-1] == {"role": "user", "content": "Is it raining?"}

    @pytest.mark.asyncio
    async def test_without_schema_json_mode_is_off(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o-mini")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion('{"answer": "yes"}'),
        ) as mock_create:
            await client.generate_json(prompt="Test")

        call_kwargs = mock_create.call_args.kwargs
        assert "response_format" not in call_kwargs
        assert call_kwargs["temperature"] == 0.0

    @pytest.mark.asyncio
    async def test_invalid_json_raises_error(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o-mini")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion("This is not JSON"),
        ):
            with pytest.raises(RuntimeError, match="invalid JSON"):
                await client.generate_json(prompt="Test")

    @pytest.mark.asyncio
    async def test_empty_response_raises_error(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o-mini")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion(None),
        ):
            with pytest.raises(RuntimeError, match="empty response"):
                await client.generate_json(prompt="Test")

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o-mini")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            side_effect=ConnectionError("network down"),
        ):
            with pytest.raises(RuntimeError, match="OpenAI API error"):
                await client.generate_json(prompt="Test")


class TestLLMFactory:
    """Test LLM client factory pattern."""

    def test_create_llm_client_with_settings(self) -> None:
        client = create_llm_client(
            LLMSettings(provider="openai", api_key="test-key", model="gpt-4o-mini", timeout_seconds=30.0)
        )

        assert isinstance(client, OpenAIClient)
        assert client.model == "gpt-4o-mini"

    def test_create_llm_client_missing_api_key_raises_error(self) -> None:
        with pytest.raises(ValidationAppError, match="requires LLM_API_KEY") as exc:
            create_llm_client(LLMSettings(provider="openai", api_key=None))
        assert exc.value.code == "llm_missing_api_key"

    def test_create_llm_client_unknown_provider_raises_error(self) -> None:
        with pytest.raises(ValidationAppError, match="Unknown LLM provider") as exc:
            create_llm_client(LLMSettings(provider="unknown-provider", api_key="test-key"))
        assert exc.value.code == "llm_unknown_provider"

"""OpenAI LLM client adapter."""

import json
import re
from typing import Any

from openai import AsyncOpenAI

from policy_api.adapters.llm.base import AbstractLLMClient

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse a JSON object out of a model reply.

    Tolerates markdown code fences and leading/trailing prose around the
    outermost ``{...}`` span.

    Raises:
        ValueError: If no JSON object can be recovered.
    """
    raw = _CODE_FENCE_RE.sub("", text.strip()).strip()
    candidates = [raw]
    start, end = raw.find("{"), raw.rfind("}")
    if start != -1 and end > start:
        candidates.append(raw[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError("no JSON object found in model output")


class OpenAIClient(AbstractLLMClient):
    """Client for calling OpenAI chat completions and returning JSON.

    Uses the official OpenAI Python SDK with async support.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
        )
        self.model = model

    async def generate_json(
        self,
        prompt: str,
        *,
        schema: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Generate structured JSON using OpenAI chat completions.

        Args:
            prompt: User prompt to send to the model.
            schema: Optional JSON schema (enables json_object mode if provided).
            **kwargs: Provider options (temperature, max_tokens, top_p, seed).

        Returns:
            dict[str, Any]: Parsed JSON object from the LLM response.

        Raises:
            RuntimeError: If the API call fails or the response is not a JSON object.
        """
        messages = [
            {
                "role": "system",
                "content": "Output JSON only. No extra text or markdown formatting.",
            },
            {"role": "user", "content": prompt},
        ]

        request_params: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": kwargs.pop("temperature", 0.0),
        }

        if schema is not None:
            request_params["response_format"] = {"type": "json_object"}

        for param in ("max_tokens", "top_p", "seed"):
            if param in kwargs:
                request_params[param] = kwargs[param]

        try:
            response = await self.client.chat.completions.create(**request_params)
            content = response.choices[0].message.content
        except Exception as exc:
            raise RuntimeError(f"OpenAI API error: {str(exc)}") from exc

        if not content:
            raise RuntimeError("LLM returned empty response")

        try:
            return extract_json_object(content)
        except ValueError as exc:
            raise RuntimeError(f"LLM returned invalid JSON: {str(exc)}") from exc

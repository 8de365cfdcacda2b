"""
Agent LLM: OpenAI (primary) or Hugging Face router (fallback).
When OPENAI_API_KEY is set, uses OpenAI chat completions; otherwise uses the HF router.
Failures and timeouts raise LLMError; retrying is left to the caller.
"""

import logging
import time
from dataclasses import dataclass
from typing import Protocol

import httpx
from openai import OpenAI, OpenAIError

from agentrag.core import config
from agentrag.core.errors import LLMError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LLMResponse:
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0


class LLMClient(Protocol):
    """Given a prompt, returns text with token counts and latency, or raises LLMError."""

    def complete(self, prompt: str, max_tokens: int = 256) -> LLMResponse: ...


class OpenAIClient:
    def __init__(self, api_key: str, model: str = config.OPENAI_LLM_MODEL, timeout: float = config.LLM_API_TIMEOUT):
        self.model = model
        self._client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def complete(self, prompt: str, max_tokens: int = 256) -> LLMResponse:
        logger.info("[llm:openai] IN  prompt_len=%d max_tokens=%d", len(prompt), max_tokens)
        start = time.perf_counter()
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            raise LLMError(f"OpenAI request failed: {e}") from e
        latency_ms = (time.perf_counter() - start) * 1000
        msg = response.choices[0].message if response.choices else None
        out = ((msg.content if msg else None) or "").strip()
        if not out:
            raise LLMError("OpenAI returned an empty completion")
        usage = response.usage
        logger.info("[llm:openai] OUT response_len=%d latency_ms=%.0f", len(out), latency_ms)
        return LLMResponse(
            text=out,
            prompt_tokens=_token_count(usage.prompt_tokens) if usage else 0,
            completion_tokens=_token_count(usage.completion_tokens) if usage else 0,
            latency_ms=latency_ms,
        )


class HuggingFaceClient:
    def __init__(
        self,
        api_key: str,
        model: str = config.HF_LLM_MODEL,
        url: str = config.HF_CHAT_URL,
        timeout: float = config.LLM_API_TIMEOUT,
    ):
        self.model = model
        self._api_key = api_key
        self._url = url
        self._timeout = timeout

    def complete(self, prompt: str, max_tokens: int = 256) -> LLMResponse:
        logger.info("[llm:hf] IN  prompt_len=%d max_tokens=%d", len(prompt), max_tokens)
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
        }
        start = time.perf_counter()
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise LLMError(f"HF request failed: {e}") from e
        latency_ms = (time.perf_counter() - start) * 1000
        if response.status_code != 200:
            raise LLMError(f"HF LLM error {response.status_code}: {response.text[:200]}")
        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"HF returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise LLMError(f"HF returned unexpected payload: {str(data)[:200]}")
        try:
            message = data["choices"][0]["message"]
            out = (message.get("content") or "").strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise LLMError(f"HF response missing choices: {str(data)[:200]}") from e
        if not out:
            raise LLMError("HF returned an empty completion")
        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        logger.info("[llm:hf] OUT response_len=%d latency_ms=%.0f", len(out), latency_ms)
        return LLMResponse(
            text=out,
            prompt_tokens=_token_count(usage.get("prompt_tokens")),
            completion_tokens=_token_count(usage.get("completion_tokens")),
            latency_ms=latency_ms,
        )


def _token_count(value: object) -> int:
    """Usage counts as reported by the provider; missing or malformed counts are 0."""
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def build_llm_client() -> LLMClient | None:
    """OpenAI when OPENAI_API_KEY is set, else HF when HF_API_KEY is set, else None (extractive mode)."""
    if config.OPENAI_API_KEY:
        logger.info("[llm] provider=openai model=%s", config.OPENAI_LLM_MODEL)
        return OpenAIClient(config.OPENAI_API_KEY)
    if config.HF_API_KEY:
        logger.info("[llm] provider=hf model=%s", config.HF_LLM_MODEL)
        return HuggingFaceClient(config.HF_API_KEY)
    logger.info("[llm] no provider configured; answers will be extractive")
    return None

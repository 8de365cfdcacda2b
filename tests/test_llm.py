"""
Tests for the Hugging Face router client's response handling (HTTP is patched).
"""

from unittest.mock import patch

import httpx
import pytest

from agentrag.agents.llm import HuggingFaceClient
from agentrag.core.errors import LLMError

POST = "agentrag.agents.llm.httpx.Client.post"


@pytest.fixture
def client() -> HuggingFaceClient:
    return HuggingFaceClient(api_key="test-key")


def chat_reply(content: str, usage: object = None) -> dict:
    body: dict = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if usage is not None:
        body["usage"] = usage
    return body


def test_complete_returns_text_and_usage(client: HuggingFaceClient) -> None:
    reply = httpx.Response(200, json=chat_reply(" technical ", {"prompt_tokens": 40, "completion_tokens": 2}))
    with patch(POST, return_value=reply):
        response = client.complete("classify", max_tokens=8)
    assert response.text == "technical"
    assert (response.prompt_tokens, response.completion_tokens) == (40, 2)


def test_null_usage_counts_become_zero(client: HuggingFaceClient) -> None:
    reply = httpx.Response(200, json=chat_reply("article", {"prompt_tokens": None, "completion_tokens": None}))
    with patch(POST, return_value=reply):
        response = client.complete("classify")
    assert (response.prompt_tokens, response.completion_tokens) == (0, 0)


@pytest.mark.parametrize(
    "payload",
    [
        [{"error": "model loading"}],
        {"error": "model loading"},
        {"choices": []},
        {"choices": ["oops"]},
        {"choices": [{"message": None}]},
        {"choices": [{"message": {"content": "   "}}]},
    ],
)
def test_malformed_payload_raises_llm_error(client: HuggingFaceClient, payload: object) -> None:
    with patch(POST, return_value=httpx.Response(200, json=payload)):
        with pytest.raises(LLMError):
            client.complete("classify")


def test_non_json_body_raises_llm_error(client: HuggingFaceClient) -> None:
    with patch(POST, return_value=httpx.Response(200, text="<html>gateway</html>")):
        with pytest.raises(LLMError):
            client.complete("classify")


def test_http_error_status_raises_llm_error(client: HuggingFaceClient) -> None:
    with patch(POST, return_value=httpx.Response(503, text="unavailable")):
        with pytest.raises(LLMError) as exc_info:
            client.complete("classify")
    assert "503" in exc_info.value.message


def test_transport_failure_raises_llm_error(client: HuggingFaceClient) -> None:
    with patch(POST, side_effect=httpx.ConnectTimeout("timed out")):
        with pytest.raises(LLMError):
            client.complete("classify")

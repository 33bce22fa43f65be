"""Tests for LLMClient provider abstraction and answer normalization."""

import logging
import pytest
from unittest.mock import MagicMock

from cortex.common.llm_client import LLMClient


class TestLLMClientInit:
    @pytest.mark.parametrize("provider", ["anthropic", "openai", "google"])
    def test_missing_key_logs_info(self, provider, caplog):
        with caplog.at_level(logging.INFO, logger="cortex.common.llm_client"):
            client = LLMClient(provider=provider)
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cortex.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz", api_key="k")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_from_config_picks_provider_key(self):
        from cortex.common.config import LLMConfig
        client = LLMClient.from_config(LLMConfig(provider="openai", anthropic_api_key="a"))
        assert client.provider == "openai"
        assert client.model == "gpt-4o-mini"
        assert not client.is_available


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            client.generate("test")

    def test_anthropic_generate_passes_system(self):
        client = LLMClient(provider="anthropic")
        client._client = MagicMock()
        client._client.messages.create.return_value.content = [MagicMock(text="  hi  ")]

        assert client.generate("q", system="sys", max_tokens=10) == "hi"
        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["max_tokens"] == 10

    def test_openai_generate_builds_messages(self):
        client = LLMClient(provider="openai")
        client._client = MagicMock()
        choice = MagicMock()
        choice.message.content = "answer"
        client._client.chat.completions.create.return_value.choices = [choice]

        assert client.generate("q", system="sys") == "answer"
        messages = client._client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "sys"}
        assert messages[-1] == {"role": "user", "content": "q"}

    @pytest.mark.asyncio
    async def test_agenerate_runs_generate(self):
        client = LLMClient(provider="openai")
        client._client = MagicMock()
        choice = MagicMock()
        choice.message.content = "async answer"
        client._client.chat.completions.create.return_value.choices = [choice]

        assert await client.agenerate("q") == "async answer"


class TestNormalizeLLMAnswer:
    @pytest.mark.parametrize("raw,expected", [
        ("knowledge-search", "knowledge-search"),
        ("  knowledge-search.\n", "knowledge-search"),
        ('"general-assistant"', "general-assistant"),
        ("`knowledge-search`", "knowledge-search"),
        ("```\nknowledge-search\n```", "knowledge-search"),
        ("\n\nknowledge-search\nbecause it searches notes", "knowledge-search"),
        ("", ""),
        ("   ", ""),
    ])
    def test_normalize(self, raw, expected):
        from cortex.common.llm_utils import normalize_llm_answer
        assert normalize_llm_answer(raw) == expected


class TestParseLLMJson:
    def test_plain_object(self):
        from cortex.common.llm_utils import parse_llm_json
        assert parse_llm_json('{"action": "LIST_NOTES"}') == {"action": "LIST_NOTES"}

    def test_fenced_object(self):
        from cortex.common.llm_utils import parse_llm_json
        raw = '```json\n{"action": "READ_NOTE", "parameters": {"path": "a.md"}}\n```'
        assert parse_llm_json(raw) == {"action": "READ_NOTE", "parameters": {"path": "a.md"}}

    def test_preamble_text(self):
        from cortex.common.llm_utils import parse_llm_json
        raw = 'The user wants their tags.\n{"action": "GET_TAGS", "parameters": {}}'
        assert parse_llm_json(raw) == {"action": "GET_TAGS", "parameters": {}}

    def test_non_object_and_garbage(self):
        from cortex.common.llm_utils import parse_llm_json
        assert parse_llm_json("[1, 2]") == {}
        assert parse_llm_json("not json at all") == {}
        assert parse_llm_json("") == {}

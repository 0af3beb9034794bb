import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from openai import OpenAIError

from shopassist.core.errors import GenerationError, UpstreamFormatError
from shopassist.domain.services.llm_svc import OpenAIGenerator, parse_json_object


def _client(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _response(content):
    return SimpleNamespace(
        model="gpt-test",
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
    )


class TestOpenAIGenerator:
    async def test_returns_content_in_json_mode(self):
        create = AsyncMock(return_value=_response('{"ok": true}'))
        gen = OpenAIGenerator(_client(create), model="gpt-test", timeout_s=5)

        assert await gen.generate("compare", system="be brief", max_tokens=100) == '{"ok": true}'
        kwargs = create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["max_tokens"] == 100
        assert kwargs["messages"][0] == {"role": "system", "content": "be brief"}
        assert kwargs["messages"][1] == {"role": "user", "content": "compare"}

    async def test_no_system_message_when_not_given(self):
        create = AsyncMock(return_value=_response("{}"))
        await OpenAIGenerator(_client(create), model="gpt-test").generate("hi")
        assert [m["role"] for m in create.call_args.kwargs["messages"]] == ["user"]
        assert "max_tokens" not in create.call_args.kwargs

    async def test_api_error_becomes_generation_error(self):
        create = AsyncMock(side_effect=OpenAIError("quota exceeded"))
        with pytest.raises(GenerationError):
            await OpenAIGenerator(_client(create), model="gpt-test").generate("hi")
        assert create.await_count == 1

    async def test_timeout_becomes_generation_error(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)

        with pytest.raises(GenerationError):
            await OpenAIGenerator(_client(slow), model="gpt-test", timeout_s=0.01).generate("hi")

    async def test_empty_choices(self):
        create = AsyncMock(return_value=SimpleNamespace(model="gpt-test", usage=None, choices=[]))
        with pytest.raises(GenerationError):
            await OpenAIGenerator(_client(create), model="gpt-test").generate("hi")


class TestParseJsonObject:
    def test_plain_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    @pytest.mark.parametrize("raw", ["", "   ", "nope", "[1]", '"text"', None])
    def test_rejects(self, raw):
        with pytest.raises(UpstreamFormatError):
            parse_json_object(raw)

from __future__ import annotations

from types import SimpleNamespace

import pytest

from generation.llm import AnthropicLLM, Message, OpenAILLM, get_llm
from generation.llm.factory import DEEPSEEK_BASE_URL


class _Recorder:
    def __init__(self, response) -> None:
        self.response = response
        self.params = None
        self.closed = False

    async def create(self, **params):
        self.params = params
        return self.response

    async def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_openai_json_mode_sets_response_format() -> None:
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content='{"a": 1}'), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=3, completion_tokens=4, total_tokens=7),
        model="gpt-test",
    )
    recorder = _Recorder(response)
    llm = OpenAILLM(model="gpt-test", api_key="k")
    llm._async_client = SimpleNamespace(chat=SimpleNamespace(completions=recorder), close=recorder.close)

    result = await llm.acomplete([Message.system("sys"), Message.user("hi")], json_mode=True, temperature=0.1)

    assert result.content == '{"a": 1}'
    assert result.usage["total_tokens"] == 7
    assert recorder.params["response_format"] == {"type": "json_object"}
    assert recorder.params["temperature"] == 0.1
    assert recorder.params["messages"][0] == {"role": "system", "content": "sys"}

    await llm.aclose()
    assert recorder.closed is True


@pytest.mark.asyncio
async def test_anthropic_sends_system_prompt_separately() -> None:
    response = SimpleNamespace(
        content=[SimpleNamespace(type="text", text='{"a": '), SimpleNamespace(type="text", text="1}")],
        usage=SimpleNamespace(input_tokens=5, output_tokens=2),
        model="claude-test",
        stop_reason="end_turn",
    )
    recorder = _Recorder(response)
    llm = AnthropicLLM(model="claude-test", api_key="k")
    llm._async_client = SimpleNamespace(messages=recorder, close=recorder.close)

    result = await llm.acomplete([Message.system("sys"), Message.user("hi")], json_mode=True)

    assert result.content == '{"a": 1}'
    assert result.usage == {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7}
    assert recorder.params["system"] == "sys"
    assert recorder.params["messages"] == [{"role": "user", "content": "hi"}]


def test_deepseek_uses_openai_client_with_its_base_url() -> None:
    llm = get_llm(provider="deepseek", api_key="k")

    assert isinstance(llm, OpenAILLM)
    assert llm.provider == "deepseek"
    assert llm.model == "deepseek-chat"
    assert llm.base_url == DEEPSEEK_BASE_URL

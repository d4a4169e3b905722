from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from galshelf.translation.translator import ChatTranslator, TranslationError


def _response(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_api():
    """Client double exposing chat.completions.create."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=_response("译文"))
    return client


@pytest.fixture
def translator(fake_api):
    credentials = []

    def factory(credential):
        credentials.append(credential)
        return fake_api

    instance = ChatTranslator({"translation": {"model": "test-model"}}, client_factory=factory)
    instance.seen_credentials = credentials
    return instance


@pytest.mark.unit
@pytest.mark.asyncio
async def test_translate_text_sends_prompt_and_returns_content(translator, fake_api):
    result = await translator.translate_text("A story.", "sk-test")

    assert result == "译文"
    assert translator.seen_credentials == ["sk-test"]
    kwargs = fake_api.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["temperature"] == 0.3
    assert kwargs["max_tokens"] == 2048
    assert kwargs["messages"][0]["role"] == "system"
    assert "Simplified Chinese" in kwargs["messages"][0]["content"]
    assert kwargs["messages"][1] == {"role": "user", "content": "A story."}


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("text, credential", [("", "sk-test"), ("   ", "sk-test"), ("A story.", ""), ("A story.", "  ")])
async def test_translate_text_passes_through_blank_input(translator, fake_api, text, credential):
    assert await translator.translate_text(text, credential) == text
    fake_api.chat.completions.create.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_translate_text_wraps_api_errors(translator, fake_api):
    fake_api.chat.completions.create.side_effect = OpenAIError("invalid api key")

    with pytest.raises(TranslationError, match="invalid api key"):
        await translator.translate_text("A story.", "sk-bad")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_translate_text_rejects_empty_output(translator, fake_api):
    fake_api.chat.completions.create.return_value = _response("  ")

    with pytest.raises(TranslationError):
        await translator.translate_text("A story.", "sk-test")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_translate_tags_splits_lines_in_order(translator, fake_api):
    fake_api.chat.completions.create.return_value = _response("恋爱\n\n 校园 \n")

    result = await translator.translate_tags(["Romance", "School"], "sk-test")

    assert result == ["恋爱", "校园"]
    kwargs = fake_api.chat.completions.create.call_args.kwargs
    assert kwargs["messages"][1]["content"] == "Romance\nSchool"
    assert kwargs["temperature"] == 0.0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_translate_tags_line_count_mismatch_raises(translator, fake_api):
    fake_api.chat.completions.create.return_value = _response("恋爱")

    with pytest.raises(TranslationError, match="1 lines for 2 tags"):
        await translator.translate_tags(["Romance", "School"], "sk-test")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_translate_tags_without_credential_returns_input(translator, fake_api):
    assert await translator.translate_tags(["Romance"], "") == ["Romance"]
    assert await translator.translate_tags([], "sk-test") == []
    fake_api.chat.completions.create.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_credential_check(translator, fake_api):
    assert await translator.test_credential("sk-test") is True
    assert fake_api.chat.completions.create.call_args.kwargs["max_tokens"] == 1

    fake_api.chat.completions.create.side_effect = OpenAIError("401")
    assert await translator.test_credential("sk-bad") is False
    assert await translator.test_credential("") is False


@pytest.mark.unit
def test_defaults_target_deepseek():
    translator = ChatTranslator({})

    assert translator.base_url == "https://api.deepseek.com/v1"
    assert translator.model == "deepseek-chat"
    assert translator.target_language == "Simplified Chinese"

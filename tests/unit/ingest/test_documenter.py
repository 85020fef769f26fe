"""Tests for the per-file Documenter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from repocontext.config import DocumentationCfg
from repocontext.errors import ConfigurationError
from repocontext.ingest.documenter import DEFAULT_PROMPT, Documenter, render_prompt


def _completion(text: str, prompt_tokens: int = 120, completion_tokens: int = 40):
    mock = MagicMock()
    mock.choices = [MagicMock()]
    mock.choices[0].message.content = text
    mock.usage.prompt_tokens = prompt_tokens
    mock.usage.completion_tokens = completion_tokens
    return mock


def _patch_acompletion(response):
    return patch(
        "repocontext.rag.llm_client.litellm.acompletion",
        new_callable=AsyncMock,
        return_value=response,
    )


@pytest.fixture(autouse=True)
def _anthropic_key(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")


def test_render_prompt_fills_placeholders():
    rendered = render_prompt(DEFAULT_PROMPT, "src/app.py", "print('hi')")
    assert "File: src/app.py" in rendered
    assert "print('hi')" in rendered
    assert "{relativePath}" not in rendered


def test_render_prompt_leaves_other_braces():
    rendered = render_prompt("{relativePath} uses {braces} and {content}", "a.py", "x")
    assert rendered == "a.py uses {braces} and x"


@pytest.mark.asyncio
async def test_analyze_returns_text_and_tokens():
    with _patch_acompletion(_completion("# app.py\nDoes things.")) as mock_call:
        analysis = await Documenter().analyze("app.py", "def main(): ...")

    assert analysis.text == "# app.py\nDoes things."
    assert (analysis.input_tokens, analysis.output_tokens) == (120, 40)
    kwargs = mock_call.call_args.kwargs
    assert kwargs["model"] == DocumentationCfg().model
    assert kwargs["max_tokens"] == 2000


@pytest.mark.asyncio
async def test_analyze_uses_custom_prompt():
    with _patch_acompletion(_completion("doc")) as mock_call:
        await Documenter().analyze("lib.rs", "fn x() {}", prompt="Describe {relativePath}")
    assert mock_call.call_args.kwargs["messages"][0]["content"] == "Describe lib.rs"


@pytest.mark.asyncio
async def test_analyze_tracks_usage_under_provider(tokens):
    with _patch_acompletion(_completion("doc", 10, 5)):
        await Documenter(tokens=tokens).analyze("a.py", "x")

    stats = tokens.get_token_usage_stats()
    assert stats["today"]["anthropic_api"] == {"input": 10, "output": 5}
    assert stats["total"]["anthropic_api"] == {"input": 10, "output": 5}


@pytest.mark.asyncio
async def test_analyze_requires_api_key(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with _patch_acompletion(_completion("doc")) as mock_call:
        with pytest.raises(ConfigurationError):
            await Documenter().analyze("a.py", "x")
    mock_call.assert_not_awaited()

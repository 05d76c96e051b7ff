"""Tests for the LLM client (Anthropic mocked)."""

import sys
from unittest.mock import Mock, patch

import pytest
from factories import TARGET_PUUID

from valocoach.ai.llm_client import (
    MATCH_COACHING_SYSTEM_PROMPT,
    WEB_SEARCH_TOOL,
    LLMClient,
    ModelTier,
    response_text,
)
from valocoach.analysis.extract import extract_player_view


def _text_block(text, citations=None):
    block = Mock()
    block.type = "text"
    block.text = text
    block.citations = citations
    return block


def _message(*blocks):
    message = Mock()
    message.content = list(blocks)
    message.stop_reason = "end_turn"
    message.usage = Mock(
        input_tokens=1200, output_tokens=300, cache_read_input_tokens=0, cache_creation_input_tokens=0
    )
    return message


@pytest.fixture
def anthropic_client():
    """Patch the anthropic module and yield the client instance LLMClient will use."""
    with patch.dict("sys.modules", {"anthropic": Mock()}):
        mock_anthropic_module = sys.modules["anthropic"]
        mock_client_instance = Mock()
        mock_anthropic_module.Anthropic.return_value = mock_client_instance
        yield mock_client_instance


class TestModelTier:
    @pytest.mark.parametrize("name", ["deep", "DEEP", " Deep "])
    def test_deep(self, name):
        assert ModelTier.from_name(name) is ModelTier.DEEP

    @pytest.mark.parametrize("name", [None, "", "standard", "fast"])
    def test_everything_else_is_standard(self, name):
        assert ModelTier.from_name(name) is ModelTier.STANDARD

    def test_tier_from_environment(self, monkeypatch):
        monkeypatch.setenv("VALOCOACH_LLM_TIER", "deep")
        assert LLMClient(api_key="k").default_tier is ModelTier.DEEP

    def test_tier_name_argument(self):
        assert LLMClient(api_key="k", tier="deep").default_tier is ModelTier.DEEP


class TestCreateMessage:
    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            LLMClient().create_message("system", [{"role": "user", "content": "hi"}])

    def test_request_shape(self, anthropic_client):
        anthropic_client.messages.create.return_value = _message(_text_block("ok"))
        tools = [{"name": "t", "description": "d", "input_schema": {"type": "object"}}]

        LLMClient(api_key="k", tier=ModelTier.STANDARD).create_message(
            "be a coach", [{"role": "user", "content": "hi"}], tools=tools
        )

        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["model"] == ModelTier.STANDARD.value
        assert kwargs["system"] == [
            {"type": "text", "text": "be a coach", "cache_control": {"type": "ephemeral"}}
        ]
        assert kwargs["tools"] == tools

    def test_no_tools_key_without_tools(self, anthropic_client):
        anthropic_client.messages.create.return_value = _message(_text_block("ok"))

        LLMClient(api_key="k").create_message("s", [{"role": "user", "content": "hi"}], tier=ModelTier.DEEP)

        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert "tools" not in kwargs
        assert kwargs["model"] == ModelTier.DEEP.value


class TestCoachingNarrative:
    def test_prompt_carries_the_view(self, anthropic_client, match):
        anthropic_client.messages.create.return_value = _message(
            _text_block("## Overall\n"), _text_block("18 kills is solid.")
        )
        view = extract_player_view(match, TARGET_PUUID)

        text = LLMClient(api_key="k").generate_coaching_narrative(view)

        assert text == "## Overall\n18 kills is solid."
        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["system"][0]["text"] == MATCH_COACHING_SYSTEM_PROMPT
        prompt = kwargs["messages"][0]["content"]
        assert '"Target#JP1"' in prompt
        assert '"match_id": "match-001"' in prompt

    def test_errors_propagate(self, anthropic_client, match):
        anthropic_client.messages.create.side_effect = RuntimeError("overloaded")
        view = extract_player_view(match, TARGET_PUUID)

        with pytest.raises(RuntimeError):
            LLMClient(api_key="k").generate_coaching_narrative(view)


class TestResearch:
    def test_uses_web_search_on_deep_tier(self, anthropic_client):
        anthropic_client.messages.create.return_value = _message(_text_block("Summary"))

        LLMClient(api_key="k").research("Lotus meta")

        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["tools"] == [WEB_SEARCH_TOOL]
        assert kwargs["model"] == ModelTier.DEEP.value
        assert "Lotus meta" in kwargs["messages"][0]["content"]

    def test_cited_sources_appended(self, anthropic_client):
        first = Mock(url="https://a.example")
        second = Mock(url="https://b.example")
        anthropic_client.messages.create.return_value = _message(
            _text_block("Double controller.", citations=[first, second]),
            _text_block(" Viper walls.", citations=[first]),
        )

        text = LLMClient(api_key="k").research("Lotus meta")

        assert text == (
            "Double controller. Viper walls.\n\n## Sources\n- https://a.example\n- https://b.example"
        )

    def test_existing_sources_section_kept(self, anthropic_client):
        anthropic_client.messages.create.return_value = _message(
            _text_block("Body\n\n## Sources\n- https://a.example", citations=[Mock(url="https://a.example")])
        )
        assert LLMClient(api_key="k").research("x").count("Sources") == 1


class TestResponseText:
    def test_skips_non_text_blocks(self):
        tool_use = Mock()
        tool_use.type = "tool_use"
        assert response_text(_message(_text_block("a"), tool_use, _text_block("b"))) == "ab"

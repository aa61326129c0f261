"""Unit tests for the Anthropic chat provider."""
import logging
from unittest.mock import MagicMock

from core.llm.anthropic_service import AnthropicChatProvider


def make_message(blocks, stop_reason="end_turn"):
    message = MagicMock()
    message.content = blocks
    message.stop_reason = stop_reason
    return message


def text_block(text):
    block = MagicMock()
    block.type = "text"
    block.text = text
    return block


class TestAnthropicChatProvider:

    def test_request_shape(self):
        client = MagicMock()
        client.messages.create.return_value = make_message([text_block('{"a": 1}')])
        provider = AnthropicChatProvider(model="claude-3-5-haiku-latest", max_tokens=1000, client=client)

        result = provider.complete("Extract", system_prompt="JSON only")

        assert result == '{"a": 1}'
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs['model'] == "claude-3-5-haiku-latest"
        assert kwargs['max_tokens'] == 1000
        assert kwargs['system'] == "JSON only"
        assert kwargs['messages'] == [{"role": "user", "content": "Extract"}]

    def test_first_text_block_wins(self):
        client = MagicMock()
        tool_block = MagicMock()
        tool_block.type = "tool_use"
        client.messages.create.return_value = make_message([tool_block, text_block("second")])

        assert AnthropicChatProvider(client=client).complete("hi") == "second"

    def test_no_text(self):
        client = MagicMock()
        client.messages.create.return_value = make_message([])

        result = AnthropicChatProvider(client=client).complete("hi")

        assert result == ""
        assert 'system' not in client.messages.create.call_args.kwargs

    def test_max_tokens_stop_logged(self, caplog):
        client = MagicMock()
        client.messages.create.return_value = make_message([text_block('{"a": ')], stop_reason="max_tokens")

        with caplog.at_level(logging.WARNING, logger="core.llm.anthropic_service"):
            result = AnthropicChatProvider(client=client).complete("hi")

        assert result == '{"a": '
        assert "truncated" in caplog.text

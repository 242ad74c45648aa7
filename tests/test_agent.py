"""Tests for the chat agent glue: tool dispatch and the chat reply."""

import json
from unittest.mock import Mock

from rss_reader import tools
from rss_reader.__main__ import reply
from rss_reader.agent import TOOLS, run_tool_calls

TOOLS_BY_NAME = {tool.name: tool for tool in TOOLS}


def test_run_tool_calls_returns_tool_output(reader):
    tools.set_reader(reader)
    try:
        [message] = run_tool_calls(
            [{"name": "list_feeds", "args": {}, "id": "call-1"}], TOOLS_BY_NAME
        )
    finally:
        tools.set_reader(None)

    assert message.tool_call_id == "call-1"
    result = json.loads(message.content)
    assert result["feeds"] == []
    assert result["total"] == 0


def test_run_tool_calls_reports_unknown_tool():
    [message] = run_tool_calls([{"name": "search_items", "args": {}, "id": "call-1"}], TOOLS_BY_NAME)

    result = json.loads(message.content)
    assert result["status"] == "error"
    assert "search_items" in result["message"]


def test_run_tool_calls_reports_failing_tool():
    """A tool that raises still answers its call."""
    tools.set_reader(None)

    messages = run_tool_calls(
        [
            {"name": "list_feeds", "args": {}, "id": "call-1"},
            {"name": "get_items", "args": {}, "id": "call-2"},
        ],
        TOOLS_BY_NAME,
    )

    assert [m.tool_call_id for m in messages] == ["call-1", "call-2"]
    assert all(json.loads(m.content)["status"] == "error" for m in messages)


def test_reply_returns_last_message():
    agent = Mock()
    agent.invoke.return_value = {"messages": [Mock(content="hi"), Mock(content="You have 3 unread items.")]}
    config = {"configurable": {"thread_id": "t1"}}

    assert reply(agent, config, "what's new?") == "You have 3 unread items."
    payload, passed_config = agent.invoke.call_args.args
    assert payload["messages"][0].content == "what's new?"
    assert passed_config is config


def test_reply_starts_new_thread_after_broken_checkpoint():
    agent = Mock()
    agent.invoke.side_effect = ValueError("tool_use ids were found without tool_result blocks")
    config = {"configurable": {"thread_id": "t1"}}

    answer = reply(agent, config, "hello")

    assert "lost track" in answer
    assert config["configurable"]["thread_id"] != "t1"


def test_reply_reports_other_errors_and_keeps_thread():
    agent = Mock()
    agent.invoke.side_effect = RuntimeError("rate limited")
    config = {"configurable": {"thread_id": "t1"}}

    answer = reply(agent, config, "hello")

    assert answer == "Sorry, I encountered an error: rate limited"
    assert config["configurable"]["thread_id"] == "t1"

"""LangGraph agent definition for RSS Reader."""

import json
import logging
import sqlite3
from typing import Literal

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import SystemMessage, ToolMessage
from langgraph.checkpoint.sqlite import SqliteSaver
from langgraph.graph import END, START, MessagesState, StateGraph

from rss_reader.tools import (
    add_feed,
    create_filter,
    delete_filter,
    get_filtered_items,
    get_items,
    list_feeds,
    list_filtered_folders,
    mark_as_read,
    mark_as_unread,
    refresh_feeds,
    remove_feed,
    set_favorite,
    set_refresh_interval,
    set_tags,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

SYSTEM_PROMPT = """You are an RSS reader assistant. You manage the user's feeds and help them read them.

You help users:
- Add and remove RSS and Atom feeds, optionally grouped into folders
- Read their latest items, per feed or across all feeds
- Mark items as read or unread, favorite them and tag them
- Create and delete filtered folders: saved views of read, unread, favorite or tagged items
- Refresh feeds on demand and change the automatic refresh interval

Items are identified by their feed name and their index within that feed, as returned by get_items and get_filtered_items.
When a user wants to add a feed, use add_feed with a short unique name and the URL. If they give a website URL (not a feed URL), try common feed paths like /feed, /rss, or /atom.xml.
When a user asks what's new, use get_items with unread_only set, or get_filtered_items for one of their filtered folders.
When a user wants a saved view, use create_filter. Filter types are READ, UNREAD, FAVORITES and TAGS. For READ, UNREAD and FAVORITES the filter content is a comma-separated list of feed folders (empty for all folders); for TAGS it is a comma-separated list of tags.
Sort orders are ALPHABET_NORMAL, ALPHABET_INVERTED, DATE_NEWEST and DATE_OLDEST.
Tags may not contain spaces or '#' and may not be plain numbers.
When the user's intent is unclear, ask a clarifying question rather than guessing.
Present feed items in a readable format: title, link, date, and a brief summary.
Be concise but informative in your responses."""

TOOLS = [
    list_feeds,
    add_feed,
    remove_feed,
    refresh_feeds,
    get_items,
    list_filtered_folders,
    get_filtered_items,
    mark_as_read,
    mark_as_unread,
    set_favorite,
    set_tags,
    create_filter,
    delete_filter,
    set_refresh_interval,
]


def run_tool_calls(tool_calls: list[dict], tools_by_name: dict) -> list[ToolMessage]:
    """Invoke each requested tool and wrap its JSON reply in a ToolMessage.

    Unknown tools and tools that raise answer with an error payload, so the
    model always gets a result for every call it made.
    """
    results = []
    for tool_call in tool_calls:
        tool = tools_by_name.get(tool_call["name"])
        if tool is None:
            content = json.dumps(
                {"status": "error", "message": f"Unknown tool '{tool_call['name']}'"}
            )
        else:
            try:
                content = str(tool.invoke(tool_call["args"]))
            except Exception as e:
                logger.warning("Tool '%s' failed: %s", tool_call["name"], e)
                content = json.dumps({"status": "error", "message": str(e)})
        results.append(ToolMessage(content=content, tool_call_id=tool_call["id"]))
    return results


def create_agent(
    checkpoint_db_path: str = "rss_reader_checkpoints.db",
    tools: list | None = None,
    model_name: str = DEFAULT_MODEL,
):
    """Create and compile the reader's LangGraph agent.

    Args:
        checkpoint_db_path: Path to SQLite database for conversation memory.
        tools: Tools to bind. Defaults to TOOLS.
        model_name: Anthropic model to chat with.
    """
    if tools is None:
        tools = TOOLS

    model = ChatAnthropic(model=model_name, temperature=0)
    model_with_tools = model.bind_tools(tools) if tools else model
    tools_by_name = {tool.name: tool for tool in tools}

    def agent_node(state: MessagesState):
        messages = [SystemMessage(content=SYSTEM_PROMPT)] + state["messages"]
        return {"messages": [model_with_tools.invoke(messages)]}

    def tool_node(state: MessagesState):
        return {"messages": run_tool_calls(state["messages"][-1].tool_calls, tools_by_name)}

    def should_continue(state: MessagesState) -> Literal["tool_node", "__end__"]:
        if state["messages"][-1].tool_calls:
            return "tool_node"
        return END

    builder = StateGraph(MessagesState)
    builder.add_node("agent_node", agent_node)
    builder.add_node("tool_node", tool_node)
    builder.add_edge(START, "agent_node")
    builder.add_conditional_edges("agent_node", should_continue, ["tool_node", END])
    builder.add_edge("tool_node", "agent_node")

    checkpointer = SqliteSaver(sqlite3.connect(checkpoint_db_path, check_same_thread=False))
    logger.info("Agent ready with %d tools (%s)", len(tools), model_name)
    return builder.compile(checkpointer=checkpointer)

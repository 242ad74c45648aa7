"""Entry point for RSS Reader: python -m rss_reader"""

import asyncio
import locale
import logging
import os
import uuid

from langchain_core.messages import HumanMessage

from rss_reader.agent import DEFAULT_MODEL, create_agent
from rss_reader.poller import RefreshScheduler
from rss_reader.reader import RssReader
from rss_reader.settings import DEFAULT_UPDATE_TIME
from rss_reader.storage import PersistenceError, SettingsStorage
from rss_reader.tools import set_reader

DEFAULT_DATA_PATH = "rss_reader.json"
CHECKPOINT_DB_PATH = "rss_reader_checkpoints.db"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
# Quiet noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("langchain").setLevel(logging.WARNING)

logger = logging.getLogger("rss_reader")


def reply(agent, config: dict, text: str) -> str:
    """Send one user message to the agent and return the text to show.

    A conversation whose checkpoint lost a tool result cannot continue, so
    ``config`` is switched to a fresh thread and the user is asked to retry.
    """
    try:
        response = agent.invoke({"messages": [HumanMessage(content=text)]}, config)
    except Exception as e:
        error_msg = str(e)
        if "tool_use" in error_msg and "tool_result" in error_msg:
            logger.warning("Conversation checkpoint is inconsistent, starting a new thread")
            config["configurable"]["thread_id"] = uuid.uuid4().hex
            return "Sorry, I lost track of our conversation. Please try again."
        logger.error("Agent error: %s", error_msg)
        return f"Sorry, I encountered an error: {error_msg}"
    return response["messages"][-1].content


async def chat_loop(agent, config: dict) -> None:
    """Run the interactive chat loop."""
    print("RSS Reader ready! Type your message (Ctrl+C to quit).\n")

    while True:
        try:
            user_input = await asyncio.to_thread(input, "You: ")
        except EOFError:
            break

        if not user_input.strip():
            continue

        answer = await asyncio.to_thread(reply, agent, config, user_input)
        print(f"\nReader: {answer}\n")


async def main() -> None:
    """Load settings, refresh once, then chat while refreshing on a timer."""
    data_path = os.environ.get("RSS_DATA_PATH", DEFAULT_DATA_PATH)
    checkpoint_path = os.environ.get("RSS_CHECKPOINT_PATH", CHECKPOINT_DB_PATH)
    update_time = int(os.environ.get("RSS_UPDATE_TIME", DEFAULT_UPDATE_TIME))
    model_name = os.environ.get("RSS_MODEL", DEFAULT_MODEL)

    # Alphabetical filtered folders sort by the user's collation rules
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.warning("Using default collation: %s", e)

    reader = RssReader(SettingsStorage(data_path), default_update_time=update_time)
    try:
        reader.load()
    except PersistenceError as e:
        logger.error("Cannot start: %s", e)
        return
    set_reader(reader)

    agent = create_agent(checkpoint_db_path=checkpoint_path, model_name=model_name)

    # One conversation thread per session
    config = {"configurable": {"thread_id": uuid.uuid4().hex}}

    # Refresh on startup, then on the configured interval
    startup_refresh = asyncio.create_task(reader.refresh())
    scheduler = RefreshScheduler(reader)
    scheduler.start()

    try:
        await chat_loop(agent, config)
    except KeyboardInterrupt:
        print("\nGoodbye!")
    finally:
        scheduler.stop()
        startup_refresh.cancel()
        try:
            await startup_refresh
        except asyncio.CancelledError:
            pass
        except PersistenceError as e:
            logger.error("Startup refresh could not be saved: %s", e)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

"""CLI entry point for the tuition centre agent.

A terminal chat for development: it keeps the history locally and resends
all of it every turn, exactly like the web widget.  For production, use the
FastAPI server (tuition_agent/server.py).

Usage:
    python -m tuition_agent.main            # chat (quiet)
    python -m tuition_agent.main --debug    # chat, showing API calls
    python -m tuition_agent.main --sync     # re-index the knowledge base and exit
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv
from langchain_core.messages import AIMessage, AnyMessage, HumanMessage

from tuition_agent.agent import create_tuition_agent, reply_text, respond
from tuition_agent.tools.knowledge import sync_knowledge_base

logger = logging.getLogger(__name__)

FAILURE_REPLY = "Alamak! Something went wrong. Try again later."


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("tuition_agent").setLevel(logging.DEBUG if debug else logging.INFO)


def run_sync() -> int:
    try:
        count = sync_knowledge_base()
    except Exception:
        logger.exception("Knowledge sync failed")
        print("Sync failed. See the log for details.")
        return 1
    print(f"Successfully synced {count} items from Google Sheets to Supabase.")
    return 0


def chat_loop() -> None:
    print("\n" + "=" * 60)
    print("  Tuition Centre Assistant - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' to clear the conversation.")
    print("=" * 60 + "\n")

    agent = create_tuition_agent()
    history: list[AnyMessage] = []

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nBye!")
            break

        if not user_input:
            continue

        if user_input.lower() in ("exit", "quit", "q"):
            print("\nBye! See you at the centre.")
            break

        if user_input.lower() == "new":
            history = []
            print("\n>> Conversation cleared.\n")
            continue

        turn = history + [HumanMessage(content=user_input)]
        try:
            reply = reply_text(respond(agent, turn))
        except KeyboardInterrupt:
            print("\n\nBye!")
            break
        except Exception:
            logger.exception("Error processing message")
            print(f"\nAssistant: {FAILURE_REPLY}\n")
            continue

        # Only the visible text goes back into the client-side history
        history = turn + [AIMessage(content=reply)]
        print(f"\nAssistant: {reply}\n")


def main() -> int:
    parser = argparse.ArgumentParser(description="Tuition centre agent CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    parser.add_argument(
        "--sync", action="store_true",
        help="Re-index the knowledge tab into the vector store and exit",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    if args.sync:
        return run_sync()

    chat_loop()
    return 0


if __name__ == "__main__":
    sys.exit(main())

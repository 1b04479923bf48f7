#!/usr/bin/env python3
"""
Ask questions about the podcast archive from the command line.

Usage:
    python -m podcast_qa.query "What did they say about recruiting?"
    python -m podcast_qa.query                 # interactive chat
    python -m podcast_qa.query --verbose "..."  # log to console too
"""

import argparse
import asyncio
import sys

from rich.console import Console
from rich.panel import Panel

from podcast_qa.config import PodcastQAConfig
from podcast_qa.db import PodcastStore
from podcast_qa.embedder import EmbeddingGenerator
from podcast_qa.exceptions import MissingCredentialError
from podcast_qa.llm import get_openai_async_client
from podcast_qa.logger import setup_logging
from podcast_qa.observability import init_langfuse_observability
from .agent import PodcastChatAgent
from .retrieval import RetrievalEngine
from .tools import build_podcast_tools


console = Console()


def show_help() -> None:
    help_text = """
[bold]Commands:[/bold]
  /help   - Show this help
  /clear  - Forget the conversation so far
  /quit   - Leave the chat

Questions can refer to earlier answers; the conversation is kept until /clear.
    """
    console.print(Panel(help_text, title="Help", border_style="green"))


async def interactive_chat(agent: PodcastChatAgent, podcast_name: str) -> None:
    """Multi-turn chat; the conversation history is sent with every question."""
    console.print(
        Panel(
            f"Ask me anything about [bold]{podcast_name}[/bold].",
            title="Welcome",
            border_style="blue",
        )
    )
    console.print("Type '/help' for help or '/quit' to leave")
    console.print()
    history: list[dict] = []

    while True:
        try:
            question = (await asyncio.to_thread(console.input, "[bold green]You:[/bold green] ")).strip()
        except (KeyboardInterrupt, EOFError):
            break

        if question.lower() in ("/quit", "/exit", "/q", "exit", "quit"):
            break
        if question.lower() == "/help":
            show_help()
            continue
        if question.lower() == "/clear":
            history.clear()
            console.print("[dim]Conversation cleared[/dim]\n")
            continue
        if not question:
            continue

        history.append({"role": "user", "content": question})
        console.print("[dim]Thinking...[/dim]")
        answer = await agent.answer(history)
        history.append({"role": "assistant", "content": answer})
        console.print(f"[bold blue]Agent:[/bold blue] {answer}")
        console.print()

    console.print("\nGoodbye!")


async def main() -> int:
    parser = argparse.ArgumentParser(
        description="Answer questions about the podcast archive",
        epilog="""
Required environment variables:
  OPENAI_API_KEY    - OpenAI API key
  DATABASE_URL      - Episode database (default: sqlite:///data/podcast_qa.db)
  QDRANT_URL        - Qdrant server (default: http://localhost:6333)
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("question", nargs="?", help="Question to answer (omit for chat)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log to console")
    args = parser.parse_args()

    config = PodcastQAConfig.from_env()
    logger = setup_logging("agent", f"{config.log_dir}/agent.log", verbose=args.verbose)
    setup_logging("retrieval", f"{config.log_dir}/retrieval.log", verbose=args.verbose)
    init_langfuse_observability()

    try:
        client = get_openai_async_client(config)
    except MissingCredentialError as e:
        console.print(f"✗ {e}", style="red")
        return 1

    store = PodcastStore.from_config(config)
    try:
        await store.initialize()
        embedder = EmbeddingGenerator.from_config(client, config)
        retrieval = RetrievalEngine.from_config(store, embedder, config)
        agent = PodcastChatAgent.from_config(
            client, build_podcast_tools(retrieval, store), config
        )

        if args.question:
            console.print(await agent.ask(args.question))
        else:
            await interactive_chat(agent, config.podcast_name)
    except Exception as e:
        logger.error(f"Query failed: {e}", exc_info=True)
        console.print(f"✗ Error: {e}", style="red")
        return 1
    finally:
        await store.close()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

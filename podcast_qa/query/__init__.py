"""
Query package for the podcast QA system.

Structure:
- retrieval.py: RetrievalEngine (chunk, summary and keyword retrieval)
- tools.py: Tool catalogue the chat agent can call
- agent.py: PodcastChatAgent, the tool-calling conversation loop
- __main__.py: Command-line question answering

Usage:
    python -m podcast_qa.query "Who was the guest on episode 12?"
    python -m podcast_qa.query            # interactive chat
"""

from .retrieval import (
    NO_RELEVANT_CONTENT_MESSAGE,
    RetrievalEngine,
    is_no_relevant_content,
    no_relevant_content,
)
from .tools import Tool, build_podcast_tools, call_tool
from .agent import PodcastChatAgent

__all__ = [
    "NO_RELEVANT_CONTENT_MESSAGE",
    "RetrievalEngine",
    "is_no_relevant_content",
    "no_relevant_content",
    "Tool",
    "build_podcast_tools",
    "call_tool",
    "PodcastChatAgent",
]

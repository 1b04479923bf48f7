"""
Tool catalogue exposed to the conversational agent.

Each tool is a (name, JSON schema, description) triple bound to a coroutine.
Handlers never raise into the agent: failures come back as an error payload
the model can read.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from podcast_qa.db import PodcastStore
from .retrieval import RetrievalEngine


logger = logging.getLogger("agent")


@dataclass
class Tool:
    name: str
    description: str
    parameters: dict
    handler: Callable[..., Awaitable[Any]]

    def to_openai(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def _object_schema(properties: dict, required: list[str]) -> dict:
    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


def build_podcast_tools(retrieval: RetrievalEngine, store: PodcastStore) -> list[Tool]:
    """Create the agent's tools over a retrieval engine and a store."""

    async def get_relevant_content(query: str) -> Any:
        return await retrieval.find_relevant_content(query)

    async def find_episodes_by_summary(query: str) -> Any:
        return await retrieval.find_episodes_by_summary(query)

    async def search_episode_content(keyword: str) -> Any:
        return await retrieval.search_keyword(keyword)

    async def list_podcast_episodes() -> Any:
        episodes = await store.list_episodes()
        return [
            {
                "episode_number": ep.episode_number,
                "title": ep.title,
                "published_date": ep.published_date.isoformat() if ep.published_date else None,
                "guests": ep.guest_list,
            }
            for ep in episodes
        ]

    async def get_episode_summary(episodeNumber: int) -> Any:
        episode = await store.find_episode_by_number(int(episodeNumber))
        if episode is None:
            return {"success": False, "message": f"No episode number {episodeNumber}."}
        return {
            "title": episode.title,
            "episode_number": episode.episode_number,
            "summary": episode.summary or "",
            "guests": episode.guest_list,
        }

    async def get_episode_content(episodeNumber: int) -> Any:
        episode = await store.find_episode_by_number(int(episodeNumber))
        if episode is None:
            return {"success": False, "message": "No matching episode found."}
        chunks = await store.get_episode_chunks(episode.guid)
        return {
            "success": True,
            "episode": episode.to_dict(),
            "content_chunks": chunks,
            "total_chunks": len(chunks),
        }

    async def list_podcast_guests() -> Any:
        return await store.list_guests()

    async def get_podcast_stats() -> Any:
        return await store.get_stats()

    query_schema = _object_schema(
        {"query": {"type": "string", "description": "The user query to search for"}},
        ["query"],
    )
    episode_number_schema = _object_schema(
        {"episodeNumber": {"type": "integer", "description": "Episode number"}},
        ["episodeNumber"],
    )
    no_args = _object_schema({}, [])

    return [
        Tool(
            "getRelevantContent",
            "Retrieve relevant podcast content based on the user query",
            query_schema,
            get_relevant_content,
        ),
        Tool(
            "findEpisodesBySummary",
            "Find the episodes whose summary best matches a topic",
            query_schema,
            find_episodes_by_summary,
        ),
        Tool(
            "searchEpisodeContent",
            "Search transcripts for an exact keyword or name",
            _object_schema(
                {"keyword": {"type": "string", "description": "Exact term to look for"}},
                ["keyword"],
            ),
            search_episode_content,
        ),
        Tool(
            "listPodcastEpisodes",
            "List all podcast episodes with their numbers, dates and guests",
            no_args,
            list_podcast_episodes,
        ),
        Tool(
            "getEpisodeSummary",
            "Get the summary and guests of a specific episode",
            episode_number_schema,
            get_episode_summary,
        ),
        Tool(
            "getEpisodeContent",
            "Get all transcript chunks of a specific episode",
            episode_number_schema,
            get_episode_content,
        ),
        Tool(
            "listPodcastGuests",
            "List every guest with the episodes they appeared in",
            no_args,
            list_podcast_guests,
        ),
        Tool(
            "getPodcastStats",
            "Get archive statistics and the latest episode",
            no_args,
            get_podcast_stats,
        ),
    ]


async def call_tool(tools: dict[str, Tool], name: str, arguments: str) -> str:
    """Run a tool call and return its JSON-encoded result.

    Unknown tools, malformed arguments and handler failures are returned as
    {"error": ...} so the conversation can continue.
    """
    tool = tools.get(name)
    if tool is None:
        return json.dumps({"error": f"Unknown tool: {name}"})

    try:
        kwargs = json.loads(arguments or "{}")
    except json.JSONDecodeError as e:
        return json.dumps({"error": f"Invalid arguments for {name}: {e}"})
    if not isinstance(kwargs, dict):
        return json.dumps({"error": f"Arguments for {name} must be an object"})

    try:
        result = await tool.handler(**kwargs)
    except Exception as e:
        logger.error(f"Tool {name} failed: {type(e).__name__}: {e}", exc_info=True)
        return json.dumps({"error": "Retrieval failed; no information available."})

    return json.dumps(result, default=str)

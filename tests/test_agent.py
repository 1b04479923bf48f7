"""Tests for the agent tool catalogue and the tool-calling loop."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FakeEmbedder, episode_metadata, make_store, run, topic_vector
from podcast_qa.exceptions import MissingCredentialError
from podcast_qa.llm.prompts import NO_INFORMATION_ANSWER
from podcast_qa.query import PodcastChatAgent, RetrievalEngine, Tool, build_podcast_tools, call_tool

TOOL_NAMES = [
    "getRelevantContent",
    "findEpisodesBySummary",
    "searchEpisodeContent",
    "listPodcastEpisodes",
    "getEpisodeSummary",
    "getEpisodeContent",
    "listPodcastGuests",
    "getPodcastStats",
]


def _tool_call(call_id, name, arguments):
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=json.dumps(arguments)),
    )


def _completion(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(*responses):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(responses))
    return client


def _echo_tool(name, log):
    async def handler(**kwargs):
        log.append((name, kwargs))
        return {"tool": name, **kwargs}

    return Tool(name, f"{name} tool", {"type": "object", "properties": {}}, handler)


class TestToolCatalogue:
    def test_catalogue_names_and_schemas(self):
        tools = build_podcast_tools(MagicMock(), MagicMock())

        assert [t.name for t in tools] == TOOL_NAMES
        schema = tools[0].to_openai()
        assert schema["type"] == "function"
        assert schema["function"]["parameters"]["required"] == ["query"]

    def test_tools_over_real_store(self, tmp_path):
        async def scenario():
            store = make_store(tmp_path)
            await store.initialize()
            episode, _ = await store.insert_episode(episode_metadata(3, "Rocket talk"))
            await store.insert_chunk(episode, 0, "rocket engines", topic_vector("rocket"))
            await store.update_episode_summary(episode.guid, "Rockets.", ["Ann"])
            tools = {
                t.name: t
                for t in build_podcast_tools(RetrievalEngine(store, FakeEmbedder()), store)
            }
            results = {
                "relevant": await call_tool(tools, "getRelevantContent", '{"query": "rocket"}'),
                "summary": await call_tool(tools, "getEpisodeSummary", '{"episodeNumber": 3}'),
                "missing": await call_tool(tools, "getEpisodeSummary", '{"episodeNumber": 9}'),
                "content": await call_tool(tools, "getEpisodeContent", '{"episodeNumber": 3}'),
                "episodes": await call_tool(tools, "listPodcastEpisodes", "{}"),
                "guests": await call_tool(tools, "listPodcastGuests", ""),
                "stats": await call_tool(tools, "getPodcastStats", "{}"),
            }
            await store.close()
            return {key: json.loads(value) for key, value in results.items()}

        results = run(scenario())

        assert results["relevant"][0]["content"] == "rocket engines"
        assert results["summary"]["summary"] == "Rockets."
        assert results["summary"]["guests"] == ["Ann"]
        assert results["missing"]["success"] is False
        assert results["content"]["content_chunks"] == ["rocket engines"]
        assert results["episodes"][0]["title"] == "Rocket talk"
        assert results["guests"]["total_guests"] == 1
        assert results["stats"]["total_chunks"] == 1

    def test_call_tool_errors_become_payloads(self):
        async def broken(**kwargs):
            raise RuntimeError("qdrant unreachable")

        tools = {"broken": Tool("broken", "", {}, broken)}

        unknown = json.loads(run(call_tool(tools, "nope", "{}")))
        bad_args = json.loads(run(call_tool(tools, "broken", "{not json")))
        failed = json.loads(run(call_tool(tools, "broken", "{}")))

        assert "Unknown tool" in unknown["error"]
        assert "Invalid arguments" in bad_args["error"]
        assert "error" in failed and "qdrant" not in failed["error"]


class TestPodcastChatAgent:
    def test_answer_without_tools(self):
        client = _client(_completion(content="Hello there."))
        agent = PodcastChatAgent(client, [], system_prompt="system")

        assert run(agent.ask("Hi")) == "Hello there."
        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert messages == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "Hi"},
        ]

    def test_tool_calls_of_one_turn_run_and_feed_back(self):
        log = []
        tools = [_echo_tool("getRelevantContent", log), _echo_tool("listPodcastGuests", log)]
        client = _client(
            _completion(
                tool_calls=[
                    _tool_call("call_1", "getRelevantContent", {"query": "trade"}),
                    _tool_call("call_2", "listPodcastGuests", {}),
                ]
            ),
            _completion(content="Two guests talked trades."),
        )
        agent = PodcastChatAgent(client, tools, model="gpt-4o")

        answer = run(agent.ask("Who talked about trades?"))

        assert answer == "Two guests talked trades."
        assert sorted(name for name, _ in log) == ["getRelevantContent", "listPodcastGuests"]
        second_call = client.chat.completions.create.call_args_list[1].kwargs
        tool_messages = [m for m in second_call["messages"] if m["role"] == "tool"]
        assert [m["tool_call_id"] for m in tool_messages] == ["call_1", "call_2"]
        assert json.loads(tool_messages[0]["content"]) == {
            "tool": "getRelevantContent",
            "query": "trade",
        }
        assert second_call["model"] == "gpt-4o"

    def test_tool_rounds_are_capped(self):
        log = []
        looping = _completion(tool_calls=[_tool_call("c", "getRelevantContent", {"query": "x"})])
        client = _client(looping, looping, _completion(content="Final."))
        agent = PodcastChatAgent(
            client, [_echo_tool("getRelevantContent", log)], max_tool_rounds=2
        )

        assert run(agent.ask("loop")) == "Final."
        last_call = client.chat.completions.create.call_args_list[-1].kwargs
        assert "tools" not in last_call
        assert len(log) == 2

    def test_timeout_gives_no_information_answer(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)
            return _completion(content="too late")

        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=slow)
        agent = PodcastChatAgent(client, [], timeout_seconds=0.05)

        assert run(agent.ask("slow question")) == NO_INFORMATION_ANSWER

    def test_provider_failure_gives_no_information_answer(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=RuntimeError("503"))

        assert run(PodcastChatAgent(client, []).ask("q")) == NO_INFORMATION_ANSWER

    def test_missing_credentials_propagate(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            side_effect=MissingCredentialError("OPENAI_API_KEY")
        )

        with pytest.raises(MissingCredentialError):
            run(PodcastChatAgent(client, []).ask("q"))

    def test_conversation_history_is_sent(self):
        client = _client(_completion(content="Episode 4."))
        agent = PodcastChatAgent(client, [], system_prompt="s")
        history = [
            {"role": "user", "content": "Who was on episode 4?"},
            {"role": "assistant", "content": "Ann."},
            {"role": "user", "content": "Which episode again?"},
        ]

        run(agent.answer(history))

        assert client.chat.completions.create.call_args.kwargs["messages"][1:] == history

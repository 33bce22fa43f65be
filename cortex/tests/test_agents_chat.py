"""Tests for built-in agents and ChatService"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import DIM, FakeEmbeddingService, unit


@pytest.fixture
def knowledge_service():
    from cortex.knowledge import KnowledgeService, KnowledgeStore
    embedding = FakeEmbeddingService(vectors={
        "Standup notes: shipped the parser": unit(0),
        "what did we ship at standup": unit(0),
    })
    store = KnowledgeStore(embedding_service=embedding, dimension=DIM)
    return KnowledgeService(store, embedding)


async def add_note(service, content="Standup notes: shipped the parser"):
    await service.store.upsert(
        source="obsidian",
        source_id="standup",
        path="meetings/standup.md",
        content=content,
        metadata={"title": "Standup"},
    )


def make_llm(available=True, answer="synthesized"):
    llm = MagicMock()
    llm.is_available = available
    llm.agenerate = AsyncMock(return_value=answer)
    return llm


class TestKnowledgeAgent:
    @pytest.mark.asyncio
    async def test_available_only_with_items(self, knowledge_service):
        from cortex.dispatch import KnowledgeAgent
        agent = KnowledgeAgent(knowledge_service)

        assert await agent.is_available() is False
        await add_note(knowledge_service)
        assert await agent.is_available() is True

    @pytest.mark.asyncio
    async def test_can_handle_keywords(self, knowledge_service):
        from cortex.dispatch import KnowledgeAgent
        agent = KnowledgeAgent(knowledge_service)

        assert await agent.can_handle("Find my meeting notes") is True
        assert await agent.can_handle("what did we decide?") is True
        assert await agent.can_handle("tell me a joke") is False
        assert await agent.can_handle("") is False

    @pytest.mark.asyncio
    async def test_excerpts_without_llm(self, knowledge_service):
        from cortex.dispatch import KnowledgeAgent
        await add_note(knowledge_service)

        answer = await KnowledgeAgent(knowledge_service).handle("what did we ship at standup")

        assert answer.startswith("Found 1 relevant note(s):")
        assert "1. Standup (similarity 1.00)" in answer
        assert "shipped the parser" in answer

    @pytest.mark.asyncio
    async def test_llm_synthesis(self, knowledge_service):
        from cortex.dispatch import KnowledgeAgent
        await add_note(knowledge_service)
        llm = make_llm()

        answer = await KnowledgeAgent(knowledge_service, llm).handle("what did we ship at standup")

        assert answer == "synthesized"
        prompt = llm.agenerate.call_args.args[0]
        assert "[meetings/standup.md]" in prompt
        assert "Question: what did we ship at standup" in prompt

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back_to_excerpts(self, knowledge_service):
        from cortex.dispatch import KnowledgeAgent
        await add_note(knowledge_service)
        llm = make_llm()
        llm.agenerate.side_effect = TimeoutError()

        answer = await KnowledgeAgent(knowledge_service, llm).handle("what did we ship at standup")

        assert answer.startswith("Found 1 relevant note(s):")

    @pytest.mark.asyncio
    async def test_no_results(self, knowledge_service):
        from cortex.dispatch import KnowledgeAgent
        from cortex.dispatch.agents import NO_RESULTS

        assert await KnowledgeAgent(knowledge_service).handle("find anything") == NO_RESULTS


class TestAssistantAgent:
    @pytest.mark.asyncio
    async def test_availability_follows_llm(self):
        from cortex.dispatch import AssistantAgent
        assert await AssistantAgent(make_llm(available=False)).is_available() is False
        assert await AssistantAgent(make_llm()).is_available() is True

    @pytest.mark.asyncio
    async def test_handle_includes_recent_history(self):
        from cortex.dispatch import AssistantAgent, ChatMessage
        llm = make_llm(answer="hi there")
        agent = AssistantAgent(llm, history_window=1)
        history = [
            ChatMessage(role="user", content="old question"),
            ChatMessage(role="assistant", content="old answer"),
        ]

        assert await agent.can_handle("anything") is True
        assert await agent.handle("hello", history) == "hi there"

        prompt = llm.agenerate.call_args.args[0]
        assert prompt == "assistant: old answer\nuser: hello"


class EchoAgent:
    name = "echo"
    description = "echoes"

    def __init__(self):
        self.seen_history = []

    async def is_available(self):
        return True

    async def can_handle(self, query, history=None):
        return True

    async def handle(self, query, history=None):
        self.seen_history.append([m.content for m in history or []])
        return f"echo: {query}"


class TestChatService:
    def make_chat(self, agents, max_history_size=20):
        from cortex.dispatch import AgentDispatcher, ChatService
        matcher = MagicMock()
        dispatcher = AgentDispatcher(agents, matcher)
        return ChatService(dispatcher, max_history_size=max_history_size)

    @pytest.mark.asyncio
    async def test_reply_and_history(self):
        agent = EchoAgent()
        chat = self.make_chat([agent])

        first = await chat.chat("one", session_id="s1")
        await chat.chat("two", session_id="s1")

        assert first.content == "echo: one"
        assert first.agent == "echo"
        assert first.confidence == 1.0
        assert [m.role for m in chat.history("s1")] == ["user", "assistant", "user", "assistant"]
        assert agent.seen_history == [[], ["one", "echo: one"]]
        assert chat.history("s2") == []

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        chat = self.make_chat([EchoAgent()], max_history_size=3)

        for query in ("a", "b", "c"):
            await chat.chat(query)

        assert [m.content for m in chat.history("default")] == ["echo: b", "c", "echo: c"]

    @pytest.mark.asyncio
    async def test_no_agent_reply(self):
        from cortex.dispatch.chat import NO_AGENT_REPLY
        chat = self.make_chat([])

        reply = await chat.chat("hello")

        assert reply.content == NO_AGENT_REPLY
        assert reply.agent is None
        assert [m.content for m in chat.history("default")] == ["hello", NO_AGENT_REPLY]

    @pytest.mark.asyncio
    async def test_clear(self):
        chat = self.make_chat([EchoAgent()])
        await chat.chat("hello")
        chat.clear("default")
        assert chat.history("default") == []

    @pytest.mark.asyncio
    async def test_failed_agent_leaves_history_untouched(self):
        agent = EchoAgent()
        chat = self.make_chat([agent])
        await chat.chat("first", session_id="s")

        async def broken(query, history=None):
            raise RuntimeError("llm down")
        agent.handle = broken

        with pytest.raises(RuntimeError, match="llm down"):
            await chat.chat("second", session_id="s")

        assert [m.content for m in chat.history("s")] == ["first", "echo: first"]

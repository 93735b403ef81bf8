"""
Test Session
============

Message logging and persistence under the session namespace.
"""

from unittest.mock import AsyncMock

import pytest

from a3s_context.core.models import NodeKind
from a3s_context.core.pathway import Pathway
from a3s_context.errors import EmbeddingError, SessionError
from a3s_context.ingest import Processor
from a3s_context.session import MessageRole, Session


@pytest.fixture
def processor(memory_storage, static_embedder, memory_config):
    return Processor(memory_storage, static_embedder, memory_config)


class TestSession:
    """Test Session message handling."""

    def test_defaults(self, memory_storage, processor):
        session = Session(memory_storage, processor)
        assert session.user == "default"
        assert session.pathway.namespace.value == "session"
        assert session.pathway.name == session.id
        assert session.pending == 0

    def test_invalid_id(self, memory_storage, processor):
        with pytest.raises(SessionError):
            Session(memory_storage, processor, session_id="a/b")

    def test_add_message(self, memory_storage, processor):
        session = Session(memory_storage, processor, session_id="s1")
        message = session.add_message("user", "hi", [Pathway.knowledge("docs")])

        assert message.role == MessageRole.USER
        assert message.to_dict()["contexts_used"] == ["a3s://knowledge/docs"]
        assert session.pending == 1
        assert session.message_pathway(3) == Pathway.session("s1/0003")

    @pytest.mark.asyncio
    async def test_commit_persists_messages(self, memory_storage, processor):
        session = Session(memory_storage, processor, session_id="s1", user="ada")
        session.add_message(MessageRole.USER, "How do I log in?")
        session.add_message(MessageRole.ASSISTANT, "Use OAuth.", [Pathway.knowledge("auth")])

        assert await session.commit() == 2
        assert session.pending == 0
        assert await session.commit() == 0

        directory = await memory_storage.get(Pathway.session("s1"))
        assert directory.is_directory
        assert directory.metadata.custom["user"] == "ada"

        reply = await memory_storage.get(Pathway.session("s1/0001"))
        assert reply.kind == NodeKind.MESSAGE
        assert reply.content == "Use OAuth."
        assert reply.metadata.custom["role"] == "assistant"
        assert reply.metadata.custom["contexts_used"] == ["a3s://knowledge/auth"]
        assert reply.is_embedded()

    @pytest.mark.asyncio
    async def test_resumed_session_appends(self, memory_storage, processor):
        first = Session(memory_storage, processor, session_id="s1")
        first.add_message(MessageRole.USER, "one")
        first.add_message(MessageRole.USER, "two")
        await first.commit()

        resumed = Session(memory_storage, processor, session_id="s1")
        resumed.add_message(MessageRole.USER, "three")
        await resumed.commit()

        assert (await memory_storage.get(Pathway.session("s1/0000"))).content == "one"
        assert (await memory_storage.get(Pathway.session("s1/0002"))).content == "three"

    @pytest.mark.asyncio
    async def test_commit_failure(self, memory_storage, processor, static_embedder):
        session = Session(memory_storage, processor, session_id="s1")
        session.add_message(MessageRole.USER, "hello")
        static_embedder.embed = AsyncMock(side_effect=EmbeddingError("API error 500"))

        with pytest.raises(SessionError):
            await session.commit()
        assert session.pending == 1

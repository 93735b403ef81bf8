"""
Conversation sessions.

A session records the messages of one conversation together with the
pathways each message drew on. ``commit`` persists pending messages as
embedded ``message`` nodes under ``a3s://session/<id>``, so past
conversations are searchable like any other context.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog

from a3s_context.core.models import Node, NodeKind, utcnow
from a3s_context.core.pathway import Pathway
from a3s_context.errors import A3SError, SessionError

if TYPE_CHECKING:
    from a3s_context.ingest.processor import Processor
    from a3s_context.storage.base import StorageBackend

log = structlog.get_logger()


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass
class Message:
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=utcnow)
    contexts_used: List[Pathway] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "contexts_used": [str(p) for p in self.contexts_used],
        }


class Session:
    """
    Ordered message log for a single conversation.

    Example:
        >>> session = client.session()
        >>> session.add_message(MessageRole.USER, "How do I log in?")
        >>> await session.commit()
        1
    """

    def __init__(
        self,
        storage: "StorageBackend",
        processor: "Processor",
        session_id: Optional[str] = None,
        user: str = "default",
    ):
        self.id = session_id or str(uuid.uuid4())
        self.user = user
        self.created_at = utcnow()
        self.messages: List[Message] = []
        self.storage = storage
        self.processor = processor
        self._committed = 0
        self._offset: Optional[int] = None

        try:
            self.pathway = Pathway.session().join(self.id)
        except A3SError as e:
            raise SessionError(f"invalid session id {self.id!r}: {e}") from e

    def add_message(
        self,
        role: MessageRole,
        content: str,
        contexts_used: Optional[List[Pathway]] = None,
    ) -> Message:
        message = Message(role=MessageRole(role), content=content, contexts_used=list(contexts_used or []))
        self.messages.append(message)
        return message

    @property
    def pending(self) -> int:
        return len(self.messages) - self._committed

    def message_pathway(self, index: int) -> Pathway:
        return self.pathway.join(f"{index:04d}")

    async def commit(self) -> int:
        """
        Persist messages added since the last commit.

        Returns:
            Number of messages written

        Raises:
            SessionError: if a message could not be stored; messages before
                it stay committed
        """
        if self._offset is None:
            self._offset = await self._existing_messages()

        written = 0
        while self._committed < len(self.messages):
            index = self._committed
            message = self.messages[index]
            metadata = {
                "role": message.role.value,
                "timestamp": message.timestamp.isoformat(),
                "contexts_used": [str(p) for p in message.contexts_used],
            }
            result = await self.processor.process_text(
                self.message_pathway(self._offset + index), message.content, NodeKind.MESSAGE, metadata
            )
            if result.errors:
                raise SessionError(f"failed to commit message {index} of session {self.id}: {result.errors[0]}")
            self._committed += 1
            written += 1

        log.info(f"Committed {written} message(s) to {self.pathway}")
        return written

    async def _existing_messages(self) -> int:
        """Create the session directory, or count messages of a resumed session."""
        if await self.storage.exists(self.pathway):
            children = await self.storage.list(self.pathway)
            return sum(1 for info in children if not info.is_directory)

        directory = Node.directory(self.pathway)
        directory.metadata.custom.update({"user": self.user, "created_at": self.created_at.isoformat()})
        await self.storage.put(directory)
        return 0

"""
Core data types shared by ingestion, retrieval and chat.

Chunks and messages are frozen; sessions are mutated only through the
session store.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import uuid


DOCUMENT_TYPE = "document"
MESSAGE_TYPE = "message"

ROLES = ("user", "assistant", "system")


def utcnow() -> datetime:
    return datetime.utcnow()


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class DocumentChunk:
    """A bounded slice of one document; the unit of embedding and retrieval."""

    id: str
    text: str
    source_name: str
    chunk_index: int
    total_chunks: int

    def to_metadata(self) -> Dict[str, Any]:
        """Vector store metadata for this chunk (content travels with it)."""
        return {
            'content': self.text,
            'type': DOCUMENT_TYPE,
            'source_name': self.source_name,
            'chunk_index': self.chunk_index,
            'total_chunks': self.total_chunks,
        }


@dataclass
class IndexedRecord:
    """An (id, vector, metadata) triple as held by a vector store."""

    id: str
    vector: List[float]
    metadata: Dict[str, Any]

    def __post_init__(self):
        if 'content' not in self.metadata or 'type' not in self.metadata:
            raise ValueError("Record metadata must carry 'content' and 'type'")

    @property
    def type(self) -> str:
        return self.metadata['type']


@dataclass(frozen=True)
class SearchResult:
    id: str
    score: float
    metadata: Dict[str, Any]

    @property
    def content(self) -> str:
        return self.metadata.get('content', '')


@dataclass(frozen=True)
class ChatMessage:
    id: str
    role: str
    content: str
    timestamp: datetime

    @classmethod
    def create(cls, role: str, content: str) -> "ChatMessage":
        if role not in ROLES:
            raise ValueError(f"Invalid message role: {role}")
        return cls(id=new_id(), role=role, content=content, timestamp=utcnow())


@dataclass
class ChatSession:
    """Ordered conversation thread; owned by the SessionStore."""

    id: str
    user_id: Optional[str] = None
    messages: List[ChatMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def snapshot(self) -> "ChatSession":
        """Copy with its own message list, safe to hand to callers."""
        return ChatSession(
            id=self.id,
            user_id=self.user_id,
            messages=list(self.messages),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass
class ChatOptions:
    """Per-request generation overrides; None means use the configured default."""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    user_id: Optional[str] = None

    @classmethod
    def from_dict(cls, options: Optional[Dict[str, Any]]) -> "ChatOptions":
        options = options or {}
        return cls(
            model=options.get('model'),
            temperature=options.get('temperature'),
            max_tokens=options.get('max_tokens', options.get('maxTokens')),
            user_id=options.get('user_id', options.get('userId')),
        )


@dataclass
class ServiceStatus:
    chatbot_reachable: bool = False
    vector_db_reachable: bool = False
    embedding_ready: bool = False
    documents_available: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {
            'chatbot_reachable': self.chatbot_reachable,
            'vector_db_reachable': self.vector_db_reachable,
            'embedding_ready': self.embedding_ready,
            'documents_available': self.documents_available,
        }


@dataclass
class ServiceResponse:
    """Result envelope for the public surface: payload or failure reason."""

    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ServiceResponse":
        return cls(success=False, error=error)

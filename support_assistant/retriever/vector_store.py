"""
Vector stores with type-partitioned cosine search.

VectorStore carries the search contract (type filter, score floor, ordering)
and the index readiness wait; backends only talk to their storage.
"""

from typing import Any, Callable, Dict, List, Optional
from pathlib import Path
import logging
import math
import time

from support_assistant.config import ConfigError
from support_assistant.errors import IndexNotReadyTimeout, VectorStoreError
from support_assistant.models import (
    DOCUMENT_TYPE, MESSAGE_TYPE, ChatMessage, DocumentChunk, IndexedRecord, SearchResult,
)

logger = logging.getLogger(__name__)

# Readiness polling: 60 attempts x 5s = 5 minutes
READY_MAX_ATTEMPTS = 60
READY_INTERVAL_SECONDS = 5.0


def cosine_similarity(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class VectorStore:
    """Base vector store: subclasses implement the underscored backend hooks."""

    def __init__(self, dimension: int = 384,
                 sleep: Callable[[float], None] = time.sleep):
        self.dimension = dimension
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    def _index_exists(self) -> bool:
        raise NotImplementedError

    def _create_index(self, dimension: int) -> None:
        raise NotImplementedError

    def _describe(self) -> int:
        """Record count; raises while the index is not queryable."""
        raise NotImplementedError

    def _upsert(self, records: List[IndexedRecord]) -> None:
        raise NotImplementedError

    def _query(self, vector: List[float], top_k: int,
               where: Dict[str, Any]) -> List[SearchResult]:
        raise NotImplementedError

    def _delete_where(self, where: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _delete_ids(self, ids: List[str]) -> None:
        raise NotImplementedError

    def _delete_all(self) -> None:
        raise NotImplementedError

    def _ping(self) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Index lifecycle
    # ------------------------------------------------------------------

    def initialize_index(self, dimension: Optional[int] = None,
                         max_attempts: int = READY_MAX_ATTEMPTS,
                         interval: float = READY_INTERVAL_SECONDS) -> bool:
        """
        Create the index if missing, then wait for it to be queryable.

        Args:
            dimension: Vector size; must match the embedder.
            max_attempts: Readiness polls before giving up.
            interval: Seconds between polls.

        Returns:
            True if the index was created, False if it already existed.

        Raises:
            IndexNotReadyTimeout: If a new index never becomes ready.
            VectorStoreError: If the backend rejects the call.
        """
        if dimension is not None:
            self.dimension = dimension

        try:
            if self._index_exists():
                return False
            logger.info("Creating vector index (dim=%s, metric=cosine)", self.dimension)
            self._create_index(self.dimension)
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(f"Failed to initialize vector database: {e}") from e

        self.wait_for_index_ready(max_attempts=max_attempts, interval=interval)
        return True

    def wait_for_index_ready(self, max_attempts: int = READY_MAX_ATTEMPTS,
                             interval: float = READY_INTERVAL_SECONDS) -> None:
        for attempt in range(1, max_attempts + 1):
            try:
                self._describe()
                logger.info("Vector index ready after %s attempt(s)", attempt)
                return
            except Exception as e:
                logger.debug("Index not ready (attempt %s/%s): %s", attempt, max_attempts, e)
            if attempt < max_attempts:
                self._sleep(interval)
        raise IndexNotReadyTimeout(
            f"Index failed to become ready within {max_attempts * interval:.0f}s"
        )

    def test_connection(self) -> bool:
        try:
            self._ping()
            return True
        except Exception as e:
            logger.error("Vector database connection test failed: %s", e)
            return False

    def stats(self) -> int:
        """Number of records in the index."""
        try:
            return self._describe()
        except Exception as e:
            raise VectorStoreError(f"Failed to read index stats: {e}") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store(self, record: IndexedRecord) -> None:
        self.store_many([record])

    def store_many(self, records: List[IndexedRecord]) -> None:
        if not records:
            return
        for record in records:
            self._check_dimension(record.vector)
        try:
            self._upsert(records)
        except Exception as e:
            raise VectorStoreError(f"Failed to store records: {e}") from e

    def store_document(self, chunk: DocumentChunk, vector: List[float]) -> None:
        metadata = chunk.to_metadata()
        metadata['timestamp'] = int(time.time() * 1000)
        self.store(IndexedRecord(id=chunk.id, vector=vector, metadata=metadata))

    def store_message(self, message: ChatMessage, vector: List[float],
                      user_id: Optional[str] = None,
                      session_id: Optional[str] = None) -> None:
        metadata = {
            'content': message.content,
            'type': MESSAGE_TYPE,
            'message_id': message.id,
            'role': message.role,
            'timestamp': int(message.timestamp.timestamp() * 1000),
        }
        if user_id:
            metadata['user_id'] = user_id
        if session_id:
            metadata['session_id'] = session_id
        self.store(IndexedRecord(id=message.id, vector=vector, metadata=metadata))

    def delete_many(self, ids: List[str]) -> None:
        if not ids:
            return
        try:
            self._delete_ids(list(ids))
        except Exception as e:
            raise VectorStoreError(f"Failed to delete records: {e}") from e

    def delete_session(self, session_id: str) -> None:
        """Drop conversation records tagged with this session."""
        try:
            self._delete_where({'type': MESSAGE_TYPE, 'session_id': session_id})
        except Exception as e:
            raise VectorStoreError(f"Failed to delete session: {e}") from e

    def clear_all(self) -> None:
        try:
            self._delete_all()
        except Exception as e:
            raise VectorStoreError(f"Failed to clear vectors: {e}") from e
        logger.info("All vectors cleared from the index")

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query_vector: List[float], top_k: int = 5,
               min_score: float = 0.0, type_filter: Optional[str] = DOCUMENT_TYPE,
               **tags) -> List[SearchResult]:
        """
        Nearest neighbours by cosine similarity.

        Args:
            query_vector: Embedding of the query.
            top_k: Maximum number of results.
            min_score: Results scoring below this are dropped.
            type_filter: Record type to search ("document" or "message").
            **tags: Extra exact-match metadata filters (e.g. session_id).

        Returns:
            Results sorted by descending score.
        """
        self._check_dimension(query_vector)
        if top_k <= 0:
            return []

        where = {k: v for k, v in tags.items() if v is not None}
        if type_filter:
            where['type'] = type_filter

        try:
            matches = self._query(query_vector, top_k, where)
        except Exception as e:
            raise VectorStoreError(f"Failed to search vectors: {e}") from e

        results = [
            m for m in matches
            if m.score >= min_score
            and (not type_filter or m.metadata.get('type') == type_filter)
        ]
        results.sort(key=lambda m: m.score, reverse=True)
        return results[:top_k]

    def search_documents(self, query_vector: List[float], top_k: int = 5,
                         min_score: float = 0.7) -> List[SearchResult]:
        return self.search(query_vector, top_k=top_k, min_score=min_score,
                           type_filter=DOCUMENT_TYPE)

    def search_messages(self, query_vector: List[float], top_k: int = 5,
                        user_id: Optional[str] = None,
                        session_id: Optional[str] = None,
                        min_score: float = 0.0) -> List[SearchResult]:
        return self.search(query_vector, top_k=top_k, min_score=min_score,
                           type_filter=MESSAGE_TYPE, user_id=user_id, session_id=session_id)

    def _check_dimension(self, vector: List[float]) -> None:
        if len(vector) != self.dimension:
            raise ValueError(
                f"Vector dimension {len(vector)} does not match index dimension {self.dimension}"
            )


class MemoryVectorStore(VectorStore):
    """Process-local store; exact cosine search over all records."""

    def __init__(self, dimension: int = 384, **kwargs):
        super().__init__(dimension=dimension, **kwargs)
        self._records: Optional[Dict[str, IndexedRecord]] = None

    def _index_exists(self) -> bool:
        return self._records is not None

    def _create_index(self, dimension: int) -> None:
        self._records = {}

    def _require(self) -> Dict[str, IndexedRecord]:
        if self._records is None:
            raise VectorStoreError("Index has not been created")
        return self._records

    def _describe(self) -> int:
        return len(self._require())

    def _ping(self) -> None:
        self._require()

    def _upsert(self, records: List[IndexedRecord]) -> None:
        store = self._require()
        for record in records:
            store[record.id] = IndexedRecord(
                id=record.id, vector=list(record.vector), metadata=dict(record.metadata)
            )

    @staticmethod
    def _matches(metadata: Dict[str, Any], where: Dict[str, Any]) -> bool:
        return all(metadata.get(k) == v for k, v in where.items())

    def _query(self, vector: List[float], top_k: int,
               where: Dict[str, Any]) -> List[SearchResult]:
        candidates = [r for r in self._require().values() if self._matches(r.metadata, where)]
        scored = [
            SearchResult(id=r.id, score=cosine_similarity(vector, r.vector), metadata=dict(r.metadata))
            for r in candidates
        ]
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:top_k]

    def _delete_where(self, where: Dict[str, Any]) -> None:
        store = self._require()
        for record_id in [i for i, r in store.items() if self._matches(r.metadata, where)]:
            del store[record_id]

    def _delete_ids(self, ids: List[str]) -> None:
        store = self._require()
        for record_id in ids:
            store.pop(record_id, None)

    def _delete_all(self) -> None:
        self._require().clear()


class ChromaVectorStore(VectorStore):
    """Chromadb-backed store using a cosine-space collection."""

    def __init__(self, persist_dir: str = "./vectorstore/db",
                 collection_name: str = "documents",
                 dimension: int = 384, client=None, **kwargs):
        """
        Initialize Chroma vector store.

        Args:
            persist_dir: Directory for persistent storage
            collection_name: Collection (index) name
            dimension: Vector size every record must have
            client: Pre-built chromadb client (tests)
        """
        super().__init__(dimension=dimension, **kwargs)
        if client is None:
            import chromadb

            Path(persist_dir).mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(path=persist_dir)

        self.client = client
        self.collection_name = collection_name
        self._collection = None

    @property
    def collection(self):
        if self._collection is None:
            self._collection = self.client.get_collection(name=self.collection_name)
        return self._collection

    def list_indexes(self) -> List[str]:
        # Older chromadb returns Collection objects, newer returns names
        return [getattr(c, 'name', c) for c in self.client.list_collections()]

    def _index_exists(self) -> bool:
        return self.collection_name in self.list_indexes()

    def _create_index(self, dimension: int) -> None:
        self._collection = self.client.create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine", "dimension": dimension},
        )

    def _describe(self) -> int:
        return self.collection.count()

    def _ping(self) -> None:
        self.client.heartbeat()

    def _upsert(self, records: List[IndexedRecord]) -> None:
        self.collection.upsert(
            ids=[r.id for r in records],
            embeddings=[list(r.vector) for r in records],
            documents=[r.metadata['content'] for r in records],
            metadatas=[
                {k: v for k, v in r.metadata.items() if k != 'content' and v is not None}
                for r in records
            ],
        )

    @staticmethod
    def _where_clause(where: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not where:
            return None
        if len(where) == 1:
            return dict(where)
        return {"$and": [{k: v} for k, v in where.items()]}

    def _query(self, vector: List[float], top_k: int,
               where: Dict[str, Any]) -> List[SearchResult]:
        total = self.collection.count()
        if total == 0:
            return []

        results = self.collection.query(
            query_embeddings=[vector],
            n_results=min(top_k, total),
            where=self._where_clause(where),
            include=["documents", "metadatas", "distances"],
        )

        matches = []
        for i, record_id in enumerate(results['ids'][0]):
            metadata = dict(results['metadatas'][0][i] or {})
            metadata['content'] = results['documents'][0][i]
            # Cosine distance -> cosine similarity
            score = 1.0 - float(results['distances'][0][i])
            matches.append(SearchResult(id=record_id, score=score, metadata=metadata))
        return matches

    def _delete_where(self, where: Dict[str, Any]) -> None:
        self.collection.delete(where=self._where_clause(where))

    def _delete_ids(self, ids: List[str]) -> None:
        self.collection.delete(ids=ids)

    def _delete_all(self) -> None:
        ids = self.collection.get(include=[])['ids']
        if ids:
            self.collection.delete(ids=ids)


def get_vector_store(config: dict, dimension: int = 384) -> VectorStore:
    """
    Get configured vector store.

    Raises:
        ConfigError: If the chroma backend has no collection name.
    """
    backend = config.get('backend', 'chroma')
    if backend == 'memory':
        return MemoryVectorStore(dimension=dimension)

    collection = config.get('collection')
    if not collection:
        raise ConfigError("vector_store.collection is not set")

    return ChromaVectorStore(
        persist_dir=config.get('path', './vectorstore/db'),
        collection_name=collection,
        dimension=dimension,
    )

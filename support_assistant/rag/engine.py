"""
Chat engine: intent check, retrieval, context-only answering, session append.

Per message:
    Received -> Classified -> GreetingReply | ThanksReply | Retrieving
    Retrieving -> Refused | ContextComposed -> ModelInvoked -> Answered
and every path ends by appending the user message and exactly one assistant
reply to the session in a single step.
"""

from typing import Any, AsyncIterator, Dict, List, Optional, Union
import asyncio
import logging
import time

from support_assistant.audit.logger import get_audit_logger
from support_assistant.config import ConfigError
from support_assistant.errors import ConnectivityError
from support_assistant.llm.llama_cpp import get_llm
from support_assistant.models import ChatMessage, ChatOptions, ChatSession, SearchResult, ServiceStatus
from support_assistant.rag.composer import APOLOGY_MESSAGE, REFUSAL_MESSAGE, AnswerComposer
from support_assistant.rag.intent import Intent, canned_reply, classify
from support_assistant.rag.planner import RetrievalPlanner
from support_assistant.rag.session_store import SessionStore
from support_assistant.retriever.chunker import get_chunker
from support_assistant.retriever.embedder import EmbeddingManager, get_embedding_manager
from support_assistant.retriever.ingest import DocumentIngestor, IngestReport
from support_assistant.retriever.vector_store import VectorStore, get_vector_store

logger = logging.getLogger(__name__)

Options = Union[ChatOptions, Dict[str, Any], None]


class ChatEngine:
    """Retrieval-augmented support chat over a private corpus."""

    def __init__(self, config_dict: Dict[str, Any], llm=None,
                 embedder: Optional[EmbeddingManager] = None,
                 vector_store: Optional[VectorStore] = None,
                 session_store: Optional[SessionStore] = None,
                 audit=None):
        """
        Initialize the engine. Collaborators not passed in are built from
        config; the model and vector store are only touched by initialize().
        """
        self.config = config_dict
        self.llm = llm
        self.embedder = embedder or get_embedding_manager(config_dict.get('embedding', {}))
        self.vector_store = vector_store
        self.planner: Optional[RetrievalPlanner] = None
        self.composer: Optional[AnswerComposer] = None
        self.vector_error: Optional[Exception] = None

        sessions_cfg = config_dict.get('sessions', {})
        self.session_store = session_store or SessionStore(
            max_sessions=sessions_cfg.get('max_sessions', 1000),
            ttl_seconds=sessions_cfg.get('ttl_seconds', 24 * 3600),
        )
        self.index_messages = bool(sessions_cfg.get('index_messages', False))

        if audit is None:
            audit = get_audit_logger(config_dict.get('audit_log', {'enabled': False}))
        self.audit = audit

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Bring up the chat model (required) and vector store (optional).

        Raises:
            ConnectivityError: If no chat model is usable.
        """
        llm_cfg = self.config.get('llm', {})
        if self.llm is None:
            self.llm = await asyncio.to_thread(get_llm, llm_cfg)
        if not self.llm.test_connection():
            raise ConnectivityError("Chat model is not reachable")

        self.composer = AnswerComposer(
            self.llm,
            temperature=llm_cfg.get('temperature', 0.7),
            max_tokens=llm_cfg.get('max_tokens', 1024),
        )

        await self.initialize_vector_store()

        if await asyncio.to_thread(self.embedder.test_embedding):
            logger.info("Embedding service ready (%s)", self.embedder.backend_active)
        else:
            logger.warning("Embedding service test failed, continuing")

        if self.vector_store is not None:
            try:
                count = await asyncio.to_thread(self.vector_store.stats)
            except ConnectivityError as e:
                logger.warning("Could not check vector database status: %s", e)
            else:
                if count:
                    logger.info("Vector database ready with %s records", count)
                else:
                    logger.warning("Vector database is empty; run document ingestion first")

    async def initialize_vector_store(self) -> None:
        vs_cfg = self.config.get('vector_store', {})
        dimension = self.embedder.embedding_dim
        try:
            if self.vector_store is None:
                self.vector_store = get_vector_store(vs_cfg, dimension=dimension)
            await asyncio.to_thread(
                self.vector_store.initialize_index,
                dimension,
                vs_cfg.get('ready_max_attempts', 60),
                vs_cfg.get('ready_interval', 5.0),
            )
            if not await asyncio.to_thread(self.vector_store.test_connection):
                raise ConnectivityError("Vector database connection failed")
        except (ConfigError, ConnectivityError, ImportError) as e:
            logger.warning("Vector database unavailable, continuing without vector features: %s", e)
            self.vector_error = e
            self.vector_store = None
            self.planner = None
            return

        self.planner = RetrievalPlanner(self.vector_store)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, user_id: Optional[str] = None) -> ChatSession:
        return self.session_store.create(user_id)

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        return self.session_store.get(session_id)

    def get_user_sessions(self, user_id: str) -> List[ChatSession]:
        return self.session_store.user_sessions(user_id)

    async def delete_session(self, session_id: str) -> bool:
        deleted = self.session_store.delete(session_id)
        if deleted and self.index_messages and self.vector_store is not None:
            try:
                await asyncio.to_thread(self.vector_store.delete_session, session_id)
            except ConnectivityError as e:
                logger.warning("Could not drop indexed messages for %s: %s", session_id, e)
        return deleted

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    async def send_message(self, text: str, session_id: str,
                           options: Options = None) -> ChatMessage:
        """
        Answer one user message and append the exchange to the session.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        options = self._options(options)
        async with self.session_store.lock_for(session_id):
            user_message = ChatMessage.create('user', text)
            reply = await self._answer(text, session_id, options)
            self.session_store.append_exchange(session_id, user_message, reply)
            await self._index_exchange(session_id, options, user_message, reply)
            return reply

    async def stream_message(self, text: str, session_id: str,
                             options: Options = None) -> AsyncIterator[str]:
        """
        Like send_message, but yields the reply text as it is generated.

        The exchange is appended once the stream ends, whatever the outcome.
        """
        options = self._options(options)
        async with self.session_store.lock_for(session_id):
            user_message = ChatMessage.create('user', text)
            parts: List[str] = []

            passages = None
            reply_text = None
            try:
                intent = self._classify(text, session_id)
                if intent is not Intent.SUBSTANTIVE:
                    reply_text = canned_reply(intent)
                else:
                    passages = await self._retrieve(text)
                    if passages is None:
                        reply_text = REFUSAL_MESSAGE
            except Exception as e:
                self._log_failure('retrieval_failed', e, session_id)
                reply_text = APOLOGY_MESSAGE

            if reply_text is not None:
                parts.append(reply_text)
                yield reply_text
            else:
                async for delta in self._stream_model(text, passages, options, session_id):
                    parts.append(delta)
                    yield delta

            reply = ChatMessage.create('assistant', ''.join(parts) or APOLOGY_MESSAGE)
            self.session_store.append_exchange(session_id, user_message, reply)
            await self._index_exchange(session_id, options, user_message, reply)

    async def _stream_model(self, text: str, passages: List[SearchResult],
                            options: ChatOptions, session_id: str) -> AsyncIterator[str]:
        sentinel = object()
        produced = False
        try:
            stream = self.composer.stream(text, passages, options)
            while True:
                delta = await asyncio.to_thread(next, stream, sentinel)
                if delta is sentinel:
                    break
                produced = True
                yield delta
        except Exception as e:
            self._log_failure('model_failed', e, session_id)
            if not produced:
                yield APOLOGY_MESSAGE

    async def _answer(self, text: str, session_id: str, options: ChatOptions) -> ChatMessage:
        try:
            intent = self._classify(text, session_id)
            if intent is not Intent.SUBSTANTIVE:
                return ChatMessage.create('assistant', canned_reply(intent))

            passages = await self._retrieve(text)
            if passages is None:
                return ChatMessage.create('assistant', REFUSAL_MESSAGE)

            start = time.time()
            result = await asyncio.to_thread(self.composer.generate, text, passages, options)
            if self.audit:
                self.audit.log_model_inference(
                    model_name=result.get('model', ''),
                    output_tokens=result.get('tokens', 0),
                    inference_time_ms=(time.time() - start) * 1000,
                    session_id=session_id,
                )
            return ChatMessage.create('assistant', result['text'])

        except Exception as e:
            self._log_failure('answer_failed', e, session_id)
            return ChatMessage.create('assistant', APOLOGY_MESSAGE)

    def _classify(self, text: str, session_id: str) -> Intent:
        intent = classify(text)
        logger.debug("Message classified as %s", intent.value)
        if self.audit:
            self.audit.log_intent(session_id, intent.value)
        return intent

    async def _retrieve(self, text: str) -> Optional[List[SearchResult]]:
        """Passages for the question, or None when the answer is a refusal."""
        if self.planner is None:
            logger.info("Vector database not available, refusing")
            return None

        start = time.time()
        vector = await self.embedder.aembed(text)
        plan = self.planner.plan(text)
        outcome = await self.planner.aretrieve(vector, plan)
        elapsed_ms = (time.time() - start) * 1000

        logger.info("Retrieved %s passage(s) with %s in %.0fms",
                    len(outcome.passages), [a.name for a in outcome.attempts], elapsed_ms)
        if self.audit:
            self.audit.log_query(
                query=text,
                num_results=len(outcome.passages),
                execution_time_ms=elapsed_ms,
                plan=plan.name,
                attempts=[a.name for a in outcome.attempts],
                refused=outcome.is_empty,
            )

        if outcome.is_empty:
            return None
        return outcome.passages

    async def _index_exchange(self, session_id: str, options: ChatOptions,
                              *messages: ChatMessage) -> None:
        """Store the exchange as 'message' records (sessions.index_messages)."""
        if not self.index_messages or self.vector_store is None:
            return
        try:
            vectors = await self.embedder.aembed_texts([m.content for m in messages])
            for message, vector in zip(messages, vectors):
                await asyncio.to_thread(
                    self.vector_store.store_message, message, vector,
                    options.user_id, session_id,
                )
        except ConnectivityError as e:
            logger.warning("Could not index messages for %s: %s", session_id, e)

    def _log_failure(self, error_type: str, error: Exception, session_id: str) -> None:
        logger.error("Error answering message in session %s: %s", session_id, error, exc_info=error)
        if self.audit:
            self.audit.log_error(error_type, str(error), {'session_id': session_id})

    @staticmethod
    def _options(options: Options) -> ChatOptions:
        if isinstance(options, ChatOptions):
            return options
        return ChatOptions.from_dict(options)

    # ------------------------------------------------------------------
    # Corpus & status
    # ------------------------------------------------------------------

    def _require_vector_store(self) -> VectorStore:
        if self.vector_store is None:
            raise ConnectivityError(
                "Document processing service not available. Check your vector store configuration."
            )
        return self.vector_store

    async def process_documents(self, dir_path: Optional[str] = None) -> IngestReport:
        """Ingest the corpus folder (documents.path by default)."""
        ingestor = DocumentIngestor(
            embedder=self.embedder,
            vector_store=self._require_vector_store(),
            chunker=get_chunker(self.config.get('chunking', {})),
            audit=self.audit,
        )
        folder = dir_path or self.config.get('documents', {}).get('path', './documents')
        return await asyncio.to_thread(ingestor.process_directory, folder)

    async def clear_index(self) -> None:
        await asyncio.to_thread(self._require_vector_store().clear_all)

    async def get_service_status(self) -> ServiceStatus:
        status = ServiceStatus()
        try:
            status.chatbot_reachable = self.llm is not None and self.llm.test_connection()
            status.embedding_ready = await asyncio.to_thread(self.embedder.test_embedding)
            if self.vector_store is not None:
                status.vector_db_reachable = await asyncio.to_thread(self.vector_store.test_connection)
                if status.vector_db_reachable:
                    status.documents_available = await asyncio.to_thread(self.vector_store.stats) > 0
        except Exception as e:
            logger.error("Error getting service status: %s", e)
            return ServiceStatus()
        return status

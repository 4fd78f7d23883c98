"""
Error taxonomy for the support assistant.

ConfigError lives in config.py next to the loader that raises it.
Empty retrieval is not an error: it maps to the fixed refusal reply.
"""


class ConnectivityError(Exception):
    """Raised when the language model or vector database cannot be reached."""
    pass


class LLMError(ConnectivityError):
    """Raised when a chat completion fails."""
    pass


class LLMUnavailableError(LLMError):
    """Raised when none of the configured chat models can be loaded."""
    pass


class VectorStoreError(ConnectivityError):
    """Raised when the vector database rejects or fails an operation."""
    pass


class IndexNotReadyTimeout(VectorStoreError):
    """Raised when a freshly created index never becomes queryable."""
    pass


class EmbeddingFailure(Exception):
    """
    Raised when the embedding model fails to load or encode.

    Always recovered inside the embedder via the hash fallback.
    """
    pass


class SessionNotFoundError(KeyError):
    """Raised when a chat session id is unknown."""

    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return "Session not found"

"""
Embedding generation.

Primary: sentence-transformers, loaded lazily on first use.
Fallback: deterministic hash embeddings (always available).

Key requirements:
- No import-time hard dependency on sentence-transformers.
- The model is loaded at most once per manager, even under concurrent first use.
- Fallback must be deterministic and dimension-stable.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional
import logging
import math
import re
import threading

from support_assistant.errors import EmbeddingFailure

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_DIM = 384

WORD_SPLIT = re.compile(r"\s+")


def _l2_normalize(vec: List[float]) -> List[float]:
    norm = math.sqrt(sum(x * x for x in vec))
    if norm == 0:
        return vec
    return [x / norm for x in vec]


def _word_hash(word: str) -> int:
    """32-bit signed polynomial string hash (h * 31 + code)."""
    h = 0
    for ch in word:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def hash_embedding(text: str, dim: int = DEFAULT_DIM) -> List[float]:
    """
    Deterministic pseudo-embedding from character and word features.

    Words are the pieces between whitespace runs, so leading or trailing
    whitespace contributes one empty word (hash 0). Never raises.
    """
    vec = [0.0] * dim

    for ch in text:
        code = ord(ch)
        vec[code % dim] += math.sin(code * 0.1) * 0.1

    for word in WORD_SPLIT.split(text.lower()):
        vec[abs(_word_hash(word)) % dim] += 0.1

    return _l2_normalize(vec)


@dataclass
class EmbeddingConfig:
    model: str = DEFAULT_MODEL
    backend: str = "auto"  # "auto" | "sentence_transformers" | "hash"
    dimension: int = DEFAULT_DIM  # must match the vector index dimension


class EmbeddingManager:
    """
    Manages embeddings with a lazily loaded sentence-transformers model and
    a deterministic fallback.
    """

    def __init__(self, cfg: Optional[EmbeddingConfig] = None):
        self.cfg = cfg or EmbeddingConfig()

        if self.cfg.backend not in {"auto", "sentence_transformers", "hash"}:
            raise ValueError(f"Unknown embeddings backend: {self.cfg.backend}")

        self.embedding_dim: int = int(self.cfg.dimension)
        self._model = None  # SentenceTransformer instance once loaded
        self._load_attempted = self.cfg.backend == "hash"
        self._init_lock = threading.Lock()

    @property
    def backend_active(self) -> str:
        return "sentence_transformers" if self._model is not None else "hash"

    @staticmethod
    def _load_sentence_transformer():
        from sentence_transformers import SentenceTransformer  # lazy import
        return SentenceTransformer

    def _ensure_model(self):
        """Load the model once; later calls return the cached handle."""
        if self._load_attempted:
            return self._model

        with self._init_lock:
            if self._load_attempted:
                return self._model
            try:
                model_cls = self._load_sentence_transformer()
                model = model_cls(self.cfg.model)
                dim = int(model.get_sentence_embedding_dimension())
                if dim != self.embedding_dim:
                    raise EmbeddingFailure(
                        f"Model {self.cfg.model} produces dim={dim}, index expects {self.embedding_dim}"
                    )
                self._model = model
                logger.info("Loaded embedding model %s (dim=%s)", self.cfg.model, dim)
            except Exception as e:
                logger.warning(
                    "Embedding model unavailable (%s); using deterministic hash embeddings "
                    "(dim=%s). Retrieval quality will be reduced.",
                    e, self.embedding_dim,
                )
                self._model = None
            finally:
                self._load_attempted = True

        return self._model

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        model = self._ensure_model()
        if model is not None:
            try:
                embeddings = model.encode(
                    texts,
                    convert_to_numpy=True,
                    normalize_embeddings=True,
                )
                return embeddings.tolist()
            except Exception as e:
                logger.warning("Embedding model failed to encode, falling back to hash: %s", e)

        return [hash_embedding(t, self.embedding_dim) for t in texts]

    def embed_single(self, text: str) -> List[float]:
        return self.embed_texts([text])[0]

    async def aembed(self, text: str) -> List[float]:
        """Embed off the event loop (model load and encode block)."""
        return await asyncio.to_thread(self.embed_single, text)

    async def aembed_texts(self, texts: List[str]) -> List[List[float]]:
        return await asyncio.to_thread(self.embed_texts, texts)

    def test_embedding(self) -> bool:
        try:
            return len(self.embed_single("test")) == self.embedding_dim
        except Exception as e:
            logger.error("Embedding test failed: %s", e)
            return False


def get_embedding_manager(config: dict, *, expected_dim: Optional[int] = None) -> EmbeddingManager:
    """
    Create an EmbeddingManager from config dict.

    Pass expected_dim (e.g., existing vector store dimension) to pin the
    vector size both paths must produce.
    """
    embeddings_cfg = config.get("embedding", config)  # supports either layout
    model_name = embeddings_cfg.get("model", DEFAULT_MODEL)
    backend = embeddings_cfg.get("backend", "auto")
    dimension = int(expected_dim or embeddings_cfg.get("dimension", DEFAULT_DIM))

    return EmbeddingManager(EmbeddingConfig(model=model_name, backend=backend, dimension=dimension))

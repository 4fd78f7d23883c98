"""
Pytest configuration and fixtures.

Ensures support_assistant can be imported from tests and provides offline
stand-ins for the chat model and embedder.
"""

import sys
import os
import re
from pathlib import Path

import pytest

# Add the repository root to Python path so tests can import support_assistant
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

# Also set PYTHONPATH environment variable
os.environ['PYTHONPATH'] = str(repo_root)

from support_assistant.errors import LLMError
from support_assistant.rag.composer import REFUSAL_MESSAGE
from support_assistant.retriever.embedder import EmbeddingManager
from support_assistant.retriever.vector_store import MemoryVectorStore


DIM = 384

_WORD = re.compile(r"[a-z0-9]+")
_STOPWORDS = {"what", "is", "the", "a", "an", "of", "how", "do", "i", "to", "are", "in"}


class FakeLLM:
    """
    Answers with the context sentence sharing the most content words with
    the question, or the refusal sentence when nothing overlaps.
    """

    model_name = "fake-model"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def test_connection(self) -> bool:
        return True

    @staticmethod
    def _context(system_prompt: str) -> str:
        body = system_prompt.split("Available Information:\n", 1)[1]
        return body.split("\n\nIf the question is about", 1)[0]

    def _answer(self, messages):
        system, user = messages[0]['content'], messages[-1]['content']
        wanted = set(_WORD.findall(user.lower())) - _STOPWORDS
        best, best_overlap = REFUSAL_MESSAGE, 0
        for sentence in re.split(r"[.!?\n]+", self._context(system)):
            overlap = len(wanted & set(_WORD.findall(sentence.lower())))
            if overlap > best_overlap:
                best, best_overlap = sentence.strip(), overlap
        return best

    def chat(self, messages, model=None, temperature=None, max_tokens=None):
        self.calls.append({
            'messages': messages, 'model': model,
            'temperature': temperature, 'max_tokens': max_tokens,
        })
        if self.fail:
            raise LLMError("Failed to get response from chatbot: boom")
        return {'text': self._answer(messages), 'tokens': 7, 'time_ms': 1.0, 'model': self.model_name}

    def stream_chat(self, messages, model=None, temperature=None, max_tokens=None):
        self.calls.append({'messages': messages, 'model': model, 'stream': True})
        if self.fail:
            raise LLMError("Failed to stream response from chatbot: boom")
        words = self._answer(messages).split(' ')
        for i, word in enumerate(words):
            yield word if i == 0 else ' ' + word


class KeywordEmbedder:
    """One dimension per known keyword; texts without keywords map to zero."""

    KEYWORDS = ["voltage", "output", "bluetooth", "pairing", "reset", "configuration", "weather"]

    def __init__(self, dim: int = DIM):
        self.embedding_dim = dim
        self.backend_active = "keyword"

    def embed_single(self, text):
        vec = [0.0] * self.embedding_dim
        words = set(_WORD.findall(text.lower()))
        for i, keyword in enumerate(self.KEYWORDS):
            if keyword in words:
                vec[i] = 1.0
        norm = sum(x * x for x in vec) ** 0.5
        return [x / norm for x in vec] if norm else vec

    def embed_texts(self, texts):
        return [self.embed_single(t) for t in texts]

    async def aembed(self, text):
        return self.embed_single(text)

    async def aembed_texts(self, texts):
        return self.embed_texts(texts)

    def test_embedding(self):
        return True


def _no_sentence_transformers():
    raise ImportError("simulated missing sentence_transformers")


@pytest.fixture
def hash_embedder(monkeypatch):
    """EmbeddingManager forced onto the deterministic fallback."""
    monkeypatch.setattr(EmbeddingManager, "_load_sentence_transformer",
                        staticmethod(_no_sentence_transformers))
    return EmbeddingManager()


@pytest.fixture
def keyword_embedder():
    return KeywordEmbedder()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def memory_store():
    store = MemoryVectorStore(dimension=DIM)
    store.initialize_index(DIM)
    return store


@pytest.fixture
def corpus_dir(tmp_path):
    """Three-file corpus; only file_b.txt knows the output voltage."""
    docs = tmp_path / "documents"
    docs.mkdir()
    (docs / "file_a.txt").write_text(
        "Bluetooth pairing starts when you hold the power button. "
        "The status light blinks blue during pairing."
    )
    (docs / "file_b.txt").write_text(
        "The output voltage is 5V. The regulator accepts a wide input range."
    )
    (docs / "file_c.md").write_text(
        "# Maintenance\n\nReset the configuration by holding the reset key for ten seconds."
    )
    return docs


@pytest.fixture
def config_dict(tmp_path, corpus_dir):
    return {
        'llm': {'provider': 'llama_cpp', 'model_path': str(tmp_path / 'missing.gguf'),
                'temperature': 0.7, 'max_tokens': 1024},
        'embedding': {'backend': 'hash', 'dimension': DIM},
        'vector_store': {'backend': 'memory', 'ready_max_attempts': 2, 'ready_interval': 0},
        'chunking': {'max_chunk_size': 1000, 'overlap': 100},
        'documents': {'path': str(corpus_dir)},
        'audit_log': {'enabled': False},
    }

"""Local chat completions using llama-cpp-python."""

from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional
import logging
import threading
import time

from support_assistant.errors import LLMError, LLMUnavailableError

logger = logging.getLogger(__name__)

EMPTY_COMPLETION = "Sorry, I couldn't generate a response."


class LlamaCppLLM:
    """
    Wrapper for llama-cpp-python chat inference.

    Picks the first loadable model from the preferred list at startup.
    """

    def __init__(self, model_path: str, fallback_model_paths: Optional[List[str]] = None,
                 context_length: int = 4096, temperature: float = 0.7,
                 max_tokens: int = 1024, n_threads: Optional[int] = None):
        """
        Initialize Llama.cpp LLM.

        Args:
            model_path: Preferred GGUF model file
            fallback_model_paths: Models to try, in order, if the preferred one fails
            context_length: Context window size
            temperature: Default sampling temperature
            max_tokens: Default max output tokens
            n_threads: CPU threads (None lets llama.cpp decide)

        Raises:
            LLMUnavailableError: If no candidate model can be loaded
        """
        self.candidates = [p for p in [model_path, *(fallback_model_paths or [])] if p]
        self.context_length = context_length
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.n_threads = n_threads
        self._models: Dict[str, Any] = {}
        self._lock = threading.Lock()

        self.model_path = self._select_model()
        logger.info("Using chat model: %s", self.model_name)

    @staticmethod
    def _load_llama():
        try:
            from llama_cpp import Llama
        except ImportError:
            raise ImportError("Install: pip install llama-cpp-python")
        return Llama

    @staticmethod
    def _name(path: str) -> str:
        return Path(path).stem

    @property
    def model_name(self) -> str:
        return self._name(self.model_path)

    def _load(self, path: str):
        with self._lock:
            if path not in self._models:
                llama_cls = self._load_llama()
                self._models[path] = llama_cls(
                    model_path=path,
                    n_ctx=self.context_length,
                    n_threads=self.n_threads,
                    verbose=False,
                )
            return self._models[path]

    def _select_model(self) -> str:
        errors = []
        for path in self.candidates:
            if not Path(path).exists():
                errors.append(f"{path}: not found")
                continue
            try:
                self._load(path)
                return path
            except ImportError:
                raise
            except Exception as e:
                logger.warning("Chat model %s failed to load: %s", path, e)
                errors.append(f"{path}: {e}")
        raise LLMUnavailableError(
            "No chat model could be loaded (" + "; ".join(errors or ["none configured"]) + ")"
        )

    def available_models(self) -> List[str]:
        return [self._name(p) for p in self.candidates if Path(p).exists()]

    def _resolve(self, model: Optional[str]):
        if not model or model in (self.model_name, self.model_path):
            return self.model_path, self._models[self.model_path]
        for path in self.candidates:
            if model in (path, self._name(path)) and Path(path).exists():
                return path, self._load(path)
        logger.warning("Requested model %s is not available, using %s", model, self.model_name)
        return self.model_path, self._models[self.model_path]

    def chat(self, messages: List[Dict[str, str]], model: Optional[str] = None,
             temperature: Optional[float] = None,
             max_tokens: Optional[int] = None) -> Dict[str, Any]:
        """
        Run a chat completion.

        Args:
            messages: Ordered [{'role', 'content'}] turns
            model: Override model (name or path from the candidate list)
            max_tokens: Override default max_tokens
            temperature: Override default temperature

        Returns:
            Dict with 'text', 'tokens', 'time_ms', 'model'

        Raises:
            LLMError: If inference fails
        """
        path, llm = self._resolve(model)
        start_time = time.time()

        try:
            response = llm.create_chat_completion(
                messages=messages,
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.max_tokens,
                stream=False,
            )
        except Exception as e:
            raise LLMError(f"Failed to get response from chatbot: {e}") from e

        elapsed_ms = (time.time() - start_time) * 1000
        text = (response['choices'][0]['message'].get('content') or '').strip()

        return {
            'text': text or EMPTY_COMPLETION,
            'tokens': response.get('usage', {}).get('completion_tokens', 0),
            'time_ms': elapsed_ms,
            'model': self._name(path),
        }

    def stream_chat(self, messages: List[Dict[str, str]], model: Optional[str] = None,
                    temperature: Optional[float] = None,
                    max_tokens: Optional[int] = None) -> Iterator[str]:
        """Yield completion text deltas as they are generated."""
        _, llm = self._resolve(model)
        try:
            stream = llm.create_chat_completion(
                messages=messages,
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.max_tokens,
                stream=True,
            )
            for chunk in stream:
                delta = chunk['choices'][0].get('delta', {}).get('content')
                if delta:
                    yield delta
        except Exception as e:
            raise LLMError(f"Failed to stream response from chatbot: {e}") from e

    def test_connection(self) -> bool:
        return self.model_path in self._models


def get_llm(config: dict) -> LlamaCppLLM:
    """Get configured LLM instance."""
    return LlamaCppLLM(
        model_path=config.get('model_path'),
        fallback_model_paths=config.get('fallback_model_paths', []),
        context_length=config.get('context_length', 4096),
        temperature=config.get('temperature', 0.7),
        max_tokens=config.get('max_tokens', 1024),
        n_threads=config.get('n_threads'),
    )

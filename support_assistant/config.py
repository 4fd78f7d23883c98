"""
Configuration management for the Support Assistant.

Loads config.yaml with validation, .env / environment overrides, and type checking.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


# Environment variable -> dot-notation config key
ENV_OVERRIDES = {
    'ASSISTANT_MODEL_PATH': 'llm.model_path',
    'ASSISTANT_VECTOR_PATH': 'vector_store.path',
    'ASSISTANT_COLLECTION': 'vector_store.collection',
    'ASSISTANT_DOCUMENTS_DIR': 'documents.path',
}


class AssistantConfig:
    """
    Configuration manager with strict validation.

    Enforces:
    - Required keys present
    - Known providers / backends
    - Numeric generation and chunking parameters
    """

    # Required top-level keys
    REQUIRED_KEYS = ['llm', 'embedding', 'vector_store']

    LLM_PROVIDERS = ('llama_cpp',)
    EMBEDDING_BACKENDS = ('auto', 'sentence_transformers', 'hash')
    VECTOR_BACKENDS = ('chroma', 'memory')

    def __init__(self, config_path: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        """
        Load and validate configuration.

        Args:
            config_path: Path to config.yaml. Defaults to ./configs/config.yaml
            data: Already-parsed configuration (skips the file read)

        Raises:
            ConfigError: If config invalid or the config file is missing
        """
        load_dotenv()

        if data is not None:
            self.config_path = None
            self.data = copy.deepcopy(data)
        else:
            if config_path is None:
                config_path = os.getenv("ASSISTANT_CONFIG_PATH", "./configs/config.yaml")

            self.config_path = Path(config_path)

            if not self.config_path.exists():
                raise ConfigError(f"Config file not found: {self.config_path}")

            try:
                with open(self.config_path, 'r') as f:
                    self.data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML: {e}")

        if not isinstance(self.data, dict):
            raise ConfigError("Config root must be a mapping")

        self._apply_env_overrides()
        self._validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssistantConfig":
        """Build a validated config from a plain dict (tests, embedding callers)."""
        return cls(data=data)

    def _apply_env_overrides(self):
        for env_name, key in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if not value:
                continue
            section, _, leaf = key.partition('.')
            target = self.data.setdefault(section, {})
            if isinstance(target, dict):
                target[leaf] = value

    def _validate(self):
        """Validate configuration structure and values."""
        # Check required keys
        for key in self.REQUIRED_KEYS:
            if key not in self.data:
                raise ConfigError(f"Missing required config key: {key}")
            if not isinstance(self.data[key], dict):
                raise ConfigError(f"Config section '{key}' must be a mapping")

        # Validate LLM config
        llm_cfg = self.data['llm']
        provider = llm_cfg.get('provider', 'llama_cpp')
        if provider not in self.LLM_PROVIDERS:
            raise ConfigError(f"Invalid LLM provider: {provider}")

        temperature = llm_cfg.get('temperature', 0.7)
        if not isinstance(temperature, (int, float)) or not 0 <= temperature <= 2:
            raise ConfigError(f"Invalid llm.temperature: {temperature}")

        max_tokens = llm_cfg.get('max_tokens', 1024)
        if not isinstance(max_tokens, int) or max_tokens <= 0:
            raise ConfigError(f"Invalid llm.max_tokens: {max_tokens}")

        fallbacks = llm_cfg.get('fallback_model_paths', [])
        if not isinstance(fallbacks, list):
            raise ConfigError("llm.fallback_model_paths must be a list")

        # Validate embedding backend
        backend = self.data['embedding'].get('backend', 'auto')
        if backend not in self.EMBEDDING_BACKENDS:
            raise ConfigError(f"Invalid embedding backend: {backend}")

        dimension = self.data['embedding'].get('dimension', 384)
        if not isinstance(dimension, int) or dimension <= 0:
            raise ConfigError(f"Invalid embedding.dimension: {dimension}")

        # Validate vector store backend
        vs_backend = self.data['vector_store'].get('backend', 'chroma')
        if vs_backend not in self.VECTOR_BACKENDS:
            raise ConfigError(f"Invalid vector store backend: {vs_backend}")

        # Validate chunking
        chunking = self.data.get('chunking', {})
        max_size = chunking.get('max_chunk_size', 1000)
        overlap = chunking.get('overlap', 100)
        if not isinstance(max_size, int) or max_size <= 0:
            raise ConfigError(f"Invalid chunking.max_chunk_size: {max_size}")
        if not isinstance(overlap, int) or overlap < 0:
            raise ConfigError(f"Invalid chunking.overlap: {overlap}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value by dot-notation path.

        Args:
            key: Key path (e.g., 'llm.model_path', 'vector_store.collection')
            default: Default value if not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self.data

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def as_dict(self) -> Dict[str, Any]:
        """Deep copy of the validated configuration."""
        return copy.deepcopy(self.data)

    def get_documents_dir(self) -> str:
        """Get the folder that holds the source corpus."""
        return self.data.get('documents', {}).get('path', './documents')


# Global config instance (lazy-loaded)
_config_instance: Optional[AssistantConfig] = None


def load_config(config_path: Optional[str] = None) -> AssistantConfig:
    """
    Load or retrieve cached configuration.

    Args:
        config_path: Optional override path

    Returns:
        AssistantConfig instance
    """
    global _config_instance
    if _config_instance is None or config_path is not None:
        _config_instance = AssistantConfig(config_path)
    return _config_instance

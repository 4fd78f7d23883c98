"""
Support Assistant - retrieval-augmented application support chat.

Answers questions strictly from a private document corpus and refuses
everything else. Supports plain text, Markdown and PDF ingestion.
"""

__version__ = "1.0.0"

from support_assistant.config import AssistantConfig, load_config
from support_assistant.rag.engine import ChatEngine
from support_assistant.service import AssistantService
from support_assistant.loader import DocumentLoader

__all__ = ['AssistantConfig', 'load_config', 'ChatEngine', 'AssistantService', 'DocumentLoader']

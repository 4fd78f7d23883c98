"""
Answer composition with context-only enforcement.

Retrieved passages become one system instruction; the model sees only that
instruction and the raw user question, never prior turns.
"""

from typing import Any, Dict, Iterator, List, Optional
import logging

from support_assistant.models import ChatMessage, ChatOptions, SearchResult
from support_assistant.rag.planner import is_list_query

logger = logging.getLogger(__name__)


REFUSAL_MESSAGE = (
    "Sorry, I can only help you with this application. "
    "Please ask any queries related to the application."
)

APOLOGY_MESSAGE = (
    "I apologize, but I encountered an error while processing your request. "
    "Please try again."
)

LIST_MERGE_INSTRUCTION = (
    "If the information appears across multiple places in the provided context, "
    "merge and deduplicate items into one clear numbered list in your answer. "
    "After the list, include a short line that says exactly how many unique items "
    "you found (e.g. \"Found X unique items.\")."
)

SYSTEM_PROMPT_TEMPLATE = """You are a helpful AI assistant built into this application to provide user support.

CRITICAL REQUIREMENTS - FOLLOW EXACTLY:
1. If the user's question is not related to the application or if you cannot answer using the information below, you MUST respond with this exact message: "{refusal}"
2. Never mention "documents", "files", "sources", "training data", "uploaded", or similar terms
3. Never explain why you can't help or mention limitations
4. For application-related questions, answer directly and professionally
5. Act as if the knowledge is built into your capabilities
6. NEVER include internal references like "Table 9-1:" or "Figure 3-2:" in your responses

FORMATTING REQUIREMENTS:
- Use clear headings with **bold text** for important concepts
- For calculations, formulas, or step-by-step procedures, use numbered lists or bullet points
- For specifications or values, present them in a structured, easy-to-read format
- Use markdown: **bold** for important values, code blocks for commands and register settings
- For tabular data, ALWAYS use markdown tables with | separators and a header separator row (|---|---|)
- Example table format:
  | Parameter | Value | Unit |
  |---|---|---|
  | Voltage | 3.3 | V |
- Break long paragraphs into shorter sections and keep responses concise
{list_instruction}
Available Information:
{context}

If the question is about the application and the information above answers it, give a direct helpful answer. Otherwise respond with the exact message from requirement 1."""


def build_context(passages: List[SearchResult]) -> str:
    """Passage text only, in rank order; provenance never enters the prompt."""
    return "\n\n".join(p.content.strip() for p in passages if p.content.strip())


def build_system_prompt(message: str, context: str) -> str:
    list_instruction = f"\n{LIST_MERGE_INSTRUCTION}\n" if is_list_query(message) else ""
    return SYSTEM_PROMPT_TEMPLATE.format(
        refusal=REFUSAL_MESSAGE,
        list_instruction=list_instruction,
        context=context,
    )


def build_messages(message: str, passages: List[SearchResult]) -> List[Dict[str, str]]:
    return [
        {'role': 'system', 'content': build_system_prompt(message, build_context(passages))},
        {'role': 'user', 'content': message},
    ]


class AnswerComposer:
    """Turns retrieved passages plus the question into one model call."""

    def __init__(self, llm, default_model: Optional[str] = None,
                 temperature: float = 0.7, max_tokens: int = 1024):
        self.llm = llm
        self.default_model = default_model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _generation_args(self, options: Optional[ChatOptions]) -> Dict[str, Any]:
        options = options or ChatOptions()
        return {
            'model': options.model or self.default_model,
            'temperature': self.temperature if options.temperature is None else options.temperature,
            'max_tokens': options.max_tokens or self.max_tokens,
        }

    def generate(self, message: str, passages: List[SearchResult],
                 options: Optional[ChatOptions] = None) -> Dict[str, Any]:
        """Raw model result ('text', 'tokens', 'time_ms', 'model')."""
        return self.llm.chat(build_messages(message, passages), **self._generation_args(options))

    def compose(self, message: str, passages: List[SearchResult],
                history: Optional[List[ChatMessage]] = None,
                options: Optional[ChatOptions] = None) -> ChatMessage:
        """`history` is accepted but unused: only the current question reaches the model."""
        result = self.generate(message, passages, options)
        return ChatMessage.create('assistant', result['text'])

    def stream(self, message: str, passages: List[SearchResult],
               options: Optional[ChatOptions] = None) -> Iterator[str]:
        return self.llm.stream_chat(build_messages(message, passages),
                                    **self._generation_args(options))

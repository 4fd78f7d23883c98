"""
Retrieval planning: how wide to search, and the strict-then-relaxed retry.
"""

from dataclasses import dataclass, field
from typing import List
import asyncio
import logging
import re

from support_assistant.models import DOCUMENT_TYPE, SearchResult
from support_assistant.retriever.vector_store import VectorStore

logger = logging.getLogger(__name__)


LIST_CUES = re.compile(r'\b(list|pins|pin|what are the|list the|enumerate)\b', re.IGNORECASE)
QUESTION_CUES = re.compile(
    r'\b(what|how|where|when|why|which|who|tell me|show me|give|generate|say|'
    r'explain|describe|list)\b',
    re.IGNORECASE,
)


@dataclass(frozen=True)
class RetrievalPlan:
    top_k: int
    min_score: float
    name: str = "custom"


STRICT_BROAD = RetrievalPlan(top_k=15, min_score=0.15, name="strict-broad")
STRICT_NARROW = RetrievalPlan(top_k=8, min_score=0.25, name="strict-narrow")
RELAXED = RetrievalPlan(top_k=15, min_score=0.1, name="relaxed")


@dataclass
class RetrievalOutcome:
    """Passages found plus the plans that were actually executed, in order."""

    passages: List[SearchResult] = field(default_factory=list)
    attempts: List[RetrievalPlan] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.passages


def is_list_query(message: str) -> bool:
    return bool(LIST_CUES.search(message or ''))


def is_question(message: str) -> bool:
    return bool(QUESTION_CUES.search(message or ''))


class RetrievalPlanner:
    """Two named attempts: the planned strict search, then one relaxed retry."""

    def __init__(self, vector_store: VectorStore, relaxed: RetrievalPlan = RELAXED):
        self.vector_store = vector_store
        self.relaxed = relaxed

    def plan(self, message: str) -> RetrievalPlan:
        if is_list_query(message) or is_question(message):
            return STRICT_BROAD
        return STRICT_NARROW

    def retrieve(self, query_vector: List[float], plan: RetrievalPlan) -> RetrievalOutcome:
        outcome = RetrievalOutcome()

        outcome.passages = self._search(query_vector, plan)
        outcome.attempts.append(plan)
        logger.debug("%s search returned %s passage(s)", plan.name, len(outcome.passages))

        if outcome.is_empty and plan.min_score > self.relaxed.min_score:
            logger.info("No passages above %.2f, retrying with relaxed threshold %.2f",
                        plan.min_score, self.relaxed.min_score)
            outcome.passages = self._search(query_vector, self.relaxed)
            outcome.attempts.append(self.relaxed)

        return outcome

    async def aretrieve(self, query_vector: List[float], plan: RetrievalPlan) -> RetrievalOutcome:
        return await asyncio.to_thread(self.retrieve, query_vector, plan)

    def _search(self, query_vector: List[float], plan: RetrievalPlan) -> List[SearchResult]:
        return self.vector_store.search(
            query_vector,
            top_k=plan.top_k,
            min_score=plan.min_score,
            type_filter=DOCUMENT_TYPE,
        )

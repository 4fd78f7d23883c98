"""Tests for retrieval planning and the relaxed retry."""

import asyncio

from support_assistant.models import SearchResult
from support_assistant.rag.planner import (
    RELAXED, STRICT_BROAD, STRICT_NARROW, RetrievalPlanner, is_list_query, is_question,
)


class SpyStore:
    """Records every search and answers from a canned list per min_score."""

    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    def search(self, vector, top_k, min_score, type_filter):
        self.calls.append((top_k, min_score, type_filter))
        return list(self.answers.get(min_score, []))


def _hit(text, score=0.5):
    return SearchResult(id=text, score=score, metadata={'content': text, 'type': 'document'})


def test_plan_selection():
    planner = RetrievalPlanner(SpyStore())

    assert planner.plan("What is the output voltage?") == STRICT_BROAD
    assert planner.plan("list the error codes") == STRICT_BROAD
    assert planner.plan("heater pins") == STRICT_BROAD
    assert planner.plan("output voltage") == STRICT_NARROW


def test_cue_helpers():
    assert is_list_query("What are the supported modes?")
    assert not is_list_query("output voltage")
    assert is_question("explain pairing")
    assert not is_question("pairing mode")


def test_strict_hit_needs_no_retry():
    store = SpyStore({0.15: [_hit("a")]})
    outcome = RetrievalPlanner(store).retrieve([0.0], STRICT_BROAD)

    assert [p.content for p in outcome.passages] == ["a"]
    assert outcome.attempts == [STRICT_BROAD]
    assert store.calls == [(15, 0.15, "document")]


def test_empty_strict_retries_exactly_once_relaxed():
    store = SpyStore({0.1: [_hit("weak", 0.12)]})
    outcome = RetrievalPlanner(store).retrieve([0.0], STRICT_NARROW)

    assert outcome.attempts == [STRICT_NARROW, RELAXED]
    assert store.calls == [(8, 0.25, "document"), (15, 0.1, "document")]
    assert [p.content for p in outcome.passages] == ["weak"]


def test_both_attempts_empty():
    store = SpyStore()
    outcome = asyncio.run(RetrievalPlanner(store).aretrieve([0.0], STRICT_BROAD))

    assert outcome.is_empty
    assert len(store.calls) == 2

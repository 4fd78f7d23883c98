"""End-to-end chat engine tests with an offline model and in-memory index."""

import asyncio

import pytest

from conftest import FakeLLM
from support_assistant.errors import ConnectivityError, SessionNotFoundError
from support_assistant.rag.composer import APOLOGY_MESSAGE, REFUSAL_MESSAGE
from support_assistant.rag.engine import ChatEngine
from support_assistant.rag.intent import GREETING_RESPONSES, THANKS_RESPONSE
from support_assistant.retriever.vector_store import MemoryVectorStore


def _ready_engine(config_dict, **kwargs):
    engine = ChatEngine(config_dict, **kwargs)
    asyncio.run(engine.initialize())
    report = asyncio.run(engine.process_documents())
    assert report.ok
    assert sorted(report.files) == ["file_a.txt", "file_b.txt", "file_c.md"]
    return engine


@pytest.fixture
def engine(config_dict, fake_llm, keyword_embedder, memory_store):
    return _ready_engine(config_dict, llm=fake_llm, embedder=keyword_embedder,
                         vector_store=memory_store)


def test_answer_comes_from_the_matching_document(engine, fake_llm):
    session = engine.create_session()

    reply = asyncio.run(engine.send_message("What is the output voltage?", session.id))

    assert "5V" in reply.content
    assert reply.role == 'assistant'
    system_prompt = fake_llm.calls[-1]['messages'][0]['content']
    assert "The output voltage is 5V" in system_prompt
    assert "Bluetooth" not in system_prompt
    assert "file_b" not in system_prompt
    assert "file_b" not in reply.content


def test_only_system_and_question_reach_the_model(engine, fake_llm):
    session = engine.create_session()
    asyncio.run(engine.send_message("What is the output voltage?", session.id))
    asyncio.run(engine.send_message("How does bluetooth pairing start?", session.id))

    messages = fake_llm.calls[-1]['messages']
    assert [m['role'] for m in messages] == ['system', 'user']
    assert messages[1]['content'] == "How does bluetooth pairing start?"


def test_off_topic_question_gets_the_refusal_verbatim(engine, fake_llm):
    session = engine.create_session()

    reply = asyncio.run(engine.send_message("What's the weather like in Paris today?", session.id))

    assert reply.content == REFUSAL_MESSAGE
    assert fake_llm.calls == []


def test_greeting_and_thanks_skip_retrieval_and_model(engine, fake_llm):
    session = engine.create_session()

    hello = asyncio.run(engine.send_message("Hello there!", session.id))
    thanks = asyncio.run(engine.send_message("thanks a lot", session.id))

    assert hello.content in GREETING_RESPONSES
    assert thanks.content == THANKS_RESPONSE
    assert fake_llm.calls == []


def test_session_keeps_every_exchange_in_order(engine):
    session = engine.create_session("alice")
    asyncio.run(engine.send_message("Hello there!", session.id))
    asyncio.run(engine.send_message("What is the output voltage?", session.id))

    stored = engine.get_session(session.id)

    assert [m.role for m in stored.messages] == ['user', 'assistant', 'user', 'assistant']
    assert stored.messages[0].content == "Hello there!"
    assert stored.messages[2].content == "What is the output voltage?"
    assert "5V" in stored.messages[3].content
    assert stored.updated_at >= stored.created_at
    assert [s.id for s in engine.get_user_sessions("alice")] == [session.id]


def test_concurrent_messages_on_one_session_do_not_interleave(engine):
    session = engine.create_session()
    questions = ["What is the output voltage?", "Hello there!", "thanks a lot"]

    async def fire():
        return await asyncio.gather(*(engine.send_message(q, session.id) for q in questions))

    asyncio.run(fire())
    messages = engine.get_session(session.id).messages

    assert len(messages) == 6
    for user, assistant in zip(messages[0::2], messages[1::2]):
        assert (user.role, assistant.role) == ('user', 'assistant')
        if user.content == "Hello there!":
            assert assistant.content in GREETING_RESPONSES
        elif user.content == "thanks a lot":
            assert assistant.content == THANKS_RESPONSE
        else:
            assert "5V" in assistant.content
    assert sorted(m.content for m in messages[0::2]) == sorted(questions)


def test_model_failure_yields_apology(config_dict, keyword_embedder, memory_store):
    engine = _ready_engine(config_dict, llm=FakeLLM(fail=True), embedder=keyword_embedder,
                           vector_store=memory_store)
    session = engine.create_session()

    reply = asyncio.run(engine.send_message("What is the output voltage?", session.id))

    assert reply.content == APOLOGY_MESSAGE
    assert len(engine.get_session(session.id).messages) == 2


def test_unknown_session_is_rejected(engine):
    with pytest.raises(SessionNotFoundError):
        asyncio.run(engine.send_message("hello", "no-such-session"))


def test_streaming_reply_is_recorded(engine):
    session = engine.create_session()

    async def collect():
        return [d async for d in engine.stream_message("What is the output voltage?", session.id)]

    deltas = asyncio.run(collect())
    stored = engine.get_session(session.id).messages

    assert len(deltas) > 1
    assert "".join(deltas) == "The output voltage is 5V"
    assert [m.content for m in stored] == ["What is the output voltage?", "The output voltage is 5V"]


def test_streaming_failure_yields_apology(config_dict, keyword_embedder, memory_store):
    engine = _ready_engine(config_dict, llm=FakeLLM(fail=True), embedder=keyword_embedder,
                           vector_store=memory_store)
    session = engine.create_session()

    async def collect():
        return [d async for d in engine.stream_message("What is the output voltage?", session.id)]

    assert asyncio.run(collect()) == [APOLOGY_MESSAGE]
    assert engine.get_session(session.id).messages[-1].content == APOLOGY_MESSAGE


def test_hash_embeddings_still_answer(config_dict, fake_llm):
    engine = _ready_engine(config_dict, llm=fake_llm)
    session = engine.create_session()

    reply = asyncio.run(engine.send_message("What is the output voltage?", session.id))

    assert engine.embedder.backend_active == "hash"
    assert "5V" in reply.content


def test_degraded_mode_without_vector_collection(config_dict, fake_llm, keyword_embedder):
    config_dict['vector_store'] = {'backend': 'chroma', 'collection': ''}
    engine = ChatEngine(config_dict, llm=fake_llm, embedder=keyword_embedder)
    asyncio.run(engine.initialize())
    session = engine.create_session()

    assert engine.vector_store is None
    assert engine.vector_error is not None
    assert asyncio.run(engine.send_message("What is the output voltage?", session.id)).content \
        == REFUSAL_MESSAGE
    assert asyncio.run(engine.send_message("hi", session.id)).content in GREETING_RESPONSES
    with pytest.raises(ConnectivityError):
        asyncio.run(engine.process_documents())

    status = asyncio.run(engine.get_service_status())
    assert status.chatbot_reachable is True
    assert status.vector_db_reachable is False
    assert status.documents_available is False


def test_service_status_with_documents(engine):
    status = asyncio.run(engine.get_service_status())

    assert status.to_dict() == {
        'chatbot_reachable': True,
        'vector_db_reachable': True,
        'embedding_ready': True,
        'documents_available': True,
    }


def test_exchanges_indexed_when_enabled(config_dict, fake_llm, keyword_embedder, memory_store):
    config_dict['sessions'] = {'index_messages': True}
    engine = _ready_engine(config_dict, llm=fake_llm, embedder=keyword_embedder,
                           vector_store=memory_store)
    session = engine.create_session("alice")

    asyncio.run(engine.send_message("What is the output voltage?", session.id, {'userId': 'alice'}))
    indexed = memory_store.search_messages([1.0] + [0.0] * 383, top_k=10, session_id=session.id)

    assert sorted(r.metadata['role'] for r in indexed) == ['assistant', 'user']
    assert all(r.metadata['user_id'] == 'alice' for r in indexed)

    assert asyncio.run(engine.delete_session(session.id)) is True
    assert memory_store.search_messages([1.0] + [0.0] * 383, top_k=10, session_id=session.id) == []
    assert engine.get_session(session.id) is None


def test_clear_index_empties_corpus(engine):
    asyncio.run(engine.clear_index())
    session = engine.create_session()

    reply = asyncio.run(engine.send_message("What is the output voltage?", session.id))

    assert reply.content == REFUSAL_MESSAGE


class _FailingSearchStore(MemoryVectorStore):
    def _query(self, vector, top_k, where):
        raise RuntimeError("index offline")


def test_search_failure_yields_apology(config_dict, fake_llm, keyword_embedder):
    store = _FailingSearchStore(dimension=384)
    store.initialize_index(384)
    engine = _ready_engine(config_dict, llm=fake_llm, embedder=keyword_embedder, vector_store=store)
    session = engine.create_session()

    reply = asyncio.run(engine.send_message("What is the output voltage?", session.id))

    assert reply.content == APOLOGY_MESSAGE
    assert fake_llm.calls == []
    assert [m.role for m in engine.get_session(session.id).messages] == ['user', 'assistant']


def test_audit_disabled_unless_configured(config_dict, fake_llm, keyword_embedder, memory_store):
    config_dict.pop('audit_log')
    engine = ChatEngine(config_dict, llm=fake_llm, embedder=keyword_embedder, vector_store=memory_store)

    assert engine.audit is None

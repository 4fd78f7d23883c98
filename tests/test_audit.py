"""Tests for structured audit logging."""

import asyncio
import json

from support_assistant.audit.logger import AuditLogger, get_audit_logger
from support_assistant.rag.engine import ChatEngine


def _events(audit, log_file):
    for handler in audit.logger.handlers:
        handler.flush()
    return [json.loads(line) for line in log_file.read_text().splitlines()]


def test_events_are_json_lines(tmp_path):
    log_file = tmp_path / "logs" / "audit.log"
    audit = AuditLogger(str(log_file))

    audit.log_query(query="q" * 500, num_results=2, execution_time_ms=3.5, plan="strict-broad")
    audit.log_model_inference(model_name="m", output_tokens=12, inference_time_ms=40.0)
    audit.log_error("answer_failed", "boom", {'session_id': 's1'})

    query, inference, error = _events(audit, log_file)
    assert query['event'] == 'rag_query'
    assert len(query['query']) == 200
    assert query['plan'] == 'strict-broad'
    assert inference['output_tokens'] == 12
    assert error == {**error, 'event': 'error', 'error_type': 'answer_failed', 'session_id': 's1'}
    assert all('timestamp' in e for e in (query, inference, error))


def test_disabled_audit_returns_none(tmp_path):
    assert get_audit_logger({'enabled': False}) is None
    assert isinstance(get_audit_logger({'file': str(tmp_path / 'a.log')}), AuditLogger)


def test_chat_audit_trail_never_contains_replies(config_dict, fake_llm, keyword_embedder,
                                                 memory_store, tmp_path):
    log_file = tmp_path / "chat-audit.log"
    audit = AuditLogger(str(log_file))
    engine = ChatEngine(config_dict, llm=fake_llm, embedder=keyword_embedder,
                        vector_store=memory_store, audit=audit)
    asyncio.run(engine.initialize())
    asyncio.run(engine.process_documents())
    session = engine.create_session()

    reply = asyncio.run(engine.send_message("What is the output voltage?", session.id))
    asyncio.run(engine.send_message("What's the weather like?", session.id))

    events = _events(audit, log_file)
    kinds = [e['event'] for e in events]
    queries = [e for e in events if e['event'] == 'rag_query']

    assert 'intent' in kinds and 'model_inference' in kinds
    assert [q['refused'] for q in queries] == [False, True]
    assert queries[1]['attempts'] == ['strict-broad', 'relaxed']
    assert reply.content not in log_file.read_text()

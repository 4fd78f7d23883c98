"""
Audit logging for ingestion and chat activity.

One JSON event per line. Assistant replies are never logged; user queries
are truncated.
"""

import logging
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


class AuditLogger:
    """
    Structured audit logger.

    Features:
    - JSON event logging
    - Retrieval tracking (plan, attempts, hit count, time)
    - Model inference tracking
    - Append-only log file
    """

    def __init__(self, log_file: str = "./audit.log", level: str = "INFO"):
        """
        Initialize audit logger.

        Args:
            log_file: Path to audit log
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        self.log_file = Path(log_file)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger("support_assistant.audit")
        self.logger.setLevel(getattr(logging, level))
        self.logger.propagate = False

        # File handler with JSON formatting
        fh = logging.FileHandler(self.log_file, mode='a')
        fh.setLevel(getattr(logging, level))

        # Plain formatter (each line is a JSON event)
        formatter = logging.Formatter('%(message)s')
        fh.setFormatter(formatter)

        # Remove existing handlers to avoid duplicates
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers = []
        self.logger.addHandler(fh)

    def _log_event(self, event_dict: Dict[str, Any]):
        """
        Log a structured event as JSON.

        Args:
            event_dict: Event data to log
        """
        event_dict['timestamp'] = datetime.utcnow().isoformat()
        self.logger.info(json.dumps(event_dict, default=str))

    def log_document_ingestion(self, source_name: str, doc_type: str,
                               num_chunks: int, **kwargs):
        """
        Log document ingestion event.

        Args:
            source_name: Ingested file name
            doc_type: Document type (pdf, markdown, text)
            num_chunks: Number of chunks created
            **kwargs: Additional metadata
        """
        event = {
            "event": "document_ingestion",
            "source_name": source_name,
            "doc_type": doc_type,
            "num_chunks": num_chunks,
            **kwargs
        }
        self._log_event(event)

    def log_intent(self, session_id: str, intent: str):
        self._log_event({"event": "intent", "session_id": session_id, "intent": intent})

    def log_query(self, query: str, num_results: int, execution_time_ms: float, **kwargs):
        """
        Log RAG query execution.

        Args:
            query: User query (truncated)
            num_results: Number of retrieved passages
            execution_time_ms: Retrieval time
            **kwargs: Additional metadata (plan, attempts, refused)
        """
        event = {
            "event": "rag_query",
            "query": query[:200],  # Truncate long queries
            "num_results": num_results,
            "execution_time_ms": execution_time_ms,
            **kwargs
        }
        self._log_event(event)

    def log_model_inference(self, model_name: str, output_tokens: int,
                            inference_time_ms: float, **kwargs):
        """
        Log model inference event.

        Args:
            model_name: Chat model name
            output_tokens: Completion token count
            inference_time_ms: Inference duration
            **kwargs: Additional metadata
        """
        event = {
            "event": "model_inference",
            "model": model_name,
            "output_tokens": output_tokens,
            "inference_time_ms": inference_time_ms,
            **kwargs
        }
        self._log_event(event)

    def log_error(self, error_type: str, message: str, context: Optional[Dict] = None):
        """
        Log system error.

        Args:
            error_type: Type of error
            message: Error message
            context: Optional context dictionary
        """
        event = {
            "event": "error",
            "error_type": error_type,
            "message": message,
            **(context or {})
        }
        self._log_event(event)


def get_audit_logger(config: Optional[Dict[str, Any]] = None) -> Optional[AuditLogger]:
    """
    Get configured audit logger instance.

    Args:
        config: Audit config dict with 'enabled', 'file' and 'level' keys

    Returns:
        AuditLogger instance, or None when auditing is disabled
    """
    if config is None:
        config = {'file': './audit.log', 'level': 'INFO'}

    if not config.get('enabled', True):
        return None

    return AuditLogger(
        log_file=config.get('file', './audit.log'),
        level=config.get('level', 'INFO')
    )

"""
Public request/response surface for UI and CLI callers.

Every call returns a ServiceResponse; nothing raises past this layer.
"""

from typing import Any, Callable, Dict, Optional
import logging

from support_assistant.config import AssistantConfig, ConfigError
from support_assistant.errors import ConnectivityError
from support_assistant.models import ServiceResponse, ServiceStatus
from support_assistant.rag.engine import ChatEngine

logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE = "Chat service not available"


def _reason(error: Exception) -> str:
    return str(error) or error.__class__.__name__


class AssistantService:
    """Wraps a ChatEngine; a failed startup leaves the service in 'unavailable' mode."""

    def __init__(self, engine: Optional[ChatEngine] = None):
        self.engine = engine

    @classmethod
    async def start(cls, config: AssistantConfig, **engine_kwargs) -> "AssistantService":
        """
        Build and initialize the engine. Startup failures are logged and
        yield a service whose calls fail with SERVICE_UNAVAILABLE.
        """
        try:
            engine = ChatEngine(config.as_dict(), **engine_kwargs)
            await engine.initialize()
        except (ConfigError, ConnectivityError, ImportError) as e:
            logger.error("Failed to initialize chat service: %s", e)
            return cls(engine=None)
        logger.info("Chat service initialized")
        return cls(engine=engine)

    @property
    def available(self) -> bool:
        return self.engine is not None

    async def create_session(self, user_id: Optional[str] = None) -> ServiceResponse:
        if not self.available:
            return ServiceResponse.fail(SERVICE_UNAVAILABLE)
        try:
            return ServiceResponse.ok(self.engine.create_session(user_id))
        except Exception as e:
            logger.error("Error creating chat session: %s", e)
            return ServiceResponse.fail(_reason(e))

    async def send_message(self, text: str, session_id: str,
                           options: Optional[Dict[str, Any]] = None) -> ServiceResponse:
        if not self.available:
            return ServiceResponse.fail(SERVICE_UNAVAILABLE)
        try:
            return ServiceResponse.ok(await self.engine.send_message(text, session_id, options))
        except Exception as e:
            logger.error("Error sending message: %s", e)
            return ServiceResponse.fail(_reason(e))

    async def stream_message(self, text: str, session_id: str,
                             options: Optional[Dict[str, Any]] = None,
                             on_delta: Optional[Callable[[str], None]] = None) -> ServiceResponse:
        """Stream the reply through on_delta; the response carries the full text."""
        if not self.available:
            return ServiceResponse.fail(SERVICE_UNAVAILABLE)
        parts = []
        try:
            async for delta in self.engine.stream_message(text, session_id, options):
                parts.append(delta)
                if on_delta:
                    on_delta(delta)
        except Exception as e:
            logger.error("Error streaming message: %s", e)
            return ServiceResponse.fail(_reason(e))
        return ServiceResponse.ok(''.join(parts))

    async def get_session(self, session_id: str) -> ServiceResponse:
        if not self.available:
            return ServiceResponse.fail(SERVICE_UNAVAILABLE)
        try:
            return ServiceResponse.ok(self.engine.get_session(session_id))
        except Exception as e:
            logger.error("Error getting session: %s", e)
            return ServiceResponse.fail(_reason(e))

    async def delete_session(self, session_id: str) -> ServiceResponse:
        if not self.available:
            return ServiceResponse.fail(SERVICE_UNAVAILABLE)
        try:
            await self.engine.delete_session(session_id)
            return ServiceResponse.ok()
        except Exception as e:
            logger.error("Error deleting session: %s", e)
            return ServiceResponse.fail(_reason(e))

    async def get_service_status(self) -> ServiceResponse:
        if not self.available:
            return ServiceResponse.ok(ServiceStatus())
        try:
            return ServiceResponse.ok(await self.engine.get_service_status())
        except Exception as e:
            logger.error("Error getting service status: %s", e)
            return ServiceResponse.fail(_reason(e))

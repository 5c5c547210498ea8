"""
Dashboard assistant.

Answers questions from the stored case data: each turn collects the
context from the record store, then goes through the chat proxy.
`AssistantSession` keeps one conversation and never raises for chat or
storage failures; errors become an assistant message prefixed "Error:".
"""

import logging
from typing import List, Optional

from .chat_proxy import ChatProxy
from .context_assembly import collect_context
from .errors import ChatError
from .notices import Notice, NoticeLevel, Notifier
from .schemas import AssistantResponse, ChatMessage, ChatRole
from .services import EntityServices

logger = logging.getLogger(__name__)

CONTEXT_UNAVAILABLE = "Could not load data for AI assistant."


async def answer_from_store(
    services: EntityServices,
    proxy: ChatProxy,
    messages: List[ChatMessage],
) -> AssistantResponse:
    """Assemble context from the store and ask the proxy. Raises ChatError."""
    assembled = await collect_context(services)
    response = await proxy.answer(messages, assembled.to_chat_context())
    return AssistantResponse(content=response.content, warnings=assembled.warnings)


class AssistantSession:
    def __init__(self, services: EntityServices, proxy: ChatProxy, notifier: Notifier):
        self.services = services
        self.proxy = proxy
        self.notifier = notifier
        self.messages: List[ChatMessage] = []
        self.is_loading = False

    async def send(self, text: str) -> Optional[ChatMessage]:
        """
        Send one user message. Returns the assistant reply, or None when the
        input is blank or a request is already in flight.
        """
        if not text or not text.strip() or self.is_loading:
            return None

        self.messages.append(ChatMessage(role=ChatRole.USER, content=text))
        self.is_loading = True
        try:
            assembled = await collect_context(self.services)
            if assembled.warnings:
                self.notifier.notify(Notice(NoticeLevel.ERROR, CONTEXT_UNAVAILABLE, " ".join(assembled.warnings)))
            response = await self.proxy.answer(list(self.messages), assembled.to_chat_context())
            reply = ChatMessage(role=ChatRole.ASSISTANT, content=response.content)
        except ChatError as e:
            logger.warning(f"Assistant request failed: {e.message}")
            reply = ChatMessage(role=ChatRole.ASSISTANT, content=f"Error: {e.message}")
        finally:
            self.is_loading = False

        self.messages.append(reply)
        return reply

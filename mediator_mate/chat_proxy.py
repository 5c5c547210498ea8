"""
Chat Proxy
==========

Relays a conversation plus a snapshot of case data to the completion API.

Per request:
1. validate   - non-empty list of {role, content} messages (400 otherwise)
2. authorize  - the API key must be configured (500, no outbound call)
3. compose    - one system message with today's date and the context block
4. dispatch   - a single completion call, fixed model and temperature
5. relay      - first choice's content, or 500 with a generic message
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from .config import Settings, get_settings
from .context_assembly import render_context_block
from .errors import ChatConfigurationError, ChatRequestError, UpstreamChatError
from .llm.completion_client import CompletionClient
from .schemas import ChatContext, ChatMessage, ChatRequest, ChatResponse

logger = logging.getLogger(__name__)

INVALID_MESSAGES = "Missing or invalid messages in request body"
INVALID_CONTEXT = "Invalid context in request body"
MISSING_API_KEY = "OpenAI API key not configured"

SYSTEM_INSTRUCTION = (
    "You are a helpful assistant for a mediation dashboard. "
    "Answer questions based ONLY on the provided context."
)
CLOSING_INSTRUCTION = "Answer the user's question based ONLY on the provided context above."


def format_prompt_date(day: date) -> str:
    """M/D/YYYY, no zero padding"""
    return f"{day.month}/{day.day}/{day.year}"


def build_system_prompt(
    context: Optional[Union[ChatContext, Dict[str, Any]]],
    today: Optional[date] = None,
    max_chars: Optional[int] = None,
) -> str:
    today = today or date.today()
    return (
        f"{SYSTEM_INSTRUCTION}\n"
        f"Current Date: {format_prompt_date(today)}\n\n"
        f"AVAILABLE CONTEXT:\n"
        f"{render_context_block(context, max_chars=max_chars)}\n\n"
        f"{CLOSING_INSTRUCTION}"
    )


def parse_chat_request(payload: Any) -> ChatRequest:
    """Validate a raw JSON body; raises ChatRequestError"""
    if not isinstance(payload, dict):
        raise ChatRequestError(INVALID_MESSAGES)

    messages = payload.get("messages")
    if not isinstance(messages, list) or not messages:
        raise ChatRequestError(INVALID_MESSAGES)

    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as e:
        details = e.errors(include_url=False, include_context=False, include_input=False)
        on_context = all(err["loc"] and err["loc"][0] == "context" for err in details)
        raise ChatRequestError(INVALID_CONTEXT if on_context else INVALID_MESSAGES, details=details) from e


class ChatProxy:
    """
    Stateless across requests. `client` defaults to a CompletionClient
    built from settings; inject one to point at a fake transport.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[CompletionClient] = None):
        self.settings = settings or get_settings()
        self.client = client or CompletionClient(
            api_key=self.settings.openai_api_key,
            model=self.settings.chat_model,
            base_url=self.settings.openai_base_url,
            timeout=self.settings.llm_timeout,
        )

    async def close(self):
        await self.client.close()

    @property
    def configured(self) -> bool:
        return bool(self.client.api_key)

    def compose(
        self,
        messages: List[ChatMessage],
        context: Optional[ChatContext],
        today: Optional[date] = None,
    ) -> List[Dict[str, str]]:
        max_chars = self.settings.chat_context_max_chars
        if max_chars is not None and max_chars <= 0:
            max_chars = None
        system = {"role": "system", "content": build_system_prompt(context, today, max_chars)}
        return [system] + [m.model_dump() for m in messages]

    async def handle(self, payload: Any, today: Optional[date] = None) -> ChatResponse:
        """Full pipeline for a raw request body"""
        request = parse_chat_request(payload)
        return await self.answer(request.messages, request.context, today)

    async def answer(
        self,
        messages: List[ChatMessage],
        context: Optional[ChatContext] = None,
        today: Optional[date] = None,
    ) -> ChatResponse:
        if not messages:
            raise ChatRequestError(INVALID_MESSAGES)

        if not self.configured:
            logger.error("OPENAI_API_KEY not configured; refusing chat request")
            raise ChatConfigurationError(MISSING_API_KEY)

        composed = self.compose(messages, context, today)
        result = await self.client.call(composed, temperature=self.settings.chat_temperature)
        if not result.success:
            raise UpstreamChatError(result.error or "Error processing your request")

        logger.info(
            f"Chat answered by {result.model} "
            f"({result.input_tokens} prompt / {result.output_tokens} completion tokens)"
        )
        return ChatResponse(content=result.content)

"""
Chat Context Assembly
=====================

Gathers the stored records the assistant answers from, and renders them
into the labelled text block embedded in the system prompt.

Collections are fetched concurrently; a collection that fails to load is
sent as empty and reported as a warning, the others are unaffected.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Union

from .schemas import ChatContext, Record
from .services import EntityServices

logger = logging.getLogger(__name__)

# (attribute on EntityServices / ChatContext, wording used in warnings)
COLLECTIONS = (
    ("contacts", "contacts"),
    ("notes", "notes"),
    ("tasks", "tasks"),
    ("case_files", "case files"),
    ("documents", "documents"),
)

# (ChatContext attribute, start label, end label, noun for the empty sentinel)
SECTIONS = (
    ("contacts", "CONTACTS", "CONTACTS", "contacts"),
    ("notes", "NOTES", "NOTES", "notes"),
    ("tasks", "TASKS", "TASKS", "tasks"),
    ("case_files", "CASE FILES (Metadata)", "CASE FILES (Metadata)", "case files"),
    ("documents", "DOCUMENTS", "DOCUMENTS", "documents"),
    ("intake_forms", "INTAKE FORMS (Placeholder)", "INTAKE FORMS", "intake form"),
)


@dataclass
class AssembledContext:
    """Records collected for one chat turn"""
    contacts: List[Record] = field(default_factory=list)
    notes: List[Record] = field(default_factory=list)
    tasks: List[Record] = field(default_factory=list)
    case_files: List[Record] = field(default_factory=list)
    documents: List[Record] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.warnings

    def to_chat_context(self) -> ChatContext:
        return ChatContext(**{
            attr: [r.to_wire() for r in getattr(self, attr)]
            for attr, _ in COLLECTIONS
        })


async def collect_context(services: EntityServices) -> AssembledContext:
    """Load every context collection concurrently"""
    results = await asyncio.gather(
        *(asyncio.to_thread(getattr(services, attr).get_all) for attr, _ in COLLECTIONS),
        return_exceptions=True,
    )

    assembled = AssembledContext()
    for (attr, noun), result in zip(COLLECTIONS, results):
        if isinstance(result, Exception):
            logger.warning(f"Chat context: {attr} unavailable: {result}")
            assembled.warnings.append(f"Could not load {noun} for the assistant.")
            continue
        setattr(assembled, attr, result)
    return assembled


def _truncate(body: str, max_chars: int) -> str:
    dropped = len(body) - max_chars
    return f"{body[:max_chars]}\n...[truncated {dropped} chars]"


def render_context_block(
    context: Optional[Union[ChatContext, Mapping[str, Any]]],
    max_chars: Optional[int] = None,
) -> str:
    """
    Render the labelled context sections.

    Non-empty collections are pretty-printed JSON; empty or missing ones get
    a "No <x> data provided." sentinel. `max_chars` caps each section body.
    """
    if context is None:
        context = ChatContext()
    elif not isinstance(context, ChatContext):
        context = ChatContext.model_validate(context)

    sections = []
    for attr, start, end, noun in SECTIONS:
        value = getattr(context, attr)
        if value:
            body = json.dumps(value, indent=2, ensure_ascii=False, default=str)
        else:
            body = f"No {noun} data provided."
        if max_chars and max_chars > 0 and len(body) > max_chars:
            body = _truncate(body, max_chars)
        sections.append(f"--- START {start} ---\n{body}\n--- END {end} ---")
    return "\n\n".join(sections)

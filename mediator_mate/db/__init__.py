"""
Database Package - SQLAlchemy record store backend
==================================================

One table per store; SQLite by default.
"""

from .models import (
    Base,
    Matter, Contact, Task, Note,
    Document, CaseFileMetadata,
    Template, TimelineEvent, Meeting,
)
from .session import get_db_session, init_db, get_engine, reset_engine

__all__ = [
    # Base
    "Base",
    # Case records
    "Matter", "Contact", "Task", "Note",
    # Documents
    "Document", "CaseFileMetadata",
    # Templates, timeline, meetings
    "Template", "TimelineEvent", "Meeting",
    # Session
    "get_db_session", "init_db", "get_engine", "reset_engine",
]

"""
SQLAlchemy Models for the Record Store
======================================

One table per store:
- matters, contacts, tasks, notes, documents
- case_files (file/folder metadata tree)
- templates, timeline, meetings

Column names match the record field names in `mediator_mate.schemas`, so a
row converts to and from its record without a mapping table. There are no
foreign keys between stores; references by case id or case file number are
advisory.

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import uuid
from sqlalchemy import (
    Column, String, Text, Integer, Date, DateTime, Index, JSON
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_uuid():
    return uuid.uuid4().hex


# =============================================================================
# CASE MODELS
# =============================================================================

class Matter(Base):
    """Mediation matter / case file"""
    __tablename__ = "matters"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    case_file_number = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    status = Column(String(32), nullable=False)
    matter_type = Column(String(100), nullable=True)
    client_name = Column(String(255), nullable=True)
    case_file_name = Column(String(255), nullable=True)
    parties = Column(JSON, default=list)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_matter_status", "status"),
        Index("ix_matter_case_file_number", "case_file_number"),
    )


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    company = Column(String(255), nullable=True)
    type = Column(String(32), nullable=False)
    case_file_numbers = Column(JSON, default=list)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_contact_name", "name"),
    )


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False)
    case_title = Column(String(255), nullable=True)
    case_id = Column(String(64), nullable=True)
    # Plain string: init_db rewrites legacy values in place
    status = Column(String(32), nullable=False)
    priority = Column(String(16), nullable=True)
    due_date = Column(Date, nullable=True)
    assigned_to = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_task_status", "status"),
        Index("ix_task_due_date", "due_date"),
    )


class Note(Base):
    __tablename__ = "notes"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    case_file_number = Column(String(32), nullable=False)
    title = Column(String(255), nullable=True)
    content = Column(Text, nullable=False, default="")
    tags = Column(JSON, default=list)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_note_case_file_number", "case_file_number"),
    )


# =============================================================================
# DOCUMENT MODELS
# =============================================================================

class Document(Base):
    """Generated or uploaded document"""
    __tablename__ = "documents"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    type = Column(String(100), nullable=False)
    content = Column(JSON, nullable=True)  # text or structured content
    case_id = Column(String(64), nullable=True)
    case_file_number = Column(String(32), nullable=True)
    storage_ref = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_document_case", "case_id"),
        Index("ix_document_type", "type"),
    )


class CaseFileMetadata(Base):
    """File/folder metadata; parent_id is None for root items"""
    __tablename__ = "case_files"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    case_id = Column(String(64), nullable=False)
    parent_id = Column(String(64), nullable=True)
    item_type = Column(String(16), nullable=False)  # file/folder
    name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)
    storage_path = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_case_file_case", "case_id"),
        Index("ix_case_file_name", "name"),
        Index("ix_case_file_parent", "case_id", "parent_id"),
    )


class Template(Base):
    __tablename__ = "templates"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    case_file_number = Column(String(32), nullable=False)
    category = Column(String(100), nullable=False, default="other")
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=False, default="")
    last_used = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_template_case_file_number", "case_file_number"),
    )


# =============================================================================
# TIMELINE / MEETINGS
# =============================================================================

class TimelineEvent(Base):
    __tablename__ = "timeline"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    case_id = Column(String(64), nullable=False)
    type = Column(String(32), nullable=False)  # meeting/form/clientDetails
    action = Column(String(32), nullable=False)  # created/updated/completed
    description = Column(Text, nullable=False)
    date = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_timeline_case", "case_id"),
        Index("ix_timeline_date", "date"),
    )


class Meeting(Base):
    __tablename__ = "meetings"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    case_id = Column(String(64), nullable=False)
    title = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=True)  # HH:mm
    duration = Column(String(50), nullable=True)
    location = Column(String(255), nullable=True)
    participants = Column(JSON, default=list)
    agenda = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_meeting_case", "case_id"),
    )

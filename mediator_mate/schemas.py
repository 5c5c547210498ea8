"""
Pydantic Schemas for MediatorMate Service
=========================================

Closed record types for every store, form schemas for the creation dialogs,
and the chat endpoint's request/response shapes.

Records are serialized with camelCase keys (`caseFileNumber`, `parentId`)
and accept either camelCase or snake_case on input. Unknown fields are
rejected.
"""

import re
import time
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


CASE_FILE_NUMBER_PATTERN = re.compile(r"^CF-\d{6}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def generate_record_id() -> str:
    return uuid.uuid4().hex


def generate_prefixed_id(prefix: str) -> str:
    """Id in the `<prefix>-<millis>-<random>` form used for notes and templates."""
    millis = int(time.time() * 1000)
    return f"{prefix}-{millis}-{uuid.uuid4().hex[:7]}"


def is_case_file_number(value: str) -> bool:
    return bool(CASE_FILE_NUMBER_PATTERN.match(value or ""))


# =============================================================================
# ENUMS
# =============================================================================

class MatterStatus(str, Enum):
    """Matter lifecycle status"""
    ACTIVE = "Active"
    OPEN = "Open"
    PENDING = "Pending"
    CLOSED = "Closed"


class ContactType(str, Enum):
    """Contact category"""
    NEW_ENQUIRY = "New Enquiry"
    CLIENT = "Client"
    SOLICITOR = "Solicitor"
    GENERAL = "General"


class TaskStatus(str, Enum):
    """
    Canonical task status.

    The older three-state vocabulary (Pending/In Progress/Completed) is not
    accepted; `LEGACY_TASK_STATUSES` maps it for explicit migration.
    """
    TODO = "Todo"
    IN_PROGRESS = "In Progress"
    DONE = "Done"
    BLOCKED = "Blocked"


LEGACY_TASK_STATUSES = {
    "Pending": TaskStatus.TODO.value,
    "Completed": TaskStatus.DONE.value,
}


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class CaseFileItemType(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class TimelineEventType(str, Enum):
    MEETING = "meeting"
    FORM = "form"
    CLIENT_DETAILS = "clientDetails"


class TimelineAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    COMPLETED = "completed"


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# =============================================================================
# RECORDS
# =============================================================================

class Record(BaseModel):
    """Base for all stored records"""
    id: str = Field(default_factory=generate_record_id, min_length=1, description="Unique record id")

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "forbid"
        use_enum_values = True
        validate_assignment = True
        validate_default = True

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_numeric_id(cls, value):
        # Numeric ids from older task data
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys"""
        return self.model_dump(mode="json", by_alias=True)


class Matter(Record):
    """A mediation engagement"""
    case_file_number: str = Field(..., min_length=1, description="Case file number, CF-######")
    title: str = Field(..., min_length=1)
    status: MatterStatus = MatterStatus.ACTIVE
    matter_type: Optional[str] = None
    client_name: Optional[str] = None
    case_file_name: Optional[str] = None
    parties: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Contact(Record):
    """Client, solicitor or other contact"""
    name: str = Field(..., min_length=1)
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    type: ContactType = ContactType.GENERAL
    case_file_numbers: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Task(Record):
    """Task within a case"""
    title: str = Field(..., min_length=1)
    case_title: Optional[str] = None
    case_id: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: Optional[TaskPriority] = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    assigned_to: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Note(Record):
    """Note attached to a matter by case file number"""
    case_file_number: str = Field(..., min_length=1)
    title: Optional[str] = None
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Document(Record):
    """Generated or uploaded document"""
    title: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, description="e.g. Agreement, PDF, Template")
    content: Optional[Union[str, Dict[str, Any]]] = None
    case_id: Optional[str] = None
    case_file_number: Optional[str] = None
    storage_ref: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CaseFileMetadata(Record):
    """File or folder in a case's file tree. Root items have no parent."""
    case_id: str = Field(..., min_length=1)
    parent_id: Optional[str] = None
    item_type: CaseFileItemType
    name: str = Field(..., min_length=1)
    file_type: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)
    storage_path: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Template(Record):
    """Template linked to a matter"""
    title: str = Field(..., min_length=1)
    case_file_number: str = Field(..., min_length=1)
    category: str = "other"
    description: Optional[str] = None
    content: str = ""
    last_used: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TimelineEvent(Record):
    case_id: str = Field(..., min_length=1)
    type: TimelineEventType
    action: TimelineAction
    description: str
    date: datetime


class Meeting(Record):
    """Scheduled mediation session"""
    case_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    date: date
    time: Optional[str] = None
    duration: Optional[str] = None
    location: Optional[str] = None
    participants: List[str] = Field(default_factory=list)
    agenda: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# INPUT SCHEMAS - Forms
# =============================================================================

class FormModel(BaseModel):
    """Base for dialog forms"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "forbid"
        use_enum_values = True
        str_strip_whitespace = True


def _check_case_file_number(value: str) -> str:
    if not is_case_file_number(value):
        raise ValueError("Case file number must be CF- followed by six digits")
    return value


class CreateMatterForm(FormModel):
    """Create matter dialog"""
    title: str = Field(..., min_length=2, description="Matter title")
    type: str = Field(..., min_length=1, description="Matter type, e.g. Divorce Mediation")
    status: MatterStatus = MatterStatus.ACTIVE
    client_name: str = Field(..., min_length=2)
    description: Optional[str] = None
    case_file_number: str
    case_file_name: str = Field(..., min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Smith v. Johnson",
                "type": "Divorce Mediation",
                "status": "Active",
                "clientName": "Anna Smith",
                "caseFileNumber": "CF-000123",
                "caseFileName": "Smith Johnson",
            }
        }

    @field_validator("case_file_number")
    @classmethod
    def _case_file_number_format(cls, value: str) -> str:
        return _check_case_file_number(value)

    def to_record(self) -> Matter:
        return Matter(
            case_file_number=self.case_file_number,
            title=self.title,
            status=self.status,
            matter_type=self.type,
            client_name=self.client_name,
            case_file_name=self.case_file_name,
            description=self.description,
            parties=[self.client_name],
        )


class CreateContactForm(FormModel):
    """Create contact dialog"""
    name: str = Field(..., min_length=2)
    email: str
    phone: str = Field(..., min_length=7)
    company: Optional[str] = None
    type: ContactType
    case_file_numbers: List[str] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def _email_format(cls, value: str) -> str:
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("case_file_numbers")
    @classmethod
    def _case_file_numbers_format(cls, values: List[str]) -> List[str]:
        return [_check_case_file_number(v.strip()) for v in values]

    def to_record(self) -> Contact:
        return Contact(
            name=self.name,
            email=self.email,
            phone=self.phone,
            company=self.company,
            type=self.type,
            case_file_numbers=self.case_file_numbers,
        )


class CreateTaskForm(FormModel):
    """Create task dialog"""
    title: str = Field(..., min_length=3)
    case_title: str = Field(..., min_length=3)
    case_id: Optional[str] = None
    priority: TaskPriority
    due_date: date
    status: TaskStatus = TaskStatus.TODO
    assigned_to: str = "Mediator"
    description: Optional[str] = None

    def to_record(self) -> Task:
        return Task(**self.model_dump())


class CreateNoteForm(FormModel):
    """Create note dialog; the case file number must belong to an existing matter"""
    title: str = Field(..., min_length=1)
    case_file_number: str = Field(..., min_length=1)
    content: str = ""

    def to_record(self) -> Note:
        return Note(
            id=generate_prefixed_id("note"),
            title=self.title,
            case_file_number=self.case_file_number,
            content=self.content,
            tags=[],
        )


class CreateTemplateForm(FormModel):
    """Link a template to a matter"""
    title: str = Field(..., min_length=3)
    case_file_number: str = Field(..., min_length=1)
    category: str = "other"

    def to_record(self) -> Template:
        return Template(
            id=generate_prefixed_id("template"),
            title=self.title,
            case_file_number=self.case_file_number,
            category=self.category,
            description="",
            content="",
            last_used=datetime.utcnow(),
        )


class CreateDocumentForm(FormModel):
    """Upload document dialog"""
    name: str = Field(..., min_length=2)
    type: str = Field(..., min_length=1, description="Word Document, PDF, Excel Spreadsheet, Text Document")
    case_file_number: str = Field(..., min_length=1)
    file: Optional[str] = Field(None, description="Storage reference of the uploaded file")

    def to_record(self) -> Document:
        return Document(
            title=self.name,
            type=self.type,
            case_file_number=self.case_file_number,
            storage_ref=self.file,
        )


class CreateMeetingForm(FormModel):
    """Schedule meeting dialog"""
    case_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    date: date
    time: str
    duration: Optional[str] = None
    location: Optional[str] = None
    participants: List[str] = Field(default_factory=list)
    agenda: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("time")
    @classmethod
    def _time_format(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Invalid time format (HH:mm)")
        return value

    def to_record(self) -> Meeting:
        return Meeting(**self.model_dump())


# =============================================================================
# INPUT/OUTPUT SCHEMAS - Chat
# =============================================================================

class ChatMessage(BaseModel):
    """Single conversation turn"""
    role: ChatRole
    content: str

    class Config:
        use_enum_values = True


class ChatContext(BaseModel):
    """Snapshot of local records sent along with a chat request"""
    contacts: Optional[List[Dict[str, Any]]] = None
    notes: Optional[List[Dict[str, Any]]] = None
    tasks: Optional[List[Dict[str, Any]]] = None
    case_files: Optional[List[Dict[str, Any]]] = Field(None, alias="caseFiles")
    documents: Optional[List[Dict[str, Any]]] = None
    intake_forms: Optional[Any] = Field(None, alias="intakeForms")

    class Config:
        populate_by_name = True


class ChatRequest(BaseModel):
    """Request body for POST /api/chat"""
    messages: List[ChatMessage] = Field(..., description="Conversation so far, oldest first")
    context: Optional[ChatContext] = None

    class Config:
        json_schema_extra = {
            "example": {
                "messages": [{"role": "user", "content": "What is the status of CF-000123?"}],
                "context": {
                    "caseFiles": [],
                    "notes": [{"caseFileNumber": "CF-000123", "content": "Parties agreed."}],
                },
            }
        }


class AssistantRequest(BaseModel):
    """Request body for POST /api/assistant (context is read from the store)"""
    messages: List[ChatMessage]


class ChatResponse(BaseModel):
    content: str = Field(..., description="Assistant answer text")


class AssistantResponse(ChatResponse):
    warnings: List[str] = Field(default_factory=list)


class ChatErrorResponse(BaseModel):
    error: str = Field(..., description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    chat_configured: bool = Field(..., description="Whether a completion API key is set")
    timestamp: datetime = Field(..., description="Current timestamp")


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(..., description="Task ids to delete")


def validation_errors(exc) -> Dict[str, str]:
    """Flatten a pydantic ValidationError into {field: message}"""
    fields: Dict[str, str] = {}
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "record"
        fields.setdefault(loc, err.get("msg", "Invalid value"))
    return fields

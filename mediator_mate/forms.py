"""
Form Submission
===============

Validates dialog input, checks the case-file reference where the dialog
requires one, writes through the entity service and reports the outcome
as a notice. Invalid input never reaches the store.

    submitter = FormSubmitter(services, notices)
    result = submitter.submit("note", {"title": "Call", "caseFileNumber": "CF-000123"})
    if not result.ok:
        result.field_errors  # {"caseFileNumber": "..."}
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Type

from pydantic import ValidationError

from . import schemas
from .errors import RecordValidationError, StoreError
from .notices import Notice, NoticeLevel, Notifier
from .services import EntityServices

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormSpec:
    form_type: Type[schemas.FormModel]
    service: str
    success_title: str
    failure_description: str
    success_description: Optional[Callable[[Any], str]] = None
    requires_case_file: bool = False


FORMS: Dict[str, FormSpec] = {
    "matter": FormSpec(
        schemas.CreateMatterForm, "matters",
        "Matter created successfully",
        "Failed to save matter. Please try again.",
    ),
    "contact": FormSpec(
        schemas.CreateContactForm, "contacts",
        "Contact created successfully",
        "Failed to save contact. Please try again.",
    ),
    "task": FormSpec(
        schemas.CreateTaskForm, "tasks",
        "Task created successfully",
        "Failed to save task. Please try again.",
    ),
    "note": FormSpec(
        schemas.CreateNoteForm, "notes",
        "Note created",
        "Failed to save note. Please try again.",
        success_description=lambda note: f'"{note.title}" has been added to your notes.',
        requires_case_file=True,
    ),
    "template": FormSpec(
        schemas.CreateTemplateForm, "templates",
        "Template Link Created",
        "Failed to save template link. Please try again.",
        success_description=lambda t: f'Template "{t.title}" linked to case {t.case_file_number}.',
        requires_case_file=True,
    ),
    "document": FormSpec(
        schemas.CreateDocumentForm, "documents",
        "Document uploaded successfully",
        "Failed to save document. Please try again.",
    ),
    "meeting": FormSpec(
        schemas.CreateMeetingForm, "meetings",
        "Session scheduled",
        "Failed to schedule session. Please try again.",
        success_description=lambda m: f"{m.title} scheduled for {m.date:%B %d, %Y}",
    ),
}


@dataclass
class FormResult:
    ok: bool
    record: Optional[schemas.Record] = None
    field_errors: Dict[str, str] = field(default_factory=dict)


class FormSubmitter:
    """Submit dialog forms against the entity services"""

    def __init__(self, services: EntityServices, notifier: Notifier):
        self.services = services
        self.notifier = notifier

    def _error(self, title: str, description: str) -> None:
        self.notifier.notify(Notice(NoticeLevel.ERROR, title, description))

    def submit(self, kind: str, data: Mapping[str, Any]) -> FormResult:
        spec = FORMS.get(kind)
        if spec is None:
            raise ValueError(f"Unknown form: {kind}")

        try:
            form = spec.form_type.model_validate(data)
        except ValidationError as e:
            field_errors = schemas.validation_errors(e)
            first = next(iter(field_errors.values()))
            self._error("Required field missing", first)
            return FormResult(ok=False, field_errors=field_errors)

        if spec.requires_case_file:
            try:
                known = self.services.matters.case_file_numbers()
            except StoreError as e:
                logger.error(f"Could not load case files for {kind} form: {e}")
                self._error("Error", "Failed to load case files for selection.")
                return FormResult(ok=False)
            if form.case_file_number not in known:
                message = f"No matter with case file number {form.case_file_number}"
                self._error("Required field missing", "Please select a Case File Number")
                return FormResult(ok=False, field_errors={"caseFileNumber": message})

        service = getattr(self.services, spec.service)
        try:
            record = service.add(form.to_record())
        except RecordValidationError as e:
            self._error("Error", spec.failure_description)
            return FormResult(ok=False, field_errors=e.errors)
        except StoreError as e:
            logger.error(f"Saving {kind} form failed: {e}")
            self._error("Error", spec.failure_description)
            return FormResult(ok=False)

        if kind == "meeting":
            self._record_meeting(record)

        description = spec.success_description(record) if spec.success_description else None
        self.notifier.notify(Notice(NoticeLevel.SUCCESS, spec.success_title, description))
        return FormResult(ok=True, record=record)

    def _record_meeting(self, meeting: schemas.Meeting) -> None:
        try:
            self.services.timeline.add_event(
                meeting.case_id,
                schemas.TimelineEventType.MEETING,
                schemas.TimelineAction.CREATED,
                f"Meeting scheduled: {meeting.title}",
            )
        except StoreError as e:
            logger.warning(f"Timeline entry for meeting {meeting.id} not saved: {e}")

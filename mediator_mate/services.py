"""
Entity Services
===============

Typed per-entity facades over the record store. Each service binds one
store name and record type and adds the lookups the feature screens use.
"""

from datetime import date, datetime
from typing import Generic, Iterable, List, Optional, TypeVar, Union

from . import schemas
from .store import RecordInput, RecordStore

T = TypeVar("T", bound=schemas.Record)


class EntityService(Generic[T]):
    """CRUD for one store"""

    store_name: str = ""

    def __init__(self, store: RecordStore):
        self.store = store

    def get_all(self) -> List[T]:
        return self.store.get_all(self.store_name)

    def get_by_id(self, record_id: str) -> Optional[T]:
        return self.store.get_by_id(self.store_name, record_id)

    def add(self, record: RecordInput) -> T:
        return self.store.add(self.store_name, record)

    def put(self, record: RecordInput) -> T:
        return self.store.put(self.store_name, record)

    def update(self, record_id: str, changes) -> T:
        return self.store.update(self.store_name, record_id, changes)

    def delete(self, record_id: str) -> bool:
        return self.store.delete(self.store_name, record_id)

    def delete_many(self, record_ids: Iterable[str]) -> int:
        return self.store.delete_many(self.store_name, record_ids)

    def _by_index(self, index: str, value) -> List[T]:
        return self.store.get_by_index(self.store_name, index, value)


class MatterService(EntityService[schemas.Matter]):
    store_name = "matters"

    def by_status(self, status: Union[schemas.MatterStatus, str]) -> List[schemas.Matter]:
        return self._by_index("by-status", status)

    def by_case_file_number(self, case_file_number: str) -> Optional[schemas.Matter]:
        matches = self._by_index("by-caseFileNumber", case_file_number)
        return matches[0] if matches else None

    def case_file_numbers(self) -> List[str]:
        """Distinct case file numbers of all matters, sorted"""
        return sorted({m.case_file_number for m in self.get_all()})


class ContactService(EntityService[schemas.Contact]):
    store_name = "contacts"

    def by_name(self, name: str) -> List[schemas.Contact]:
        return self._by_index("by-name", name)


class TaskService(EntityService[schemas.Task]):
    store_name = "tasks"

    def by_status(self, status: Union[schemas.TaskStatus, str]) -> List[schemas.Task]:
        return self._by_index("by-status", status)

    def due_on_or_before(self, day: Union[date, str]) -> List[schemas.Task]:
        """Tasks with a due date up to and including `day`, earliest first"""
        return self.store.get_by_range(self.store_name, "by-dueDate", upper=day)


class NoteService(EntityService[schemas.Note]):
    store_name = "notes"

    def for_case(self, case_file_number: str) -> List[schemas.Note]:
        return self._by_index("by-caseFileNumber", case_file_number)


class DocumentService(EntityService[schemas.Document]):
    store_name = "documents"

    def for_case(self, case_id: str) -> List[schemas.Document]:
        return self._by_index("by-caseId", case_id)

    def by_type(self, doc_type: str) -> List[schemas.Document]:
        return self._by_index("by-type", doc_type)


class CaseFileService(EntityService[schemas.CaseFileMetadata]):
    store_name = "caseFiles"

    def for_case(self, case_id: str) -> List[schemas.CaseFileMetadata]:
        return self._by_index("by-caseId", case_id)

    def children(self, case_id: str, parent_id: Optional[str] = None) -> List[schemas.CaseFileMetadata]:
        """Direct children of a folder; `parent_id=None` lists the root"""
        return self._by_index("by-parent", (case_id, parent_id))


class TemplateService(EntityService[schemas.Template]):
    store_name = "templates"

    def for_case(self, case_file_number: str) -> List[schemas.Template]:
        return self._by_index("by-caseFileNumber", case_file_number)


class TimelineService(EntityService[schemas.TimelineEvent]):
    store_name = "timeline"

    def add_event(
        self,
        case_id: str,
        event_type: Union[schemas.TimelineEventType, str],
        action: Union[schemas.TimelineAction, str],
        description: str,
        when: Optional[datetime] = None,
    ) -> schemas.TimelineEvent:
        return self.add(schemas.TimelineEvent(
            case_id=case_id,
            type=event_type,
            action=action,
            description=description,
            date=when or datetime.utcnow(),
        ))

    def for_case(self, case_id: str) -> List[schemas.TimelineEvent]:
        """Events for a case, newest first"""
        events = self._by_index("by-caseId", case_id)
        return sorted(events, key=lambda e: e.date, reverse=True)


class MeetingService(EntityService[schemas.Meeting]):
    store_name = "meetings"

    def for_case(self, case_id: str) -> List[schemas.Meeting]:
        meetings = self._by_index("by-caseId", case_id)
        return sorted(meetings, key=lambda m: (m.date, m.time or ""))


class EntityServices:
    """All entity services over one record store"""

    def __init__(self, store: Optional[RecordStore] = None):
        self.store = store or RecordStore()
        self.matters = MatterService(self.store)
        self.contacts = ContactService(self.store)
        self.tasks = TaskService(self.store)
        self.notes = NoteService(self.store)
        self.documents = DocumentService(self.store)
        self.case_files = CaseFileService(self.store)
        self.templates = TemplateService(self.store)
        self.timeline = TimelineService(self.store)
        self.meetings = MeetingService(self.store)

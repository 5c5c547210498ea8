"""
Tasks feature context.

In-memory task list plus a selection, kept in step with the record store:
every mutation is persisted first and only then applied to `tasks`.
Failures are reported as notices and leave memory untouched.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

from ..errors import StoreError
from ..notices import Notice, NoticeLevel, Notifier
from ..schemas import Task, TaskStatus
from ..services import TaskService

logger = logging.getLogger(__name__)


@dataclass
class TaskDownload:
    """Single task serialized for a client-side save"""
    filename: str
    content: str
    media_type: str = "application/json"


WHITESPACE_RUN = re.compile(r"\s+")


def download_filename(title: str) -> str:
    return WHITESPACE_RUN.sub("_", title) + "_task.json"


class TasksContext:
    def __init__(self, service: TaskService, notifier: Notifier):
        self.service = service
        self.notifier = notifier
        self.tasks: List[Task] = []
        self.selected_ids: List[str] = []

    def _notify(self, level: NoticeLevel, title: str, description: Optional[str] = None) -> None:
        self.notifier.notify(Notice(level, title, description))

    def _failed(self, title: str, description: str, exc: Exception) -> None:
        logger.error(f"{title}: {exc}")
        self._notify(NoticeLevel.ERROR, title, description)

    def _find(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def _replace(self, task: Task) -> None:
        for i, existing in enumerate(self.tasks):
            if existing.id == task.id:
                self.tasks[i] = task
                return
        self.tasks.append(task)

    def reload(self) -> bool:
        """Replace the in-memory list with what the store holds"""
        try:
            self.tasks = self.service.get_all()
        except StoreError as e:
            self._failed("Error Loading Tasks", "Could not load tasks.", e)
            return False
        known = {t.id for t in self.tasks}
        self.selected_ids = [i for i in self.selected_ids if i in known]
        return True

    def toggle_completion(self, task_id: str) -> Optional[Task]:
        """Flip Done <-> Todo. Any other status counts as not done."""
        task = self._find(task_id)
        if task is None:
            return None

        new_status = TaskStatus.TODO if task.status == TaskStatus.DONE else TaskStatus.DONE
        try:
            updated = self.service.update(task_id, {"status": new_status})
        except StoreError as e:
            self._failed("Error Updating Task", "Could not update the task.", e)
            return None

        self._replace(updated)
        verb = "completed" if new_status == TaskStatus.DONE else "reopened"
        self._notify(NoticeLevel.SUCCESS, f"Task {verb}: {updated.title}")
        return updated

    def toggle_select(self, task_id: str) -> bool:
        """Returns True when the task is now selected"""
        if task_id in self.selected_ids:
            self.selected_ids.remove(task_id)
            return False
        self.selected_ids.append(task_id)
        return True

    def save(self, task: Union[Task, Mapping[str, Any]]) -> Optional[Task]:
        """Insert or replace by id"""
        try:
            saved = self.service.put(task)
        except StoreError as e:
            self._failed("Error Saving Task", "Could not save the task.", e)
            return None
        self._replace(saved)
        return saved

    def delete(self, task_id: str) -> bool:
        try:
            existed = self.service.delete(task_id)
        except StoreError as e:
            self._failed("Error Deleting Task", "Could not delete the task.", e)
            return False

        self.tasks = [t for t in self.tasks if t.id != task_id]
        self.selected_ids = [i for i in self.selected_ids if i != task_id]
        if existed:
            self._notify(NoticeLevel.SUCCESS, "Task deleted successfully")
        return existed

    def bulk_delete(self) -> int:
        """Delete exactly the selected tasks and clear the selection"""
        ids = list(self.selected_ids)
        if not ids:
            return 0
        try:
            deleted = self.service.delete_many(ids)
        except StoreError as e:
            self._failed("Error Deleting Tasks", "Could not delete the selected tasks.", e)
            return 0

        selected = set(ids)
        self.tasks = [t for t in self.tasks if t.id not in selected]
        self.selected_ids = []
        self._notify(NoticeLevel.SUCCESS, f"{len(ids)} tasks deleted")
        return deleted

    def share(self, task_id: str) -> bool:
        task = self._find(task_id)
        if task is None:
            return False
        self._notify(NoticeLevel.SUCCESS, f"Shared task: {task.title}")
        return True

    def download(self, task_id: str) -> Optional[TaskDownload]:
        task = self._find(task_id)
        if task is None:
            return None
        download = TaskDownload(
            filename=download_filename(task.title),
            content=json.dumps(task.to_wire(), indent=2),
        )
        self._notify(NoticeLevel.SUCCESS, f"Downloaded task: {task.title}")
        return download

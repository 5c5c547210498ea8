"""
Case file metadata context.

File and folder metadata for one case, loaded from the record store.
Nothing here raises: failures are kept in `error` and reported as notices.
Deleting a folder does not delete its children; `tree()` shows items whose
parent no longer exists at the root. Moving a folder inside itself is refused.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..errors import RecordValidationError, StoreError
from ..notices import Notice, NoticeLevel, Notifier
from ..schemas import CaseFileMetadata
from ..services import CaseFileService

logger = logging.getLogger(__name__)


class CaseFileMetadataContext:
    def __init__(self, service: CaseFileService, notifier: Notifier, case_id: Optional[str]):
        self.service = service
        self.notifier = notifier
        self.case_id = case_id
        self.metadata: List[CaseFileMetadata] = []
        self.is_loading = False
        self.error: Optional[str] = None

    def _fail(self, title: str, description: str, exc: Exception) -> None:
        logger.error(f"{title} (case {self.case_id}): {exc}")
        self.error = description
        self.notifier.notify(Notice(NoticeLevel.ERROR, title, description))

    def refresh(self) -> None:
        if not self.case_id:
            self.metadata = []
            return

        self.is_loading = True
        self.error = None
        try:
            self.metadata = self.service.for_case(self.case_id)
        except StoreError as e:
            self.metadata = []
            self._fail("Error Loading Files", "Could not load file information from local storage.", e)
        finally:
            self.is_loading = False

    def add(self, item: Mapping[str, Any]) -> Optional[str]:
        """Store a new file or folder under this case; returns its id"""
        if not self.case_id:
            self._fail("Error Adding File", "No case selected.", ValueError("case_id is not set"))
            return None

        values = {k: v for k, v in item.items() if k not in ("caseId", "case_id")}
        values["case_id"] = self.case_id
        try:
            record = self.service.add(values)
        except (RecordValidationError, StoreError) as e:
            self._fail("Error Adding File", "Could not save file information locally.", e)
            return None

        self.metadata.append(record)
        self.notifier.notify(Notice(NoticeLevel.SUCCESS, "File Added", f"{record.name} added."))
        return record.id

    def update(self, item_id: str, changes: Mapping[str, Any]) -> bool:
        for key in ("parentId", "parent_id"):
            if key in changes and self._is_ancestor(item_id, changes[key], {m.id: m.parent_id for m in self.metadata}):
                self._fail(
                    "Error Updating File",
                    "A folder cannot be moved inside itself.",
                    ValueError(f"{item_id} would become its own ancestor"),
                )
                return False

        try:
            record = self.service.update(item_id, changes)
        except StoreError as e:
            self._fail("Error Updating File", "Could not update file information locally.", e)
            return False

        self.metadata = [record if m.id == item_id else m for m in self.metadata]
        self.notifier.notify(Notice(NoticeLevel.SUCCESS, "File Updated", "File information updated."))
        return True

    def delete(self, item_id: str) -> bool:
        """Returns False when the item does not exist or could not be removed"""
        try:
            deleted = self.service.delete(item_id)
        except StoreError as e:
            self._fail("Error Deleting File", "Could not remove file information locally.", e)
            return False

        self.metadata = [m for m in self.metadata if m.id != item_id]
        if deleted:
            self.notifier.notify(Notice(NoticeLevel.SUCCESS, "File Deleted", "File information removed."))
        else:
            logger.info(f"Case file item {item_id} already gone")
        return deleted

    def tree(self) -> List[Dict[str, Any]]:
        """
        Nested view of the loaded metadata.

        Each node is the record's wire dict plus a `children` list; folders
        sort before files, then by name. Items whose parent is missing, or
        that are their own ancestor, are placed at the root.
        """
        parents = {m.id: m.parent_id for m in self.metadata}
        nodes = {m.id: {**m.to_wire(), "children": []} for m in self.metadata}
        roots: List[Dict[str, Any]] = []
        for m in self.metadata:
            parent = nodes.get(m.parent_id) if m.parent_id else None
            if parent is not None and self._is_ancestor(m.id, m.parent_id, parents):
                parent = None
            (parent["children"] if parent is not None else roots).append(nodes[m.id])

        def sort(items: List[Dict[str, Any]]) -> None:
            items.sort(key=lambda n: (n["itemType"] != "folder", n["name"].lower()))
            for node in items:
                sort(node["children"])

        sort(roots)
        return roots

    @staticmethod
    def _is_ancestor(item_id: str, parent_id: Optional[str], parents: Mapping[str, Optional[str]]) -> bool:
        """True when `item_id` is reached walking up from `parent_id`"""
        seen = set()
        while parent_id and parent_id not in seen:
            if parent_id == item_id:
                return True
            seen.add(parent_id)
            parent_id = parents.get(parent_id)
        return False

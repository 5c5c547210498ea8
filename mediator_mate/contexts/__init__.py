"""
Feature contexts: in-memory views over the record store for one screen.
"""

from .case_files import CaseFileMetadataContext
from .tasks import TaskDownload, TasksContext

__all__ = ["CaseFileMetadataContext", "TaskDownload", "TasksContext"]

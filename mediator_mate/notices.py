"""
User-facing notices (the dashboard's toasts).

Feature contexts, forms and the assistant report outcomes through a
`Notifier` instead of raising. `NoticeLog` keeps them in memory and
mirrors each one to the log.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


@dataclass
class Notice:
    level: NoticeLevel
    title: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        data = asdict(self)
        data["level"] = self.level.value
        return data


class Notifier(Protocol):
    def notify(self, notice: Notice) -> None:
        ...


class NoticeLog:
    """In-memory notifier"""

    def __init__(self):
        self.notices: List[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        message = f"{notice.title}: {notice.description}" if notice.description else notice.title
        if notice.level == NoticeLevel.ERROR:
            logger.warning(message)
        else:
            logger.info(message)

    def success(self, title: str, description: Optional[str] = None) -> None:
        self.notify(Notice(NoticeLevel.SUCCESS, title, description))

    def info(self, title: str, description: Optional[str] = None) -> None:
        self.notify(Notice(NoticeLevel.INFO, title, description))

    def error(self, title: str, description: Optional[str] = None) -> None:
        self.notify(Notice(NoticeLevel.ERROR, title, description))

    @property
    def errors(self) -> List[Notice]:
        return [n for n in self.notices if n.level == NoticeLevel.ERROR]

    def drain(self) -> List[Notice]:
        """Return and forget collected notices"""
        notices, self.notices = self.notices, []
        return notices

"""In-process task store for tests and single-process runs."""

import copy
import threading
from typing import Optional

from queue_agent.services.store import Document, with_task_id


def _matches(document: Document, filter: Document) -> bool:
    # A None filter value matches a missing field
    return all(document.get(key) == value for key, value in filter.items())


class MemoryTaskStore:
    """Keeps queues as lists of documents in insertion order."""

    def __init__(self):
        self.queues: dict[str, list[Document]] = {}
        self._lock = threading.Lock()

    def find(self, queue: str, filter: Optional[Document] = None) -> list[Document]:
        filter = filter or {}
        with self._lock:
            return [
                copy.deepcopy(doc)
                for doc in self.queues.get(queue, [])
                if _matches(doc, filter)
            ]

    def update_one(self, queue: str, filter: Document, fields: Document) -> int:
        with self._lock:
            for doc in self.queues.get(queue, []):
                if _matches(doc, filter):
                    doc.update(copy.deepcopy(fields))
                    return 1
        return 0

    def insert(self, queue: str, documents: list[Document]) -> list[Document]:
        stored = [with_task_id(copy.deepcopy(doc)) for doc in documents]
        with self._lock:
            self.queues.setdefault(queue, []).extend(stored)
        return copy.deepcopy(stored)

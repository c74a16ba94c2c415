"""Task store interface shared by the Supabase and in-memory stores."""

from typing import Any, Optional, Protocol

from ulid import ULID

from queue_agent.models.task import TASK_ID_FIELD


Document = dict[str, Any]


class TaskStore(Protocol):
    """Document collection access the agent needs.

    ``update_one`` must be atomic for a single document; it is the only
    concurrency primitive agents rely on.
    """

    def find(self, queue: str, filter: Optional[Document] = None) -> list[Document]:
        """Return documents matching every key of ``filter`` in natural order."""
        ...

    def update_one(self, queue: str, filter: Document, fields: Document) -> int:
        """Set ``fields`` on the first document matching ``filter``; return the update count."""
        ...

    def insert(self, queue: str, documents: list[Document]) -> list[Document]:
        """Insert documents and return them as stored."""
        ...


def generate_task_id() -> str:
    """Generate a text-based, time-ordered task ID (ULID format)."""
    return str(ULID())


def with_task_id(document: Document) -> Document:
    document = dict(document)
    if not document.get(TASK_ID_FIELD):
        document[TASK_ID_FIELD] = generate_task_id()
    return document

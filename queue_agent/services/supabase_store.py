"""Supabase-backed task store.

Each queue is a table. The core task fields are columns so the claim
update is a single ``UPDATE ... WHERE id = ...`` statement; everything
else a producer or handler writes lives in the ``data`` jsonb column.
See ``sql/task_queue.sql`` for the table layout.
"""

from typing import Any, Optional

from pydantic_core import to_jsonable_python
from supabase import Client, create_client
from supabase.client import ClientOptions

from queue_agent.models.agent import StoreSettings
from queue_agent.models.task import CORE_FIELDS, TASK_ID_FIELD
from queue_agent.services.store import Document, with_task_id
from queue_agent.utils.errors import StoreError
from queue_agent.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

DATA_COLUMN = "data"


def split_document(document: Document) -> tuple[Document, Document]:
    """Split a document into (column values, payload values)."""
    columns = {}
    payload = {}
    for key, value in document.items():
        if key in CORE_FIELDS:
            columns[key] = value
        else:
            payload[key] = value
    return to_jsonable_python(columns), to_jsonable_python(payload)


def row_to_document(row: dict[str, Any]) -> Document:
    document = dict(row.get(DATA_COLUMN) or {})
    document.update({key: value for key, value in row.items() if key != DATA_COLUMN})
    return document


def apply_filter(query, filter: Optional[Document]):
    """Apply an equality filter to a PostgREST query builder."""
    columns, payload = split_document(filter or {})
    for key, value in columns.items():
        if value is None:
            query = query.is_(key, "null")
        elif isinstance(value, bool):
            query = query.is_(key, "true" if value else "false")
        else:
            query = query.eq(key, value)
    # data @> {"k": null} would miss rows without the key at all
    contained = {}
    for key, value in payload.items():
        if value is None:
            query = query.is_(f"{DATA_COLUMN}->>{key}", "null")
        else:
            contained[key] = value
    if contained:
        query = query.contains(DATA_COLUMN, contained)
    return query


class SupabaseTaskStore:
    """Task store over a supabase-py client."""

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def connect(cls, settings: StoreSettings) -> "SupabaseTaskStore":
        """Create a Supabase client from explicit settings."""
        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )
        try:
            client = create_client(settings.url, settings.key, options)
        except Exception as e:
            raise StoreError(f"Failed to connect to Supabase: {e}") from e
        logger.info("Supabase task store connected", url=settings.url)
        return cls(client)

    def find(self, queue: str, filter: Optional[Document] = None) -> list[Document]:
        try:
            query = apply_filter(self.client.table(queue).select("*"), filter)
            result = query.order(TASK_ID_FIELD).execute()
        except Exception as e:
            raise StoreError(f"Failed to find tasks in {queue}: {e}") from e
        return [row_to_document(row) for row in result.data or []]

    def update_one(self, queue: str, filter: Document, fields: Document) -> int:
        columns, payload = split_document(fields)
        conditions = dict(filter)

        try:
            if payload or TASK_ID_FIELD not in conditions:
                # Pin the update to one row and merge payload into its data
                query = apply_filter(self.client.table(queue).select(f"{TASK_ID_FIELD},{DATA_COLUMN}"), filter)
                rows = query.order(TASK_ID_FIELD).limit(1).execute().data or []
                if not rows:
                    return 0
                conditions[TASK_ID_FIELD] = rows[0][TASK_ID_FIELD]
                if payload:
                    columns[DATA_COLUMN] = {**(rows[0].get(DATA_COLUMN) or {}), **payload}

            result = apply_filter(self.client.table(queue).update(columns), conditions).execute()
        except Exception as e:
            raise StoreError(f"Failed to update task in {queue}: {e}") from e

        return len(result.data or [])

    def insert(self, queue: str, documents: list[Document]) -> list[Document]:
        rows = []
        for document in documents:
            columns, payload = split_document(with_task_id(document))
            columns[DATA_COLUMN] = payload
            rows.append(columns)

        try:
            result = self.client.table(queue).insert(rows).execute()
        except Exception as e:
            raise StoreError(f"Failed to insert tasks into {queue}: {e}") from e

        if len(result.data or []) != len(rows):
            raise StoreError(f"Failed to insert tasks into {queue}: no data returned")
        return [row_to_document(row) for row in result.data]

"""Task models - documents in a queue and the results handlers return for them."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from queue_agent.utils.errors import HandlerResultError, TaskValidationError


TASK_ID_FIELD = "id"

# Fields written by the claim protocol, never by the producer of a task
CLAIM_FIELDS = frozenset({
    "agent_host",
    "started_at",
    "complete",
    "completed_at",
    "error_encountered",
})

CORE_FIELDS = frozenset({TASK_ID_FIELD, "agent_name", "ready"}) | CLAIM_FIELDS

# Set once by the producer or the claim; a terminal update never rewrites them
IMMUTABLE_FIELDS = frozenset({TASK_ID_FIELD, "agent_name", "ready", "agent_host", "started_at"})


class Task(BaseModel):
    """A task document. Fields beyond the core ones are the task payload."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(None, description="Store-assigned task ID")
    agent_name: str = Field(..., min_length=1, description="Name of the agent allowed to claim the task")
    ready: bool = Field(default=True, description="True while the task may be claimed")
    agent_host: Optional[str] = Field(None, description="Host of the agent that claimed the task")
    started_at: Optional[datetime] = None
    complete: Optional[bool] = None
    completed_at: Optional[datetime] = None
    error_encountered: Optional[bool] = None

    @classmethod
    def from_document(cls, document: dict) -> "Task":
        return cls.model_validate(document)

    @property
    def payload(self) -> dict[str, Any]:
        """Caller-defined fields (everything the claim protocol does not own)."""
        return dict(self.model_extra or {})

    @property
    def is_claimed(self) -> bool:
        return not self.ready and self.agent_host is not None

    @property
    def is_stalled(self) -> bool:
        """Claimed but never given a terminal update."""
        return not self.ready and not self.complete


def new_task_document(agent_name: str, payload: Optional[dict[str, Any]] = None, ready: bool = True) -> dict[str, Any]:
    """Shape a producer's task document.

    The payload may carry any JSON-compatible values but may not set
    fields that belong to the claim protocol.
    """
    payload = dict(payload or {})
    reserved = sorted(set(payload) & CORE_FIELDS)
    if reserved:
        raise TaskValidationError(f"payload may not set reserved fields: {', '.join(reserved)}")

    document = {"agent_name": agent_name, "ready": ready}
    document.update(payload)

    # Validates agent_name; payload values are kept as given
    try:
        Task.from_document(document)
    except ValidationError as e:
        raise TaskValidationError(f"Invalid task for agent {agent_name!r}: {e}") from e
    return document


class TaskResult(BaseModel):
    """Outcome of a task handler run."""
    success: bool
    update: Optional[dict[str, Any]] = None

    @field_validator("success", mode="before")
    @classmethod
    def _strict_success(cls, value: Any) -> Any:
        if not isinstance(value, bool):
            raise ValueError("success must be a bool")
        return value

    @classmethod
    def from_handler(cls, value: Any) -> "TaskResult":
        """Normalize a handler return value.

        Handlers may return ``True``/``False``, ``(success,)``,
        ``(success, update)`` or a ``TaskResult``.
        """
        if isinstance(value, TaskResult):
            return value
        if isinstance(value, bool):
            return cls(success=value)
        if isinstance(value, (tuple, list)) and 1 <= len(value) <= 2:
            try:
                return cls(success=value[0], update=value[1] if len(value) == 2 else None)
            except ValidationError as e:
                raise HandlerResultError(f"Invalid handler result {value!r}: {e}") from e
        raise HandlerResultError(
            f"Handler must return a bool, (success, update) or TaskResult, got {type(value).__name__}"
        )

    def ignored_fields(self) -> list[str]:
        """Update keys the terminal update will not write."""
        return sorted(set(self.update or {}) & IMMUTABLE_FIELDS)

    def terminal_fields(self, completed_at: datetime) -> dict[str, Any]:
        """Fields for the terminal update.

        Identity and claim fields in the handler's update are dropped, and
        the terminal markers are applied last so they always win.
        """
        fields = {
            key: value
            for key, value in (self.update or {}).items()
            if key not in IMMUTABLE_FIELDS
        }
        fields["complete"] = True
        fields["error_encountered"] = not self.success
        fields["completed_at"] = completed_at
        return fields

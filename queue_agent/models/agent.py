"""Agent configuration and run counters."""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from queue_agent.utils.errors import ConfigurationError


DEFAULT_SLEEP_BETWEEN = 5


class StoreSettings(BaseModel):
    """Connection parameters for the Supabase task store."""
    url: str = Field(..., min_length=1, description="Supabase project URL")
    key: str = Field(..., min_length=1, description="Service role key")


class AgentConfig(BaseModel):
    """Identity and polling configuration for one agent."""
    name: str = Field(..., description="Agent name tasks are addressed to")
    queue: str = Field(..., description="Queue (table) holding the tasks")
    sleep_between: float = Field(default=DEFAULT_SLEEP_BETWEEN, ge=0, description="Seconds to sleep between process attempts")
    guard_claim: bool = Field(default=False, description="Require ready=true in the claim update filter")
    store: Optional[StoreSettings] = None

    @field_validator("name", "queue", mode="before")
    @classmethod
    def _required_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
        if not value:
            raise ValueError("must be a non-empty string")
        return value

    @field_validator("sleep_between", mode="before")
    @classmethod
    def _default_sleep(cls, value: Any) -> Any:
        return DEFAULT_SLEEP_BETWEEN if value is None else value

    @classmethod
    def build(cls, attributes: Union["AgentConfig", dict, None]) -> "AgentConfig":
        """Turn a config object or attribute mapping into a validated config."""
        if attributes is None:
            raise ConfigurationError("agent configuration with name and queue is required")
        if isinstance(attributes, AgentConfig):
            return attributes
        try:
            return cls.model_validate(attributes)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            raise ConfigurationError(f"invalid agent configuration ({fields}): {e}") from e


class AgentLog(BaseModel):
    """Counters accumulated by one agent for the lifetime of its process."""
    tasks_processed: int = 0
    failed_tasks: int = 0

    def __getitem__(self, key: str) -> int:
        if key not in type(self).model_fields:
            raise KeyError(key)
        return getattr(self, key)

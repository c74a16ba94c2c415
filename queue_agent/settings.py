"""Process bootstrap - environment lookup lives here, never in the agent itself."""

import os
from typing import Optional

from queue_agent.models.agent import AgentConfig, StoreSettings
from queue_agent.services.agent import Agent
from queue_agent.utils.errors import ConfigurationError
from queue_agent.utils.logging_config import LoggingConfig


def load_store_settings() -> StoreSettings:
    """Read Supabase connection parameters from the environment."""
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

    if not url or not key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

    return StoreSettings(url=url, key=key)


def create_agent(
    name: str,
    queue: str,
    sleep_between: Optional[float] = None,
    guard_claim: bool = False,
    setup_logging: bool = True,
) -> Agent:
    """Build an agent for a worker process from environment configuration."""
    if setup_logging:
        LoggingConfig.setup_logging()

    config = AgentConfig.build({
        "name": name,
        "queue": queue,
        "sleep_between": sleep_between,
        "guard_claim": guard_claim,
        "store": load_store_settings(),
    })
    return Agent(config)

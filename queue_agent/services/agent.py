"""Queue agent - claims tasks addressed to it, runs a handler, records the outcome.

Agents never talk to each other directly. A producer (another agent or a
human) inserts a document with ``agent_name`` and ``ready=True`` into a
queue; the agent with that name claims it by flipping ``ready`` to false
and stamping ``agent_host``/``started_at``, hands the pre-claim snapshot
to its handler, and finishes with one terminal update carrying
``complete``, ``completed_at``, ``error_encountered`` and whatever fields
the handler returned.
"""

import socket
import time
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional, Union

from queue_agent.models.agent import AgentConfig, AgentLog
from queue_agent.models.task import TASK_ID_FIELD, Task, TaskResult, new_task_document
from queue_agent.services.store import Document, TaskStore
from queue_agent.services.supabase_store import SupabaseTaskStore
from queue_agent.utils.errors import ConfigurationError
from queue_agent.utils.logging import (
    correlation_context,
    get_structured_logger,
    log_timing,
    preview_payload,
)

logger = get_structured_logger(__name__)

TaskHandler = Callable[[Document], Any]
ContinuePredicate = Callable[[AgentLog], bool]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _always(log: AgentLog) -> bool:
    return True


class TaskQuery:
    """Lazy, re-iterable view over the tasks matching a filter.

    Every iteration queries the store again, so the results track changes
    made by other agents.
    """

    def __init__(self, store: TaskStore, queue: str, filter: Document):
        self.store = store
        self.queue = queue
        self.filter = dict(filter)

    def __iter__(self) -> Iterator[Task]:
        for document in self.store.find(self.queue, self.filter):
            yield Task.from_document(document)

    def all(self) -> list[Task]:
        return list(self)

    def first(self) -> Optional[Task]:
        return next(iter(self), None)

    def count(self) -> int:
        return len(self.store.find(self.queue, self.filter))

    def update(self, fields: Document) -> int:
        """Set ``fields`` on every matching task, one document at a time."""
        updated = 0
        for task in self.all():
            updated += self.store.update_one(self.queue, {TASK_ID_FIELD: task.id}, fields)
        logger.info(
            "Updated tasks matching query",
            queue=self.queue,
            task_filter=self.filter,
            updated_fields=sorted(fields),
            tasks_updated=updated
        )
        return updated


class Agent:
    """Works on the tasks addressed to ``name`` in ``queue``."""

    def __init__(self, config: Union[AgentConfig, dict, None] = None, store: Optional[TaskStore] = None):
        config = AgentConfig.build(config)

        if store is None:
            if config.store is None:
                raise ConfigurationError("store settings are required when no store is supplied")
            store = SupabaseTaskStore.connect(config.store)

        self._name = config.name
        self._queue = config.queue
        self.store = store
        self.sleep_between = config.sleep_between
        self.guard_claim = config.guard_claim
        self.log = AgentLog()
        self.process_while: ContinuePredicate = _always

        logger.info(
            "Agent initialized",
            agent_name=self._name,
            queue=self._queue,
            sleep_between=self.sleep_between,
            guard_claim=self.guard_claim
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def queue(self) -> str:
        return self._queue

    def get_tasks(self, filter: Optional[Document] = None) -> TaskQuery:
        """Query tasks in this agent's queue.

        Without a filter, returns the ready backlog for this agent's name.
        An explicit filter is used verbatim, so it can reach tasks of any
        agent in any state (reporting, manual intervention).
        """
        if filter is None:
            filter = {"agent_name": self._name, "ready": True}
        return TaskQuery(self.store, self._queue, filter)

    def get_stalled_tasks(self) -> TaskQuery:
        """Tasks this agent's name claimed that never got a terminal update."""
        return self.get_tasks({"agent_name": self._name, "ready": False, "complete": None})

    def create_task(self, agent_name: Optional[str] = None, **payload: Any) -> Task:
        """Queue a ready task for ``agent_name`` (this agent by default)."""
        document = new_task_document(agent_name or self._name, payload)
        stored = self.store.insert(self._queue, [document])[0]
        logger.info(
            "Task created",
            queue=self._queue,
            task_id=stored.get(TASK_ID_FIELD),
            target_agent=document["agent_name"],
            payload_preview=preview_payload(payload)
        )
        return Task.from_document(stored)

    def process(self, handler: TaskHandler) -> Optional[Task]:
        """Claim one ready task and run ``handler`` on it.

        ``handler`` receives the task document as it was before the claim
        and returns ``True``/``False`` or ``(success, update_fields)``.
        ``update_fields`` are written with the terminal update whether the
        task succeeded or not. The handler must not raise: an exception
        propagates and leaves the task claimed but not complete.

        Returns the claimed task, or None when nothing was ready.
        """
        task = self._claim()
        if task is None:
            return None

        task_id = task[TASK_ID_FIELD]
        with correlation_context(task_id):
            with log_timing("task handler", logger=logger, agent_name=self._name, task_id=task_id):
                outcome = handler(dict(task))
            result = TaskResult.from_handler(outcome)

            self.log.tasks_processed += 1
            if result.success:
                self._complete(task, result)
            else:
                self.log.failed_tasks += 1
                self._fail(task, result)

        return Task.from_document(task)

    def work(self, handler: TaskHandler) -> AgentLog:
        """Call ``process`` repeatedly until ``process_while(log)`` is false.

        Sleeps ``sleep_between`` seconds after every attempt, including
        attempts that found nothing to do.
        """
        logger.info("Agent work loop started", agent_name=self._name, queue=self._queue)
        while self.process_while(self.log):
            self.process(handler)
            time.sleep(self.sleep_between)

        logger.info(
            "Agent work loop finished",
            agent_name=self._name,
            queue=self._queue,
            tasks_processed=self.log.tasks_processed,
            failed_tasks=self.log.failed_tasks
        )
        return self.log

    def _claim(self) -> Optional[Document]:
        task = next(iter(self.store.find(self._queue, {"agent_name": self._name, "ready": True})), None)
        if task is None:
            logger.info("There are no ready tasks", agent_name=self._name, queue=self._queue)
            return None

        claim_filter = {TASK_ID_FIELD: task[TASK_ID_FIELD]}
        if self.guard_claim:
            claim_filter["ready"] = True

        claimed = self.store.update_one(self._queue, claim_filter, {
            "ready": False,
            "agent_host": socket.gethostname(),
            "started_at": _now(),
        })
        if self.guard_claim and not claimed:
            logger.warning(
                "Task was claimed by another agent",
                agent_name=self._name,
                queue=self._queue,
                task_id=task[TASK_ID_FIELD]
            )
            return None

        logger.info(
            "Task claimed",
            agent_name=self._name,
            queue=self._queue,
            task_id=task[TASK_ID_FIELD],
            payload_preview=preview_payload(Task.from_document(task).payload)
        )
        return task

    def _complete(self, task: Document, result: TaskResult) -> None:
        self._finish(task, result)
        logger.info("Task completed", agent_name=self._name, task_id=task[TASK_ID_FIELD])

    def _fail(self, task: Document, result: TaskResult) -> None:
        self._finish(task, result)
        logger.warning(
            "Task failed",
            agent_name=self._name,
            task_id=task[TASK_ID_FIELD],
            failed_tasks=self.log.failed_tasks
        )

    def _finish(self, task: Document, result: TaskResult) -> None:
        ignored = result.ignored_fields()
        if ignored:
            logger.warning(
                "Handler update tried to rewrite protected task fields",
                agent_name=self._name,
                task_id=task[TASK_ID_FIELD],
                ignored_fields=ignored
            )
        self.store.update_one(
            self._queue,
            {TASK_ID_FIELD: task[TASK_ID_FIELD]},
            result.terminal_fields(_now())
        )

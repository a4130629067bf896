"""
Task runner - concurrent fan-out with per-task isolation.

Every task emits widget_start before it runs and exactly one terminal
event afterwards. Terminal events are yielded in completion order, and
iteration ends only once every task has reported.
"""

import asyncio
from collections.abc import AsyncIterator

from pydantic import BaseModel, ValidationError

from marketdesk.agent.entities import EntityDescriptor
from marketdesk.agent.router import Task
from marketdesk.agent.schemas import StreamEvent, TaskOutcome
from marketdesk.logging import log

_DONE = object()


def describe_failure(error: BaseException) -> str:
    """Human-readable message for a task failure (never a traceback)."""
    if isinstance(error, ValidationError):
        return f"Result failed validation ({error.error_count()} errors)"
    message = str(error).strip()
    return message or type(error).__name__


class TaskRunner:
    async def run_task(self, task: Task, entity: EntityDescriptor) -> TaskOutcome:
        """Run one task, converting every failure into an error outcome."""
        try:
            result = await task.run(entity)
            if not isinstance(result, BaseModel):
                raise TypeError(f"{task.id} returned {type(result).__name__}, expected a model")
            data = result.model_dump(mode="json", by_alias=True)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log("runner", f"Task {task.id} failed: {e}", level="warning")
            return TaskOutcome.failed(describe_failure(e))

        log("runner", f"Task {task.id} complete")
        return TaskOutcome.complete(data)

    async def run_all(
        self, tasks: list[Task], entity: EntityDescriptor
    ) -> AsyncIterator[StreamEvent]:
        """Yield start and terminal events for all tasks as they happen."""
        if not tasks:
            return

        queue: asyncio.Queue[object] = asyncio.Queue()

        async def run_one(task: Task) -> None:
            await queue.put(StreamEvent.widget_start(task.id, task.progress))
            outcome = await self.run_task(task, entity)
            await queue.put(outcome.to_event(task.id, task.label))

        async def run_every() -> None:
            try:
                await asyncio.gather(*(run_one(task) for task in tasks))
            finally:
                await queue.put(_DONE)

        log("runner", f"Running {len(tasks)} tasks", tasks=[t.id for t in tasks])
        worker = asyncio.create_task(run_every())
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                yield item  # type: ignore[misc]
        finally:
            # Consumer stopped early: abandon whatever is still in flight
            if not worker.done():
                worker.cancel()
                await asyncio.wait([worker])

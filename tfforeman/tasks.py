"""Follow asynchronous Foreman tasks, eg Katello repository syncs.

Katello answers long running requests with a task object instead of the
result. The task can then be polled via the Foreman Tasks plugin until it is
no longer pending.

"""

import asyncio
import logging

import tenacity as tc
from pydantic import ValidationError

import tfforeman.foreman
from tfforeman.errors import DecodeError, TaskError
from tfforeman.models import ForemanConfig, ForemanTask

# Convenience: global logger instance to avoid repetitive code.
logit = logging.getLogger("tfforeman")


class TaskPending(Exception):
    """Internal signal to poll the task once more."""

    def __init__(self, task: ForemanTask):
        self.task = task
        super().__init__(f"task {task.id} is pending")


def decode_task(path: str, data: dict) -> ForemanTask:
    try:
        return ForemanTask.model_validate(data)
    except ValidationError as err:
        logit.error("invalid task", {"component": "tasks", "path": path})
        raise DecodeError(path, str(err))


def _on_pending(retry_state: tc.RetryCallState):
    """Log each time the task was still pending."""
    fcfg, task_id = retry_state.args[:2]
    meta = {
        "component": "tasks",
        "foreman": fcfg.name,
        "task": task_id,
        "attempt": retry_state.attempt_number,
    }
    logit.info("task still pending", meta)


async def _mysleep(delay: float):
    """This trivial function exists to mock out the `sleep` call during tests."""
    await asyncio.sleep(delay)


def check_result(task: ForemanTask) -> ForemanTask:
    """Raise `TaskError` if the finished `task` failed."""
    if task.result == "error":
        reason = "; ".join(task.humanized.errors) or "task failed"
        logit.error("task failed", {"component": "tasks", "task": task.id})
        raise TaskError(task.id, reason)
    return task


async def _poll(fcfg: ForemanConfig, task_id: str) -> ForemanTask:
    path = f"foreman_tasks/tasks/{task_id}"
    task = decode_task(path, await tfforeman.foreman.get(fcfg, path))
    if task.pending:
        raise TaskPending(task)
    return task


async def wait_for_task(
    fcfg: ForemanConfig, task_id: str, attempts: int = 3, delay: float = 0.5
) -> ForemanTask:
    """Return the task once it is no longer pending.

    Polls the task up to `attempts` times, `delay` seconds apart. Raises
    `TaskError` if the task is still pending afterwards or ended with an
    error. Request errors propagate immediately.

    """
    retrying = tc.AsyncRetrying(
        stop=tc.stop_after_attempt(attempts),
        wait=tc.wait_fixed(delay),
        retry=tc.retry_if_exception_type(TaskPending),
        before_sleep=_on_pending,
        reraise=True,
        sleep=_mysleep,
    )
    try:
        task = await retrying(_poll, fcfg, task_id)
    except TaskPending:
        logit.error("giving up on task", {"component": "tasks", "task": task_id})
        raise TaskError(task_id, f"still pending after {attempts} attempts")

    return check_result(task)


async def sync_repository(fcfg: ForemanConfig, repo_id: int) -> ForemanTask:
    """Synchronise the Katello repository `repo_id` and wait for the task."""
    path = f"katello/repositories/{repo_id}/sync"
    task = decode_task(path, await tfforeman.foreman.post(fcfg, path, {}))
    logit.info("repository sync", {"component": "tasks", "task": task.id})
    if task.pending:
        return await wait_for_task(fcfg, task.id)
    return check_result(task)

"""
Task service: CRUD, archive toggling and bulk updates.

Every operation takes the owner id of the authenticated caller and scopes
its lookup by it.  A task that exists but belongs to someone else is
reported exactly like a missing one (``NotFound``), so non-owners cannot
even learn that it exists.

Listing and statistics are delegated to ``taskboard.query``.
"""

from __future__ import annotations

import logging
from typing import Any

from ..errors import InternalError, NotFound
from ..models import MAX_ROW_ID, Task
from ..query import TaskPage, TaskQuery, list_tasks, task_stats
from ..store import TaskStore

logger = logging.getLogger(__name__)


def _get_owned_or_404(store: TaskStore, owner_id: int, task_id: int, *, for_update: bool = False) -> Task:
    # Ids past the INTEGER range cannot exist and would overflow the driver.
    task = None if task_id > MAX_ROW_ID else store.get_owned(owner_id, task_id, for_update=for_update)
    if task is None:
        logger.warning("Task %s not found for user_id=%s", task_id, owner_id)
        raise NotFound("Task not found")
    return task


def list_owned(owner_id: int, query: TaskQuery) -> TaskPage:
    return list_tasks(owner_id, query)


def stats(owner_id: int) -> dict[str, int]:
    return task_stats(owner_id)


def create_task(owner_id: int, data: dict[str, Any]) -> Task:
    """
    Create a task for *owner_id* from validated *data*.

    The owner always comes from the authenticated caller; *data* never
    contains ``user_id`` because validation drops unknown fields.
    """
    task = Task(user_id=owner_id, **data)
    TaskStore().insert(task, owner=owner_id)
    logger.info(
        "Task created: task_id=%s user_id=%s priority=%s status=%s",
        task.id, owner_id, task.priority, task.status,
    )
    return task


def get_task(owner_id: int, task_id: int) -> Task:
    return _get_owned_or_404(TaskStore(), owner_id, task_id)


def update_task(owner_id: int, task_id: int, changes: dict[str, Any]) -> Task:
    """
    Apply a partial update.  A status change recomputes ``completed_at``
    through the model's update hook.
    """
    store = TaskStore()
    task = _get_owned_or_404(store, owner_id, task_id, for_update=True)
    if store.update(task, changes, owner=owner_id):
        logger.info(
            "Task updated: task_id=%s user_id=%s fields=%s", task_id, owner_id, sorted(changes)
        )
    return task


def delete_task(owner_id: int, task_id: int) -> None:
    store = TaskStore()
    task = _get_owned_or_404(store, owner_id, task_id, for_update=True)
    store.delete(task, owner=owner_id)
    logger.info("Task deleted: task_id=%s user_id=%s", task_id, owner_id)


def toggle_archive(owner_id: int, task_id: int) -> Task:
    """Flip the archived flag.  Status and ``completed_at`` are untouched."""
    store = TaskStore()
    task = _get_owned_or_404(store, owner_id, task_id, for_update=True)
    store.update(task, {"is_archived": not task.is_archived}, owner=owner_id)
    logger.info(
        "Task %s: task_id=%s user_id=%s",
        "archived" if task.is_archived else "unarchived", task_id, owner_id,
    )
    return task


def bulk_update(owner_id: int, task_ids: list[int], changes: dict[str, Any]) -> int:
    """
    Apply the same *changes* to every listed task owned by *owner_id*.

    Ids belonging to other users, or to nothing, are skipped silently.
    Each task is committed on its own: a failure on one task is logged and
    leaves already-updated tasks in place.

    Returns:
        The number of tasks whose stored values actually changed.
    """
    store = TaskStore()
    tasks = store.find(
        TaskStore.owned_by(owner_id), Task.id.in_(task_ids), order_by=[Task.id]
    )
    modified = 0
    for task in tasks:
        task_id = task.id
        try:
            if store.update(task, changes, owner=owner_id, bulk=True):
                modified += 1
        except InternalError:
            logger.error(
                "Bulk update failed for task_id=%s user_id=%s", task_id, owner_id
            )
    logger.info(
        "Bulk update performed on %s of %s tasks for user_id=%s",
        modified, len(task_ids), owner_id,
    )
    return modified

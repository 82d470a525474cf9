"""Python client and client-side state for the Taskboard API."""

from .api import ApiClientError, TaskboardClient
from .state import (
    ClientState,
    FilterOptions,
    derive_view,
    filter_tasks,
    sort_tasks,
    summarize_tasks,
)

__all__ = [
    "ApiClientError",
    "ClientState",
    "FilterOptions",
    "TaskboardClient",
    "derive_view",
    "filter_tasks",
    "sort_tasks",
    "summarize_tasks",
]

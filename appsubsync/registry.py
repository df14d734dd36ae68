"""Registering synchronizers with a manager."""

from __future__ import annotations

from typing import Any, Callable

from .meta import NamespacedName
from . import synchronizer

AddFunc = Callable[[Any, Any, "NamespacedName | None", float], Any]

# Every function here is called, in order, by add_to_manager.
add_to_manager_funcs: list[AddFunc] = [synchronizer.add]


def add_to_manager(manager: Any, remote_client: Any, sync_id: NamespacedName | None, interval: float) -> None:
    """Add every registered synchronizer to the manager; the first error propagates."""
    for add_func in add_to_manager_funcs:
        add_func(manager, remote_client, sync_id, interval)
"""Sandbox dispatch: run the pipeline on the host or in one throwaway container."""

from .dispatch import (
    CONTAINER_ROOT,
    container_command,
    container_name,
    dispatch,
    remove_container,
    run_in_container,
)

__all__ = [
    "CONTAINER_ROOT",
    "container_command",
    "container_name",
    "dispatch",
    "remove_container",
    "run_in_container",
]

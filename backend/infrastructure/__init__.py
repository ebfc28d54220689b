"""Infrastructure layer exports."""

from .jobs import InMemoryJobStore, JobStore
from .warehouse import TeamDirectory, Warehouse, configure_warehouse, get_warehouse

__all__ = [
    "InMemoryJobStore",
    "JobStore",
    "TeamDirectory",
    "Warehouse",
    "configure_warehouse",
    "get_warehouse",
]

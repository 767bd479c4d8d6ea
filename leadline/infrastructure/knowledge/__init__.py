"""Client knowledge lookups"""

from .task_context import TaskContextClient

__all__ = ["TaskContextClient"]

"""
Core execution primitives shared by the services.
"""

from .task_queue import QueueItem, SerialTaskQueue, log_detached_failure

__all__ = [
    "QueueItem",
    "SerialTaskQueue",
    "log_detached_failure",
]

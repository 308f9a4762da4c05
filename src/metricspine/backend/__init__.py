"""Backend implementations.

Example:
    >>> from metricspine.backend import MemoryBackend, MongoBackend
    >>> backend = MongoBackend("mongodb://localhost:27017")
"""

from metricspine.backend.memory import MemoryBackend
from metricspine.backend.mongodb import MongoBackend

__all__ = ["MemoryBackend", "MongoBackend"]

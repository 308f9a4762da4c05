"""Protocol definitions for pluggable backends."""

from metricspine.protocols.backend import Backend, ChangeSubscriber, QueryExecutor

__all__ = ["Backend", "ChangeSubscriber", "QueryExecutor"]

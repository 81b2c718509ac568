"""Alert notification dispatch."""

from swarm_health.notifier.base_notifier import BaseNotifier
from swarm_health.notifier.log_notifier import LogNotifier

__all__ = ["BaseNotifier", "LogNotifier"]

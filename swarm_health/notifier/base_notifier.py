"""Notification dispatch contract."""

from __future__ import annotations

from abc import ABC, abstractmethod

from swarm_health.core.models import Alert


class BaseNotifier(ABC):
    """Delivers a newly created alert to the tenant.

    Callers treat delivery as best-effort: exceptions raised by ``send`` are
    logged by the caller and never fail alert creation.
    """

    @abstractmethod
    async def send(self, tenant_id: str, alert: Alert) -> None:
        ...

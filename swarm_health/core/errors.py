"""Exceptions raised by the health pipeline."""

from __future__ import annotations


class SwarmHealthError(Exception):
    """Base exception for all swarm-health errors."""


class NotFoundError(SwarmHealthError):
    """An account, tenant or alert does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} {identifier} not found")

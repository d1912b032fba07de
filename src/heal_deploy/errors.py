"""Exceptions raised across the deployment core."""

from __future__ import annotations

from typing import Optional


class HealDeployError(Exception):
    """Base class for errors raised by heal-deploy."""


class RepairUnavailable(HealDeployError):
    """The repair oracle is not configured, so no repair can be requested."""


class OracleError(HealDeployError):
    """The repair oracle was reachable but did not produce a response."""


class DeploymentCancelled(HealDeployError):
    """A running deployment was cancelled before reaching a verdict."""

    def __init__(self, reason: Optional[str] = None) -> None:
        self.reason = reason or "deployment cancelled"
        super().__init__(self.reason)

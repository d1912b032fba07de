"""Hosting provider interface consumed by the deployment executor."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from ..orchestrator.models import DeploymentConfig, FileSet


@dataclass(frozen=True)
class ProjectInfo:
    """A provisioned site/project on the hosting provider."""
    id: str
    name: str


@dataclass(frozen=True)
class SiteSummary:
    """Existing project as reported by ``list_projects``."""
    id: str
    name: str
    url: str


@dataclass(frozen=True)
class ProviderDeployment:
    """Provider answer to a deploy request."""
    success: bool
    logs: Optional[str] = None
    error_message: Optional[str] = None


class HostingProvider(ABC):
    """Abstract base class for hosting providers.

    Implementations must be safe to share between concurrent deployments.
    """

    @abstractmethod
    async def create_project(self, name: str, config: "DeploymentConfig") -> ProjectInfo:
        """Create (or provision) a project called ``name``."""

    @abstractmethod
    async def deploy(
        self,
        project_id: str,
        config: "DeploymentConfig",
        files: "FileSet",
    ) -> ProviderDeployment:
        """Upload ``files`` to the project and run its build."""

    @abstractmethod
    async def list_projects(self) -> List[SiteSummary]:
        """Return the projects already known to the provider."""

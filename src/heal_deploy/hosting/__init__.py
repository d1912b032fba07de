"""Hosting provider interface and implementations."""

from .base import HostingProvider, ProjectInfo, ProviderDeployment, SiteSummary
from .local import LocalDirectoryProvider

__all__ = [
    "HostingProvider",
    "ProjectInfo",
    "ProviderDeployment",
    "SiteSummary",
    "LocalDirectoryProvider",
]

"""heal-deploy: deploy web projects and repair failed builds with an LLM."""

from .orchestrator import (
    DeploymentConfig,
    DeploymentOrchestrator,
    DeploymentResult,
    FileSet,
)
from .workflow import DeploymentWorkflow

__all__ = [
    "DeploymentConfig",
    "DeploymentOrchestrator",
    "DeploymentResult",
    "DeploymentWorkflow",
    "FileSet",
]

__version__ = "0.1.0"

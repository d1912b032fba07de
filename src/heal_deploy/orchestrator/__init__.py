"""Orchestrator module for AI-assisted deployment.

This module provides the deploy, classify, repair loop:
- DeploymentOrchestrator: Coordinates bounded deployment attempts
- DeploymentExecutor: Performs a single deployment attempt
- RepairOracleAdapter: Asks the repair oracle for revised files
- classify_error: Maps raw failures to error kinds and remediation hints
"""

from .models import (
    AttemptOutcome,
    AttemptRecord,
    DeployFile,
    DeploymentConfig,
    DeploymentResult,
    ErrorClassification,
    ErrorKind,
    ExecutionResult,
    FileSet,
    FileSetProvenance,
    OrchestratorState,
    TerminationReason,
)
from .classifier import classify_error
from .executor import DeploymentExecutor, sanitize_project_name
from .repair import RepairOracleAdapter, RepairOutcome
from .orchestrator import DeploymentOrchestrator, GENERIC_SUGGESTIONS

__all__ = [
    "AttemptOutcome",
    "AttemptRecord",
    "DeployFile",
    "DeploymentConfig",
    "DeploymentResult",
    "ErrorClassification",
    "ErrorKind",
    "ExecutionResult",
    "FileSet",
    "FileSetProvenance",
    "OrchestratorState",
    "TerminationReason",
    "classify_error",
    "DeploymentExecutor",
    "sanitize_project_name",
    "RepairOracleAdapter",
    "RepairOutcome",
    "DeploymentOrchestrator",
    "GENERIC_SUGGESTIONS",
]

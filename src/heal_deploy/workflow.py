"""High-level workflow wiring config, providers and the orchestrator."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Callable, List, Optional, Union

from .config import AppConfig
from .hosting import HostingProvider, LocalDirectoryProvider, SiteSummary
from .llm.oracle import RepairOracle, create_repair_oracle
from .orchestrator import (
    AttemptRecord,
    DeployFile,
    DeploymentConfig,
    DeploymentExecutor,
    DeploymentOrchestrator,
    DeploymentResult,
    FileSet,
    RepairOracleAdapter,
)
from .orchestrator.executor import VENDORED_MARKER
from .utils.logging import get_logger

logger = get_logger(__name__)

SKIPPED_DIRS = {".git", ".hg", ".svn", "__pycache__", ".heal-deploy", "agent_logs"}
MAX_FILE_BYTES = 1_000_000
VENDORED_PLACEHOLDER = f"{VENDORED_MARKER}/.vendored"


def load_files(directory: Union[str, Path]) -> FileSet:
    """Read a project directory into a FileSet.

    Text files only. ``node_modules`` is not uploaded, but its presence is
    kept as a marker so the executor knows dependencies are vendored.
    """
    root = Path(directory)
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")

    files: List[DeployFile] = []
    vendored = False
    for current, dirnames, filenames in os.walk(root):
        if VENDORED_MARKER in dirnames:
            vendored = True
            dirnames.remove(VENDORED_MARKER)
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
        for filename in sorted(filenames):
            path = Path(current) / filename
            if path.stat().st_size > MAX_FILE_BYTES:
                logger.debug("Skipping large file %s", path)
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logger.debug("Skipping binary file %s", path)
                continue
            files.append(DeployFile(path.relative_to(root).as_posix(), content))

    if vendored:
        files.append(DeployFile(VENDORED_PLACEHOLDER, ""))
    return FileSet(tuple(files))


def create_hosting_provider(config: AppConfig) -> HostingProvider:
    provider = config.hosting.provider.lower()
    if provider == "local":
        return LocalDirectoryProvider(config.hosting.sites_root)
    raise ValueError(f"Unsupported hosting provider: {config.hosting.provider}. Supported providers: local")


class DeploymentWorkflow:
    """Builds the deployment core from configuration and runs it."""

    def __init__(
        self,
        config: AppConfig,
        provider: Optional[HostingProvider] = None,
        oracle: Optional[RepairOracle] = None,
    ) -> None:
        self.config = config
        self.provider = provider or create_hosting_provider(config)
        self.oracle = oracle if oracle is not None else create_repair_oracle(
            config.llm, timeout=config.repair.request_timeout
        )

    def build_orchestrator(
        self,
        on_attempt: Optional[Callable[[AttemptRecord], None]] = None,
    ) -> DeploymentOrchestrator:
        """Each deployment gets its own orchestrator; providers are shared."""
        hosting = self.config.hosting
        executor = DeploymentExecutor(
            self.provider,
            site_url_template=hosting.site_url_template,
            admin_url_template=hosting.admin_url_template,
            max_name_length=hosting.max_name_length,
        )
        return DeploymentOrchestrator(
            executor=executor,
            repair_adapter=RepairOracleAdapter(self.oracle),
            max_attempts=self.config.repair.max_attempts,
            log_dir=self.config.log_dir,
            on_attempt=on_attempt,
        )

    async def run(
        self,
        files: FileSet,
        deploy_config: DeploymentConfig,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        on_attempt: Optional[Callable[[AttemptRecord], None]] = None,
    ) -> DeploymentResult:
        """Deploy ``files``; when ``timeout`` elapses the run ends as cancelled."""
        orchestrator = self.build_orchestrator(on_attempt)
        deadline = timeout if timeout is not None else self.config.repair.deploy_timeout
        if deadline is None:
            return await orchestrator.deploy_with_repair(files, deploy_config, max_attempts)

        try:
            return await asyncio.wait_for(
                orchestrator.deploy_with_repair(files, deploy_config, max_attempts),
                timeout=deadline,
            )
        except asyncio.TimeoutError:
            logger.warning("Deployment exceeded %.1fs deadline", deadline)
            if orchestrator.result is None:
                raise
            return orchestrator.result

    def deploy_directory(
        self,
        directory: Union[str, Path],
        deploy_config: DeploymentConfig,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        on_attempt: Optional[Callable[[AttemptRecord], None]] = None,
    ) -> DeploymentResult:
        files = load_files(directory)
        logger.info("Loaded %d files from %s", len(files), directory)
        return asyncio.run(self.run(files, deploy_config, max_attempts, timeout, on_attempt))

    def list_sites(self) -> List[SiteSummary]:
        return asyncio.run(self.provider.list_projects())

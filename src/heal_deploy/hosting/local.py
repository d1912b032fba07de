"""Hosting provider that publishes sites into a local directory."""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Union

from .base import HostingProvider, ProjectInfo, ProviderDeployment, SiteSummary

if TYPE_CHECKING:
    from ..orchestrator.models import DeploymentConfig, FileSet

logger = logging.getLogger(__name__)

REGISTRY_FILE = "projects.json"


class LocalDirectoryProvider(HostingProvider):
    """
    本地目录托管

    每个项目对应 ``<sites_root>/<name>/``，项目注册表保存在
    ``<sites_root>/projects.json``。
    """

    def __init__(self, sites_root: Union[str, Path]) -> None:
        self.sites_root = Path(sites_root)
        # 注册表读写在线程池中进行，需要串行化
        self._registry_lock = threading.Lock()
        self._publish_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # HostingProvider
    # ------------------------------------------------------------------ #

    async def create_project(self, name: str, config: "DeploymentConfig") -> ProjectInfo:
        return await asyncio.to_thread(self._create_project_sync, name)

    async def deploy(
        self,
        project_id: str,
        config: "DeploymentConfig",
        files: "FileSet",
    ) -> ProviderDeployment:
        return await asyncio.to_thread(self._deploy_sync, project_id, config, files)

    async def list_projects(self) -> List[SiteSummary]:
        return await asyncio.to_thread(self._list_projects_sync)

    # ------------------------------------------------------------------ #
    # Sync implementations
    # ------------------------------------------------------------------ #

    def _create_project_sync(self, name: str) -> ProjectInfo:
        with self._registry_lock:
            registry = self._load_registry()
            for project_id, entry in registry.items():
                if entry.get("name") == name:
                    logger.info("Reusing local project %s (%s)", name, project_id)
                    return ProjectInfo(id=project_id, name=name)

            project_id = f"site_{uuid.uuid4().hex[:12]}"
            registry[project_id] = {
                "name": name,
                "created_at": datetime.now().isoformat(),
                "last_deploy": None,
            }
            self._save_registry(registry)
        (self.sites_root / name).mkdir(parents=True, exist_ok=True)
        logger.info("Created local project %s (%s)", name, project_id)
        return ProjectInfo(id=project_id, name=name)

    def _deploy_sync(
        self,
        project_id: str,
        config: "DeploymentConfig",
        files: "FileSet",
    ) -> ProviderDeployment:
        with self._registry_lock:
            registry = self._load_registry()
        entry = registry.get(project_id)
        if entry is None:
            return ProviderDeployment(success=False, error_message=f"unknown project id: {project_id}")

        site_dir = (self.sites_root / entry["name"]).resolve()
        staging_dir = site_dir.with_name(f".{site_dir.name}.staging-{uuid.uuid4().hex[:8]}")
        started = datetime.now()
        log_lines = [
            f"{started.strftime('%H:%M:%S')}: Build started for {entry['name']}",
            f"Build command: {config.build_command or '(none)'}",
            f"Publish directory: {config.publish_directory or '.'}",
        ]

        staging_dir.mkdir(parents=True)
        try:
            for deploy_file in files:
                target = (staging_dir / deploy_file.path).resolve()
                if staging_dir.resolve() not in target.parents:
                    return ProviderDeployment(
                        success=False,
                        logs="\n".join(log_lines),
                        error_message=f"invalid file path outside site root: {deploy_file.path}",
                    )
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(deploy_file.content, encoding="utf-8")
            log_lines.append(f"Uploaded {len(files)} files ({files.total_size()} bytes)")

            # 原子替换已发布的站点
            with self._publish_lock:
                shutil.rmtree(site_dir, ignore_errors=True)
                staging_dir.rename(site_dir)
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)

        elapsed = (datetime.now() - started).total_seconds()
        log_lines.append("Deployment successful!")
        log_lines.append(f"Deploy time: {elapsed:.2f}s")

        with self._registry_lock:
            registry = self._load_registry()
            if project_id in registry:
                registry[project_id]["last_deploy"] = datetime.now().isoformat()
                self._save_registry(registry)

        return ProviderDeployment(success=True, logs="\n".join(log_lines))

    def _list_projects_sync(self) -> List[SiteSummary]:
        with self._registry_lock:
            registry = self._load_registry()
        return [
            SiteSummary(
                id=project_id,
                name=entry["name"],
                url=(self.sites_root / entry["name"]).resolve().as_uri(),
            )
            for project_id, entry in registry.items()
        ]

    def _load_registry(self) -> Dict[str, Dict]:
        registry_path = self.sites_root / REGISTRY_FILE
        if not registry_path.is_file():
            return {}
        with registry_path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def _save_registry(self, registry: Dict[str, Dict]) -> None:
        self.sites_root.mkdir(parents=True, exist_ok=True)
        registry_path = self.sites_root / REGISTRY_FILE
        with registry_path.open("w", encoding="utf-8") as handle:
            json.dump(registry, handle, indent=2, ensure_ascii=False)

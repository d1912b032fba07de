"""Deployment executor: performs a single deployment attempt."""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Iterable, Optional, Set, Tuple

from .models import DeploymentConfig, ExecutionResult, FileSet

if TYPE_CHECKING:
    from ..hosting.base import HostingProvider, ProjectInfo

logger = logging.getLogger(__name__)

ENTRY_POINTS: Tuple[str, ...] = (
    "index.html",
    "index.tsx",
    "index.ts",
    "src/index.tsx",
    "src/index.ts",
)
MANIFEST_FILE = "package.json"
VENDORED_MARKER = "node_modules"
MAX_SITE_NAME_LENGTH = 63  # Netlify 站点名长度上限

DEFAULT_SITE_URL_TEMPLATE = "https://{name}.netlify.app"
DEFAULT_ADMIN_URL_TEMPLATE = "https://app.netlify.com/sites/{name}"

NO_FILES_MESSAGE = "no files provided for deployment"
NO_ENTRY_POINT_MESSAGE = (
    "no entry point found (index.html, index.tsx, index.ts, src/index.tsx or src/index.ts)"
)

_SOURCE_SUFFIXES = (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx")
_DEPENDENCY_SECTIONS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)
# 注释会被剥离；字符串保留原样，以免误删 "http://..." 之类的内容
_COMMENT_OR_STRING = re.compile(
    r"""//[^\n]*|/\*.*?\*/|'(?:\\.|[^'\\\n])*'|"(?:\\.|[^"\\\n])*"|`(?:\\.|[^`\\])*`""",
    re.DOTALL,
)
# 只识别语句形式的导入：行首的 import / export ... from，以及赋值或调用位置的 require()/import()
_IMPORT_PATTERNS = (
    re.compile(
        r"""^[ \t]*import\s+(?:[\w*$\s{},]+?\s+from\s+)?['"]([^'"\n]+)['"]""",
        re.MULTILINE,
    ),
    re.compile(
        r"""^[ \t]*export\s+(?:type\s+)?(?:\*(?:\s+as\s+[\w$]+)?|\{[^}]*\})\s*from\s+['"]([^'"\n]+)['"]""",
        re.MULTILINE,
    ),
    re.compile(
        r"""(?:^|[=;,(:!?&|]|\breturn|\bawait)[ \t]*(?:require|import)\s*\(\s*['"]([^'"\n]+)['"]\s*\)""",
        re.MULTILINE,
    ),
)
# module.builtinModules（子路径如 fs/promises 按首段匹配）
_NODE_BUILTINS = frozenset({
    "_http_agent", "_http_client", "_http_common", "_http_incoming",
    "_http_outgoing", "_http_server", "_stream_duplex", "_stream_passthrough",
    "_stream_readable", "_stream_transform", "_stream_wrap", "_stream_writable",
    "_tls_common", "_tls_wrap", "assert", "async_hooks", "buffer",
    "child_process", "cluster", "console", "constants", "crypto", "dgram",
    "diagnostics_channel", "dns", "domain", "events", "fs", "http", "http2",
    "https", "inspector", "module", "net", "os", "path", "perf_hooks",
    "process", "punycode", "querystring", "readline", "repl", "stream",
    "string_decoder", "sys", "timers", "tls", "trace_events", "tty", "url",
    "util", "v8", "vm", "wasi", "worker_threads", "zlib",
})


def sanitize_project_name(name: str, max_length: int = MAX_SITE_NAME_LENGTH) -> str:
    """Turn an arbitrary project name into a hosting-safe site name."""
    sanitized = re.sub(r"[^a-z0-9-]", "-", (name or "").lower())
    sanitized = re.sub(r"-+", "-", sanitized).strip("-")
    sanitized = sanitized[:max_length].rstrip("-")
    return sanitized or "site"


def _package_name(specifier: str) -> Optional[str]:
    """Return the npm package a module specifier refers to, if any."""
    if specifier.startswith((".", "/", "@/", "~/", "#")) or ":" in specifier:
        return None
    parts = specifier.split("/")
    if specifier.startswith("@"):
        return "/".join(parts[:2]) if len(parts) >= 2 else None
    return parts[0]


def find_missing_dependency(
    files: FileSet, declared: Iterable[str]
) -> Optional[Tuple[str, str, int]]:
    """Return ``(package, file, line)`` of the first undeclared import."""
    known = set(declared)
    for deploy_file in files:
        if VENDORED_MARKER in deploy_file.path or not deploy_file.path.endswith(_SOURCE_SUFFIXES):
            continue
        code = strip_comments(deploy_file.content)
        matches = sorted(
            (match for pattern in _IMPORT_PATTERNS for match in pattern.finditer(code)),
            key=lambda match: match.start(1),
        )
        for match in matches:
            package = _package_name(match.group(1))
            if package is None or package in known or package in _NODE_BUILTINS:
                continue
            line = code.count("\n", 0, match.start(1)) + 1
            return package, deploy_file.path, line
    return None


def strip_comments(source: str) -> str:
    """Blank out ``//`` and ``/* */`` comments, keeping line numbers intact."""
    def replace(match: "re.Match[str]") -> str:
        text = match.group(0)
        if text.startswith("/"):
            return "\n" * text.count("\n")
        return text

    return _COMMENT_OR_STRING.sub(replace, source)


class DeploymentExecutor:
    """
    单次部署执行器

    先做本地校验（不浪费网络调用），再在托管平台上创建/复用项目并上传文件。
    """

    def __init__(
        self,
        provider: "HostingProvider",
        site_url_template: str = DEFAULT_SITE_URL_TEMPLATE,
        admin_url_template: str = DEFAULT_ADMIN_URL_TEMPLATE,
        max_name_length: int = MAX_SITE_NAME_LENGTH,
    ) -> None:
        self.provider = provider
        self.site_url_template = site_url_template
        self.admin_url_template = admin_url_template
        self.max_name_length = max_name_length

    async def execute(self, config: DeploymentConfig, files: FileSet) -> ExecutionResult:
        files = files.normalized()

        failure = self.validate(files)
        if failure is not None:
            logger.info("Pre-deployment validation failed: %s", failure.raw_error_message)
            return failure

        name = sanitize_project_name(config.project_name, self.max_name_length)
        project = await self._provision(name, config)
        logger.info("Deploying %d files to %s (%s)", len(files), project.name, project.id)

        deployment = await self.provider.deploy(project.id, config, files)
        if not deployment.success:
            return ExecutionResult.failed(
                deployment.error_message or "deployment failed without an error message",
                logs=deployment.logs or "",
            )

        return ExecutionResult(
            success=True,
            logs=deployment.logs or "",
            site_id=project.id,
            site_name=project.name,
            deploy_url=self.site_url_template.format(name=project.name, id=project.id),
            admin_url=self.admin_url_template.format(name=project.name, id=project.id),
        )

    def validate(self, files: FileSet) -> Optional[ExecutionResult]:
        """Run the local checks; return a failure result or None when deployable."""
        if not files:
            return ExecutionResult.failed(NO_FILES_MESSAGE)

        if not any(files.has(entry) for entry in ENTRY_POINTS):
            return ExecutionResult.failed(NO_ENTRY_POINT_MESSAGE)

        manifest = files.get(MANIFEST_FILE)
        has_vendored = any(VENDORED_MARKER in path for path in files.paths())
        if manifest is not None and not has_vendored:
            return self._check_build(manifest.content, files)
        return None

    def _check_build(self, manifest_text: str, files: FileSet) -> Optional[ExecutionResult]:
        """Static stand-in for ``npm install && build``: manifest syntax and imports."""
        logger.debug("Running build check against %s", MANIFEST_FILE)
        try:
            manifest = json.loads(manifest_text)
        except json.JSONDecodeError as exc:
            return ExecutionResult.failed(
                f"build failed: syntax error in {MANIFEST_FILE}: {exc.msg}",
                file=MANIFEST_FILE,
                line=exc.lineno,
            )
        if not isinstance(manifest, dict):
            return ExecutionResult.failed(
                f"build failed: syntax error in {MANIFEST_FILE}: expected a JSON object",
                file=MANIFEST_FILE,
            )

        declared: Set[str] = set()
        for section in _DEPENDENCY_SECTIONS:
            entries = manifest.get(section)
            if isinstance(entries, dict):
                declared.update(entries)

        missing = find_missing_dependency(files, declared)
        if missing is not None:
            package, path, line = missing
            return ExecutionResult.failed(
                f"build failed: module not found: {package} (imported from {path})",
                file=path,
                line=line,
            )
        return None

    async def _provision(self, name: str, config: DeploymentConfig) -> "ProjectInfo":
        """Reuse an existing project with this name, otherwise create one."""
        from ..hosting.base import ProjectInfo

        for site in await self.provider.list_projects():
            if site.name == name:
                logger.debug("Reusing existing project %s (%s)", site.name, site.id)
                return ProjectInfo(id=site.id, name=site.name)
        return await self.provider.create_project(name, config)

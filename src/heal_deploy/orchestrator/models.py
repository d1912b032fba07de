"""Data models for the orchestrator module."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union


class ErrorKind(str, Enum):
    """部署失败的错误类别"""
    DEPENDENCY_ERROR = "dependency_error"
    BUILD_ERROR = "build_error"
    CONFIG_ERROR = "config_error"
    RUNTIME_ERROR = "runtime_error"


class AttemptOutcome(str, Enum):
    """单次部署尝试的结果"""
    SUCCESS = "success"
    FAILURE = "failure"


class FileSetProvenance(str, Enum):
    """本次尝试所用文件集的来源"""
    INPUT = "input"           # 调用方提供的原始文件
    REPAIRED = "repaired"     # AI 修复后的文件
    UNCHANGED = "unchanged"   # 修复不可用或无效，原样重试


class OrchestratorState(str, Enum):
    """编排器状态机"""
    IDLE = "idle"
    ATTEMPTING = "attempting"
    REPAIRING = "repairing"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class TerminationReason(str, Enum):
    """部署循环终止原因"""
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DeployFile:
    """A single deployable file keyed by its path."""
    path: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "content": self.content}


FileLike = Union[DeployFile, Tuple[str, str], Mapping[str, str]]


def _coerce_file(item: FileLike) -> DeployFile:
    if isinstance(item, DeployFile):
        return item
    if isinstance(item, Mapping):
        # 兼容前端使用的 fileName 字段
        path = item.get("path", item.get("fileName"))
        if path is None:
            raise ValueError(f"File entry is missing a path: {dict(item)!r}")
        return DeployFile(path=str(path), content=str(item.get("content", "")))
    path, content = item
    return DeployFile(path=str(path), content=str(content))


@dataclass(frozen=True)
class FileSet:
    """Immutable, ordered collection of files forming one deployable artifact.

    Paths are unique within a set. When the same path is given twice the
    later content wins but the file keeps its first position. Every
    "modification" returns a new FileSet.
    """
    files: Tuple[DeployFile, ...] = ()

    def __post_init__(self) -> None:
        unique: Dict[str, DeployFile] = {}
        for entry in self.files:
            entry = _coerce_file(entry)
            unique[entry.path] = entry
        object.__setattr__(self, "files", tuple(unique.values()))

    @classmethod
    def of(cls, items: Iterable[FileLike]) -> "FileSet":
        return cls(tuple(_coerce_file(item) for item in items))

    @classmethod
    def from_pairs(cls, pairs: Mapping[str, str]) -> "FileSet":
        return cls(tuple(DeployFile(path, content) for path, content in pairs.items()))

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self) -> Iterator[DeployFile]:
        return iter(self.files)

    def __bool__(self) -> bool:
        return bool(self.files)

    def paths(self) -> List[str]:
        return [f.path for f in self.files]

    def has(self, path: str) -> bool:
        return any(f.path == path for f in self.files)

    def get(self, path: str) -> Optional[DeployFile]:
        for f in self.files:
            if f.path == path:
                return f
        return None

    def replace(self, updates: Iterable[FileLike]) -> "FileSet":
        """Return a new FileSet with ``updates`` replacing or appended to this one."""
        return FileSet(self.files + tuple(_coerce_file(u) for u in updates))

    def normalized(self) -> "FileSet":
        """Return a copy whose paths carry no leading slash."""
        return FileSet(tuple(
            DeployFile(f.path.lstrip("/"), f.content) for f in self.files
        ))

    def total_size(self) -> int:
        return sum(len(f.content) for f in self.files)

    def to_list(self) -> List[Dict[str, str]]:
        return [f.to_dict() for f in self.files]


@dataclass(frozen=True)
class DeploymentConfig:
    """Per-deployment settings supplied by the caller."""
    project_name: str
    build_command: str = "npm run build"
    publish_directory: str = "dist"
    environment_variables: Mapping[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_name": self.project_name,
            "build_command": self.build_command,
            "publish_directory": self.publish_directory,
            # 只记录变量名，避免把密钥写入日志
            "environment_variables": sorted(self.environment_variables),
        }


@dataclass(frozen=True)
class ErrorClassification:
    """分类后的部署错误，始终附着在 AttemptRecord 上"""
    kind: ErrorKind
    message: str
    remediation_hints: Tuple[str, ...] = ()
    file: Optional[str] = None
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "remediation_hints": list(self.remediation_hints),
            "file": self.file,
            "line": self.line,
        }


@dataclass(frozen=True)
class AttemptRecord:
    """一次部署尝试的不可变记录"""
    attempt_number: int
    outcome: AttemptOutcome
    raw_message: str
    classified_error: Optional[ErrorClassification] = None
    logs: str = ""
    provenance: FileSetProvenance = FileSetProvenance.INPUT
    file_count: int = 0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def succeeded(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_number": self.attempt_number,
            "outcome": self.outcome.value,
            "raw_message": self.raw_message,
            "classified_error": (
                self.classified_error.to_dict() if self.classified_error else None
            ),
            # 日志过长时截断
            "logs": self.logs[:2000] if self.logs else self.logs,
            "provenance": self.provenance.value,
            "file_count": self.file_count,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a single executor run."""
    success: bool
    logs: str = ""
    raw_error_message: Optional[str] = None
    error_file: Optional[str] = None
    error_line: Optional[int] = None
    site_id: Optional[str] = None
    site_name: Optional[str] = None
    deploy_url: Optional[str] = None
    admin_url: Optional[str] = None

    @classmethod
    def failed(
        cls,
        message: str,
        logs: str = "",
        file: Optional[str] = None,
        line: Optional[int] = None,
    ) -> "ExecutionResult":
        return cls(
            success=False,
            logs=logs,
            raw_error_message=message,
            error_file=file,
            error_line=line,
        )


@dataclass(frozen=True)
class DeploymentResult:
    """Terminal value of a deploy-with-repair run."""
    success: bool
    reason: TerminationReason
    attempt_history: Tuple[AttemptRecord, ...] = ()
    deploy_url: Optional[str] = None
    admin_url: Optional[str] = None
    site_id: Optional[str] = None
    logs: Optional[str] = None
    error_message: Optional[str] = None
    suggestions: Tuple[str, ...] = ()

    @property
    def attempts(self) -> int:
        return len(self.attempt_history)

    @property
    def cancelled(self) -> bool:
        return self.reason is TerminationReason.CANCELLED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "reason": self.reason.value,
            "deploy_url": self.deploy_url,
            "admin_url": self.admin_url,
            "site_id": self.site_id,
            "logs": self.logs,
            "error_message": self.error_message,
            "suggestions": list(self.suggestions),
            "attempt_history": [r.to_dict() for r in self.attempt_history],
        }

"""Deployment orchestrator: bounded deploy, classify, repair loop."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, List, MutableMapping, Optional, Tuple, TypeVar, Union

from ..errors import DeploymentCancelled, RepairUnavailable
from .classifier import RUNTIME_HINTS, classify_error
from .executor import DeploymentExecutor
from .models import (
    AttemptOutcome,
    AttemptRecord,
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
from .repair import RepairOracleAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3

GENERIC_SUGGESTIONS: Tuple[str, ...] = (
    "Check your build configuration",
    "Verify all dependencies are correctly specified",
    "Review environment variables",
    "Check for syntax errors in your code",
)

REPAIR_UNAVAILABLE_NOTE = (
    "AI-assisted repair was unavailable; configure an LLM API key to enable automatic fixes"
)


class _RunLogger(logging.LoggerAdapter):
    """Prefixes every record with the project being deployed."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['project']}] {msg}", kwargs


class DeploymentOrchestrator:
    """
    部署编排器

    在有限次数内循环执行：部署 → 失败分类 → AI 修复 → 再部署。
    每个实例一次只处理一个部署请求，不与其他实例共享可变状态。
    """

    def __init__(
        self,
        executor: DeploymentExecutor,
        repair_adapter: RepairOracleAdapter,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        log_dir: Optional[Union[str, Path]] = None,
        on_attempt: Optional[Callable[[AttemptRecord], None]] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.executor = executor
        self.repair_adapter = repair_adapter
        self.max_attempts = max_attempts
        self.on_attempt = on_attempt
        self.log_dir = Path(log_dir) if log_dir else None

        self._state = OrchestratorState.IDLE
        self._history: List[AttemptRecord] = []
        self._result: Optional[DeploymentResult] = None
        self._running = False
        self._current_call: Optional["asyncio.Future[Any]"] = None
        self._cancel_reason: Optional[str] = None
        self._last_error: Optional[ErrorClassification] = None
        self._notes: List[str] = []
        self._log: Union[logging.Logger, logging.LoggerAdapter] = logger

        # 日志
        self.deployment_log: dict = {}
        self.current_log_file: Optional[Path] = None

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def attempt_history(self) -> Tuple[AttemptRecord, ...]:
        return tuple(self._history)

    @property
    def result(self) -> Optional[DeploymentResult]:
        return self._result

    def describe_last_attempt(self) -> Optional[AttemptRecord]:
        """Most recent attempt record, for live progress reporting."""
        return self._history[-1] if self._history else None

    # ------------------------------------------------------------------ #
    # Control
    # ------------------------------------------------------------------ #

    def cancel(self, reason: Optional[str] = None) -> None:
        """Abort the running deployment; the loop ends as cancelled."""
        if not self._running:
            return
        self._cancel_reason = reason or "cancelled by caller"
        if self._current_call is not None and not self._current_call.done():
            self._current_call.cancel()

    async def deploy_with_repair(
        self,
        files: FileSet,
        config: DeploymentConfig,
        max_attempts: Optional[int] = None,
    ) -> DeploymentResult:
        """
        部署文件集，失败时调用 AI 修复并重试

        Args:
            files: 待部署的文件集
            config: 部署配置
            max_attempts: 本次调用的最大尝试次数（默认使用实例配置）

        Returns:
            DeploymentResult: 最终结果

        Raises:
            ValueError: max_attempts 小于 1
            RuntimeError: 该实例已有部署在运行
            asyncio.CancelledError: 调用方取消了运行中的任务（结果仍保存在 ``result``）
        """
        limit = self.max_attempts if max_attempts is None else max_attempts
        if limit < 1:
            raise ValueError("max_attempts must be at least 1")
        if self._running:
            raise RuntimeError("a deployment is already running on this orchestrator")

        self._running = True
        self._history = []
        self._result = None
        self._cancel_reason = None
        self._last_error = None
        self._notes = []
        self._state = OrchestratorState.IDLE
        self._log = _RunLogger(logger, {"project": config.project_name})

        try:
            self._init_log(files, config, limit)
            self._log.info("=" * 60)
            self._log.info("🚀 DEPLOYMENT WITH AI REPAIR")
            self._log.info("=" * 60)
            self._log.info("Files: %d, max attempts: %d", len(files), limit)
            return await self._run_loop(files, config, limit)
        except DeploymentCancelled as exc:
            return self._finish_cancelled(exc.reason)
        except asyncio.CancelledError:
            if self._cancel_reason is not None:
                return self._finish_cancelled(self._cancel_reason)
            # 外部取消（如调用方超时）：记录结果后继续向上传播
            self._finish_cancelled("deployment task was cancelled")
            raise
        finally:
            self._running = False
            self._current_call = None

    # ------------------------------------------------------------------ #
    # Loop
    # ------------------------------------------------------------------ #

    async def _run_loop(
        self,
        files: FileSet,
        config: DeploymentConfig,
        limit: int,
    ) -> DeploymentResult:
        working = files
        provenance = FileSetProvenance.INPUT

        for attempt_number in range(1, limit + 1):
            self._check_cancelled()
            self._state = OrchestratorState.ATTEMPTING
            self._log.info("📍 Deployment attempt %d/%d (%s files)", attempt_number, limit, provenance.value)

            execution, classification = await self._attempt(config, working)

            if execution.success:
                record = self._record(attempt_number, AttemptOutcome.SUCCESS, execution, None, provenance, working)
                return self._finish_success(execution, record)

            assert classification is not None
            self._record(attempt_number, AttemptOutcome.FAILURE, execution, classification, provenance, working)
            self._last_error = classification
            self._log.warning(
                "   ❌ Attempt %d failed [%s]: %s",
                attempt_number,
                classification.kind.value,
                classification.message,
            )

            if attempt_number >= limit:
                break

            self._check_cancelled()
            self._state = OrchestratorState.REPAIRING
            self._log.info("   🔧 Deployment failed, attempting AI-assisted fix...")
            try:
                outcome = await self._call(self.repair_adapter.repair(classification, working))
            except RepairUnavailable as exc:
                self._log.warning("   AI repair unavailable: %s", exc)
                if REPAIR_UNAVAILABLE_NOTE not in self._notes:
                    self._notes.append(REPAIR_UNAVAILABLE_NOTE)
                self._log_repair(attempt_number, working, error=f"repair unavailable: {exc}")
                provenance = FileSetProvenance.UNCHANGED
            except Exception as exc:
                self._log.error("   AI repair raised an unexpected error: %s", exc)
                message = f"repair failed: {_describe_exception(exc)}"
                # 下一次尝试前被取消时，这就是最终报告的错误
                self._last_error = ErrorClassification(
                    kind=ErrorKind.RUNTIME_ERROR,
                    message=message,
                    remediation_hints=RUNTIME_HINTS,
                )
                self._log_repair(attempt_number, working, error=message)
                provenance = FileSetProvenance.UNCHANGED
            else:
                working = outcome.files
                provenance = (
                    FileSetProvenance.REPAIRED if outcome.changed else FileSetProvenance.UNCHANGED
                )
                self._log_repair(
                    attempt_number,
                    working,
                    changed=outcome.changed,
                    explanations=outcome.explanations,
                    suggestions=outcome.suggestions,
                    parse_error=outcome.parse_error,
                )

        return self._finish_exhausted()

    async def _attempt(
        self,
        config: DeploymentConfig,
        files: FileSet,
    ) -> Tuple[ExecutionResult, Optional[ErrorClassification]]:
        """Run the executor; exceptions become runtime-error failures."""
        try:
            execution = await self._call(self.executor.execute(config, files))
        except Exception as exc:
            message = _describe_exception(exc)
            self._log.error("   Error during deployment: %s", message)
            execution = ExecutionResult.failed(message)
            return execution, ErrorClassification(
                kind=ErrorKind.RUNTIME_ERROR,
                message=message,
                remediation_hints=RUNTIME_HINTS,
            )

        if execution.success:
            return execution, None
        return execution, classify_error(
            execution.raw_error_message,
            file=execution.error_file,
            line=execution.error_line,
        )

    async def _call(self, awaitable: Awaitable[T]) -> T:
        """Await an external call as a task so ``cancel()`` can abort it."""
        task = asyncio.ensure_future(awaitable)
        self._current_call = task
        try:
            return await task
        finally:
            self._current_call = None

    def _check_cancelled(self) -> None:
        if self._cancel_reason is not None:
            raise DeploymentCancelled(self._cancel_reason)

    def _record(
        self,
        attempt_number: int,
        outcome: AttemptOutcome,
        execution: ExecutionResult,
        classification: Optional[ErrorClassification],
        provenance: FileSetProvenance,
        files: FileSet,
    ) -> AttemptRecord:
        record = AttemptRecord(
            attempt_number=attempt_number,
            outcome=outcome,
            raw_message=(
                "deployment succeeded" if execution.success
                else execution.raw_error_message or "deployment failed"
            ),
            classified_error=classification,
            logs=execution.logs,
            provenance=provenance,
            file_count=len(files),
        )
        self._history.append(record)
        self.deployment_log["attempts"].append(record.to_dict())
        self._save_log()
        if self.on_attempt is not None:
            try:
                self.on_attempt(record)
            except Exception as exc:
                self._log.warning("on_attempt callback failed: %s", exc)
        return record

    def _log_repair(
        self,
        attempt_number: int,
        files: FileSet,
        changed: bool = False,
        explanations: Tuple[str, ...] = (),
        suggestions: Tuple[str, ...] = (),
        parse_error: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        self.deployment_log["repairs"].append({
            "after_attempt": attempt_number,
            "changed": changed,
            "files": files.paths() if changed else [],
            "explanations": list(explanations),
            "suggestions": list(suggestions),
            "parse_error": parse_error,
            "error": error,
        })
        self._save_log()

    # ------------------------------------------------------------------ #
    # Terminal states
    # ------------------------------------------------------------------ #

    def _finish_success(self, execution: ExecutionResult, record: AttemptRecord) -> DeploymentResult:
        self._state = OrchestratorState.SUCCEEDED
        self._result = DeploymentResult(
            success=True,
            reason=TerminationReason.SUCCEEDED,
            attempt_history=self.attempt_history,
            deploy_url=execution.deploy_url,
            admin_url=execution.admin_url,
            site_id=execution.site_id,
            logs=execution.logs,
        )
        self._log.info("=" * 60)
        self._log.info("🎉 Deployment successful on attempt %d: %s", record.attempt_number, execution.deploy_url)
        self._log.info("=" * 60)
        self._finalize_log("success")
        return self._result

    def _finish_exhausted(self) -> DeploymentResult:
        self._state = OrchestratorState.EXHAUSTED
        last_error = self._last_error
        message = (last_error.message if last_error else "") or "Deployment failed after multiple attempts"
        self._result = DeploymentResult(
            success=False,
            reason=TerminationReason.EXHAUSTED,
            attempt_history=self.attempt_history,
            error_message=message,
            suggestions=_build_suggestions(last_error, self._notes),
        )
        self._log.error("❌ Deployment failed after %d attempt(s): %s", len(self._history), message)
        self._finalize_log("failed")
        return self._result

    def _finish_cancelled(self, reason: str) -> DeploymentResult:
        self._state = OrchestratorState.EXHAUSTED
        self._result = DeploymentResult(
            success=False,
            reason=TerminationReason.CANCELLED,
            attempt_history=self.attempt_history,
            error_message=f"Deployment cancelled after {len(self._history)} attempt(s): {reason}",
            suggestions=_build_suggestions(self._last_error, self._notes),
        )
        self._log.warning("⏹️ Deployment cancelled: %s", reason)
        self._finalize_log("cancelled")
        return self._result

    # ------------------------------------------------------------------ #
    # Run log
    # ------------------------------------------------------------------ #

    def _init_log(self, files: FileSet, config: DeploymentConfig, limit: int) -> None:
        """初始化日志文件"""
        self.deployment_log = {
            "version": "1.0",
            "project_name": config.project_name,
            "config": config.to_dict(),
            "max_attempts": limit,
            "files": files.paths(),
            "start_time": datetime.now().isoformat(),
            "end_time": None,
            "status": "running",
            "attempts": [],
            "repairs": [],
            "result": None,
        }
        self.current_log_file = None
        if self.log_dir is None:
            return

        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._log.warning("⚠️ Cannot create log directory %s: %s", self.log_dir, exc)
            return
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"deploy_{config.project_name or 'site'}_{timestamp}_{uuid.uuid4().hex[:6]}.json"
        self.current_log_file = self.log_dir / filename.replace("/", "_").replace(" ", "_")
        self._save_log()
        self._log.info("📝 Logging to: %s", self.current_log_file)

    def _finalize_log(self, status: str) -> None:
        """完成日志记录"""
        self.deployment_log["end_time"] = datetime.now().isoformat()
        self.deployment_log["status"] = status
        self.deployment_log["result"] = self._result.to_dict() if self._result else None
        self.deployment_log["duration_seconds"] = self._calculate_duration()
        self._save_log()
        if self.current_log_file:
            self._log.info("📄 Log saved to: %s", self.current_log_file)

    def _calculate_duration(self) -> float:
        start = datetime.fromisoformat(self.deployment_log["start_time"])
        end = datetime.fromisoformat(self.deployment_log["end_time"])
        return (end - start).total_seconds()

    def _save_log(self) -> None:
        """保存日志到文件"""
        if not self.current_log_file:
            return
        try:
            with open(self.current_log_file, "w", encoding="utf-8") as f:
                json.dump(self.deployment_log, f, indent=2, ensure_ascii=False)
        except OSError as exc:
            # 日志写入失败不影响部署流程
            self._log.warning("⚠️ Failed to write run log %s: %s", self.current_log_file, exc)


def _describe_exception(exc: BaseException) -> str:
    text = str(exc)
    return text if text else type(exc).__name__


def _build_suggestions(
    last_error: Optional[ErrorClassification],
    notes: List[str],
) -> Tuple[str, ...]:
    suggestions = list(last_error.remediation_hints) if last_error else []
    if not suggestions:
        suggestions = list(GENERIC_SUGGESTIONS)
    suggestions.extend(note for note in notes if note not in suggestions)
    return tuple(suggestions)

"""Repair oracle adapter: turns a classified failure into a revised file set."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from ..errors import RepairUnavailable
from .models import DeployFile, ErrorClassification, FileSet
from .prompts import REPAIR_SYSTEM_PROMPT, build_repair_prompt

if TYPE_CHECKING:
    from ..llm.oracle import RepairOracle

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*\n(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[\w-]*\s*\n(.*?)\n?```", re.DOTALL)


class RepairParseError(ValueError):
    """The oracle answered, but not with a usable fix payload."""


@dataclass(frozen=True)
class RepairOutcome:
    """Result of one repair request."""
    files: FileSet
    changed: bool = False
    suggestions: Tuple[str, ...] = ()
    explanations: Tuple[str, ...] = ()
    parse_error: Optional[str] = None


def extract_json_payload(text: str) -> Dict[str, Any]:
    """Best-effort extraction of a JSON object from free-form model output.

    Candidates, in order: ```json fenced blocks, any fenced blocks, the
    outermost ``{...}`` span, then the whole text. The first object carrying
    ``fixes`` wins; otherwise the first object found.
    """
    candidates: List[str] = []
    for pattern in (_JSON_FENCE, _ANY_FENCE):
        candidates.extend(match.group(1) for match in pattern.finditer(text))
    start_idx = text.find("{")
    end_idx = text.rfind("}") + 1
    if start_idx != -1 and end_idx > start_idx:
        candidates.append(text[start_idx:end_idx])
    candidates.append(text)

    first_object: Optional[Dict[str, Any]] = None
    last_error: Optional[Exception] = None
    for candidate in candidates:
        try:
            data = json.loads(candidate.strip())
        except json.JSONDecodeError as exc:
            last_error = exc
            continue
        if not isinstance(data, dict):
            last_error = RepairParseError(f"expected a JSON object, got {type(data).__name__}")
            continue
        if "fixes" in data:
            return data
        if first_object is None:
            first_object = data
    if first_object is not None:
        return first_object
    raise RepairParseError(f"no JSON object found in oracle response: {last_error}")


def parse_fixes(data: Dict[str, Any]) -> Tuple[List[DeployFile], List[str], List[str]]:
    """Validate the payload structure and return (fixes, suggestions, explanations)."""
    raw_fixes = data.get("fixes")
    if not isinstance(raw_fixes, list):
        raise RepairParseError("payload has no 'fixes' list")

    fixes: List[DeployFile] = []
    explanations: List[str] = []
    for index, item in enumerate(raw_fixes):
        if not isinstance(item, dict):
            raise RepairParseError(f"fix #{index} is not an object")
        path = item.get("fileName", item.get("path"))
        content = item.get("content")
        if not isinstance(path, str) or not path.strip():
            raise RepairParseError(f"fix #{index} has no file path")
        if not isinstance(content, str):
            raise RepairParseError(f"fix #{index} ({path}) has no string content")
        fixes.append(DeployFile(path=path.strip().lstrip("/"), content=content))
        explanation = item.get("explanation")
        if isinstance(explanation, str) and explanation:
            explanations.append(f"{path}: {explanation}")

    raw_suggestions = data.get("suggestions") or []
    suggestions = [s for s in raw_suggestions if isinstance(s, str) and s.strip()] \
        if isinstance(raw_suggestions, list) else []
    return fixes, suggestions, explanations


class RepairOracleAdapter:
    """Frames repair requests for the oracle and parses its answers.

    A broken or unusable answer never propagates: the adapter hands back
    the input FileSet so the orchestrator can simply try again. The only
    error it raises is ``RepairUnavailable``.
    """

    def __init__(self, oracle: Optional["RepairOracle"]) -> None:
        self.oracle = oracle

    def is_available(self) -> bool:
        return self.oracle is not None and self.oracle.is_available()

    async def repair(
        self,
        error: ErrorClassification,
        files: FileSet,
    ) -> RepairOutcome:
        if not self.is_available():
            raise RepairUnavailable("AI repair service is not configured")
        assert self.oracle is not None

        prompt = build_repair_prompt(error, files)
        logger.info("Requesting AI repair for %s (%d files)", error.kind.value, len(files))
        try:
            response = await self.oracle.generate(prompt, system_prompt=REPAIR_SYSTEM_PROMPT)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("AI repair call failed: %s", exc)
            return RepairOutcome(files=files, parse_error=f"oracle call failed: {exc}")

        try:
            data = extract_json_payload(response or "")
            fixes, suggestions, explanations = parse_fixes(data)
        except RepairParseError as exc:
            logger.error("Failed to parse AI fix response: %s", exc)
            logger.debug("Raw response: %s", (response or "")[:500])
            return RepairOutcome(files=files, parse_error=str(exc))

        if suggestions:
            logger.info("AI suggested: %s", "; ".join(suggestions))
        revised = files.replace(fixes)
        if revised == files:
            logger.info("AI repair produced no effective changes")
            return RepairOutcome(
                files=files,
                suggestions=tuple(suggestions),
                explanations=tuple(explanations),
            )

        logger.info("AI repair updated %d file(s): %s", len(fixes), ", ".join(f.path for f in fixes))
        return RepairOutcome(
            files=revised,
            changed=True,
            suggestions=tuple(suggestions),
            explanations=tuple(explanations),
        )

"""Keyword-based classification of raw deployment failures."""

from __future__ import annotations

from typing import Optional, Tuple

from .models import ErrorClassification, ErrorKind

# (kind, keywords, hints) 按优先级排列，先匹配者胜出
_RULES: Tuple[Tuple[ErrorKind, Tuple[str, ...], Tuple[str, ...]], ...] = (
    (
        ErrorKind.DEPENDENCY_ERROR,
        ("module not found", "package not found"),
        (
            "Add missing dependencies to package.json",
            "Check import paths are correct",
            "Verify package names and versions",
        ),
    ),
    (
        ErrorKind.BUILD_ERROR,
        ("syntax error", "unexpected token"),
        (
            "Check for syntax errors in your code",
            "Verify TypeScript configuration",
            "Check for missing semicolons or brackets",
        ),
    ),
    (
        ErrorKind.CONFIG_ERROR,
        ("environment", "env"),
        (
            "Check environment variables are set",
            "Verify .env file configuration",
            "Check build environment settings",
        ),
    ),
)

RUNTIME_HINTS: Tuple[str, ...] = (
    "Check build logs for more details",
    "Verify all files are included",
    "Review build command and settings",
)


def classify_error(
    raw_message: Optional[str],
    file: Optional[str] = None,
    line: Optional[int] = None,
) -> ErrorClassification:
    """Map a raw failure message to an error kind plus remediation hints.

    Never raises: anything that matches no keyword family is a runtime error.
    """
    message = raw_message or ""
    lowered = message.lower()
    for kind, keywords, hints in _RULES:
        if any(keyword in lowered for keyword in keywords):
            return ErrorClassification(
                kind=kind,
                message=message,
                remediation_hints=hints,
                file=file,
                line=line,
            )
    return ErrorClassification(
        kind=ErrorKind.RUNTIME_ERROR,
        message=message,
        remediation_hints=RUNTIME_HINTS,
        file=file,
        line=line,
    )

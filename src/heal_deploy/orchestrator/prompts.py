"""Prompt templates for AI-assisted deployment repair."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from .models import ErrorClassification, FileSet


REPAIR_SYSTEM_PROMPT = (
    "You are a senior web engineer fixing build and deployment failures. "
    "You only answer with JSON."
)

# 期望的修复响应格式
REPAIR_RESPONSE_SCHEMA = """```json
{
  "fixes": [
    {
      "fileName": "path/to/file",
      "content": "corrected file content",
      "explanation": "what was fixed"
    }
  ],
  "suggestions": ["additional suggestions for preventing similar errors"]
}
```"""


def format_files(files: "FileSet") -> str:
    """Render every file with a header line so the model sees full contents."""
    return "\n\n".join(f"=== {f.path} ===\n{f.content}" for f in files)


def build_repair_prompt(error: "ErrorClassification", files: "FileSet") -> str:
    """构建修复请求提示

    Args:
        error: 分类后的部署错误
        files: 当前文件集

    Returns:
        完整的提示文本
    """
    lines: List[str] = [
        "Fix this deployment error in the provided files:",
        "",
        f"Error Type: {error.kind.value}",
        f"Error Message: {error.message}",
    ]
    if error.file:
        lines.append(f"Error File: {error.file}")
    if error.line is not None:
        lines.append(f"Error Line: {error.line}")
    if error.remediation_hints:
        lines.append("")
        lines.append("Likely remedies:")
        lines.extend(f"- {hint}" for hint in error.remediation_hints)

    lines.append("")
    lines.append("Files to fix:")
    lines.append(format_files(files) if files else "(no files were provided)")
    lines.append("")
    lines.append(
        "Please provide the corrected files that fix the deployment error. Focus on:\n"
        "1. Fixing syntax errors\n"
        "2. Adding missing dependencies\n"
        "3. Correcting configuration issues\n"
        "4. Resolving build failures\n"
        "Only include files you changed or created, with their complete content."
    )
    lines.append("")
    lines.append("Return the response as JSON:")
    lines.append(REPAIR_RESPONSE_SCHEMA)
    return "\n".join(lines)

"""Unified path constants for heal-deploy.

All local data is stored under the .heal-deploy directory:
- .heal-deploy/sites/   # Sites published by the local hosting provider
- agent_logs/           # Per-run deployment logs
"""

from pathlib import Path

# 基础目录（在当前工作目录下）
BASE_DIR = Path(".heal-deploy")

# 各子目录
SITES_DIR = BASE_DIR / "sites"    # 本地托管站点
LOGS_DIR = Path("agent_logs")     # 部署日志

"""Configuration loading utilities for heal-deploy."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .paths import LOGS_DIR, SITES_DIR

# Load .env file if it exists
load_dotenv()

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path("config/default_config.json")

# Provider default configurations
# 提供商默认配置：当用户未指定 model 或 endpoint 时使用
PROVIDER_DEFAULTS = {
    "gemini": {
        "model": "gemini-2.0-flash-001",
        "endpoint": None  # 自动生成 endpoint
    },
    "openai": {
        "model": "gpt-4o",
        "endpoint": "https://api.openai.com/v1"
    },
    "anthropic": {
        "model": "claude-3-5-sonnet-20241022",
        "endpoint": "https://api.anthropic.com/v1"
    },
    "claude": {
        "model": "claude-3-5-sonnet-20241022",
        "endpoint": "https://api.anthropic.com/v1"
    },
    "openai-compatible": {
        "model": None,  # 依赖用户配置
        "endpoint": None  # 必须由用户指定
    },
    "custom": {  # openai-compatible 的别名
        "model": None,
        "endpoint": None
    }
}


@dataclass
class LLMConfig:
    """Configuration for the repair oracle's LLM."""

    provider: str = "gemini"
    model: Optional[str] = None
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    temperature: float = 0.0
    proxy: Optional[str] = None  # 代理设置，如 "http://127.0.0.1:7890"


@dataclass
class RepairConfig:
    """Configuration for the deploy/repair loop."""

    max_attempts: int = 3           # 最大部署尝试次数
    request_timeout: int = 120      # 单次修复请求超时（秒）
    deploy_timeout: Optional[float] = None  # 整体部署超时（秒），None 表示不限制


@dataclass
class HostingConfig:
    """Settings for the hosting provider and derived site URLs."""

    provider: str = "local"
    sites_root: str = str(SITES_DIR)
    site_url_template: str = "https://{name}.netlify.app"
    admin_url_template: str = "https://app.netlify.com/sites/{name}"
    max_name_length: int = 63


@dataclass
class AppConfig:
    """Top-level configuration."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    repair: RepairConfig = field(default_factory=RepairConfig)
    hosting: HostingConfig = field(default_factory=HostingConfig)
    log_dir: str = str(LOGS_DIR)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        # 过滤掉以下划线开头的注释字段
        def section(name: str) -> Dict[str, Any]:
            data = payload.get(name, {}) or {}
            return {k: v for k, v in data.items() if not k.startswith("_")}

        return cls(
            llm=LLMConfig(**{**LLMConfig().__dict__, **section("llm")}),
            repair=RepairConfig(**{**RepairConfig().__dict__, **section("repair")}),
            hosting=HostingConfig(**{**HostingConfig().__dict__, **section("hosting")}),
            log_dir=payload.get("log_dir") or str(LOGS_DIR),
        )


def _apply_environment(config: AppConfig) -> AppConfig:
    """Overlay environment variables (higher priority than the config file)."""
    provider = config.llm.provider.lower()
    if not config.llm.api_key:
        provider_key = f"HEAL_DEPLOY_{provider.upper().replace('-', '_')}_API_KEY"
        config.llm.api_key = os.getenv(provider_key) or os.getenv("HEAL_DEPLOY_LLM_API_KEY")
        if not config.llm.api_key and provider == "gemini":
            config.llm.api_key = os.getenv("GEMINI_API_KEY")

    env_proxy = os.getenv("HEAL_DEPLOY_LLM_PROXY")
    if env_proxy:
        config.llm.proxy = env_proxy

    env_attempts = os.getenv("HEAL_DEPLOY_MAX_ATTEMPTS")
    if env_attempts:
        config.repair.max_attempts = int(env_attempts)

    env_sites_root = os.getenv("HEAL_DEPLOY_SITES_ROOT")
    if env_sites_root:
        config.hosting.sites_root = env_sites_root

    # 如果用户未指定 model 或 endpoint，使用提供商默认值
    if provider in PROVIDER_DEFAULTS:
        defaults = PROVIDER_DEFAULTS[provider]
        if not config.llm.model and defaults["model"]:
            config.llm.model = defaults["model"]
        if not config.llm.endpoint:
            config.llm.endpoint = defaults["endpoint"]

    if config.repair.max_attempts < 1:
        raise ValueError("repair.max_attempts must be at least 1")
    return config


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path` or the default location.

    An explicit `path` must exist. Without one, `config/default_config.json`
    is used when present, otherwise built-in defaults.

    Environment variables (higher priority than config file):
    - HEAL_DEPLOY_<PROVIDER>_API_KEY or HEAL_DEPLOY_LLM_API_KEY: LLM API key
    - GEMINI_API_KEY: API key for the gemini provider
    - HEAL_DEPLOY_LLM_PROXY: HTTP proxy for LLM requests
    - HEAL_DEPLOY_MAX_ATTEMPTS: Maximum deployment attempts
    - HEAL_DEPLOY_SITES_ROOT: Root directory for the local hosting provider
    """
    if path:
        candidate = Path(path)
        if not candidate.is_file():
            raise FileNotFoundError(f"Could not find configuration file: {candidate}")
    else:
        candidate = _DEFAULT_CONFIG_PATH

    if candidate.is_file():
        with candidate.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        config = AppConfig.from_dict(data)
    else:
        logger.debug("No configuration file found, using defaults")
        config = AppConfig()

    return _apply_environment(config)

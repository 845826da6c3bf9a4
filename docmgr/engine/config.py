"""
docmgr Configuration — Load and validate docmgr.yaml at startup.

Usage:
    from docmgr.engine.config import load_config, get_config
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from docmgr.engine.errors import ConfigError

CONFIG_FILENAME = "docmgr.yaml"
CONFIG_ENV_VAR = "DOCMGR_CONFIG"

DEFAULT_ALLOWED_MIME_TYPES = [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
]


# ---------------------------------------------------------------------------
# Pydantic models for docmgr.yaml
# ---------------------------------------------------------------------------

class DatabaseConfig(BaseModel):
    url: str = "sqlite:///docmgr.sqlite"
    db_schema: Optional[str] = None
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True
    auto_create: bool = True


class RedisConfig(BaseModel):
    url: str = "redis://localhost:6379/0"


class SecurityConfig(BaseModel):
    session_backend: str = "database"
    session_timeout: int = 86400
    cookie_name: str = "docmgr_session"
    enforce_folder_locks: bool = True
    login_code_attempts: int = 10
    # Seeded only into an empty users table
    seed_admin_name: str = "Super Admin"
    seed_admin_code: Optional[str] = "ADMIN-2025"
    default_folder_name: Optional[str] = "General Documents"

    @field_validator("session_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("database", "redis"):
            raise ValueError(f"session_backend must be database/redis, got '{v}'")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".docmgr/logs"
    file_logs: bool = True
    flush_interval_ms: int = 100
    flush_batch_size: int = 50
    max_queue_size: int = 10000


class DocumentsConfig(BaseModel):
    upload_dir: str = "uploads"
    max_upload_size_mb: int = 50
    allowed_mime_types: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES)
    )
    company_name: str = "ZEOLF Technology"
    pdf_renderer: str = "reportlab"

    @field_validator("pdf_renderer")
    @classmethod
    def validate_renderer(cls, v: str) -> str:
        if v not in ("reportlab", "text"):
            raise ValueError(f"pdf_renderer must be reportlab/text, got '{v}'")
        return v

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


class AssistConfig(BaseModel):
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: str = "grok-2-latest"
    timeout: float = 30.0
    retries: int = 1


class DocMgrConfig(BaseModel):
    """Root model for docmgr.yaml."""
    name: str = "ZEOLF Document Management"
    version: str = "1.0.0"
    environment: str = "dev"

    database: DatabaseConfig = DatabaseConfig()
    redis: RedisConfig = RedisConfig()
    security: SecurityConfig = SecurityConfig()
    logging: LoggingConfig = LoggingConfig()
    documents: DocumentsConfig = DocumentsConfig()
    assist: AssistConfig = AssistConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[DocMgrConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for docmgr.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def load_config(config_path: Optional[str] = None) -> DocMgrConfig:
    """
    Load and validate docmgr.yaml.

    Args:
        config_path: Explicit path. If None, uses $DOCMGR_CONFIG, then auto-discovers.

    Returns:
        Validated DocMgrConfig instance.

    Raises:
        ConfigError when the file exists but is not valid.
    """
    global _config

    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR)
    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    path = Path(config_path)
    if not path.exists():
        # Return defaults if no config file
        _config = DocMgrConfig()
        return _config

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    # Allow an optional top-level "platform:" block for name/version/environment
    platform_data = raw.pop("platform", {}) or {}
    for key in ("name", "version", "environment"):
        if key in platform_data and key not in raw:
            raw[key] = platform_data[key]

    try:
        _config = DocMgrConfig(**raw)
    except ValueError as e:
        raise ConfigError(f"Invalid config {path}: {e}", config_path=str(path)) from e
    return _config


def get_config() -> DocMgrConfig:
    """Get the currently loaded config, loading if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: DocMgrConfig) -> None:
    """Install an already-built config (used by create_app and tests)."""
    global _config
    _config = config

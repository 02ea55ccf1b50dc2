"""Configuration management with environment overrides."""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "configs/recorder.yaml"

DEFAULT_IGNORE_GLOBS = [
    ".agent-dataset/**",
    "node_modules/**",
    ".next/**",
    "dist/**",
    "build/**",
    "out/**",
]

DEFAULT_REDACTION_PATTERNS = [
    r"(?:ghp|github_pat)_[A-Za-z0-9_]{20,}",
    r"(?:sk|pk)_[A-Za-z0-9]{16,}",
    r"[A-Za-z0-9_\-]{24,}\.[A-Za-z0-9_\-]{20,}\.[A-Za-z0-9_\-]{20,}",
    r"(?i:(api[-_ ]?key|token|secret)\s*[:=]\s*[^\s\"']+)",
]

DEFAULT_MAX_COMMAND_OUTPUT_CHARS = 50_000
MIN_COMMAND_OUTPUT_CHARS = 1024


class RecorderConfig(BaseModel):
    """Session recording configuration."""
    ignore_globs: List[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_GLOBS))
    include_globs: List[str] = Field(default_factory=list)
    redaction_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_REDACTION_PATTERNS))
    max_command_output_chars: int = Field(default=DEFAULT_MAX_COMMAND_OUTPUT_CHARS)
    default_timeout_ms: int = Field(default=120_000, ge=1, le=60 * 60 * 1000)
    output_dir: str = Field(default=".agent-dataset/sessions")
    skip_binary_files: bool = Field(default=True)

    @field_validator("ignore_globs")
    @classmethod
    def _fallback_ignore_globs(cls, value: List[str]) -> List[str]:
        cleaned = [entry.strip() for entry in value if entry and entry.strip()]
        return cleaned or list(DEFAULT_IGNORE_GLOBS)

    @field_validator("redaction_patterns")
    @classmethod
    def _fallback_redaction_patterns(cls, value: List[str]) -> List[str]:
        return value or list(DEFAULT_REDACTION_PATTERNS)

    @field_validator("max_command_output_chars")
    @classmethod
    def _floor_output_chars(cls, value: int) -> int:
        return max(MIN_COMMAND_OUTPUT_CHARS, int(value))


class ServerConfig(BaseModel):
    """Ingest/export server configuration."""
    api_tokens: List[str] = Field(default_factory=list)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8787, ge=1, le=65535)
    max_record_bytes: int = Field(default=5 * 1024 * 1024, ge=1024, le=50 * 1024 * 1024)
    store_dir: str = Field(default=".dataset-store")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")
    structured: bool = Field(default=True)


class AppConfig(BaseModel):
    """Application configuration."""
    recorder: RecorderConfig = Field(default_factory=RecorderConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load configuration from file with environment overrides.

    Args:
        config_path: Path to config file (default: $DATASET_CONFIG or configs/recorder.yaml)

    Returns:
        Loaded configuration
    """
    if config_path is None:
        config_path = os.getenv("DATASET_CONFIG", DEFAULT_CONFIG_PATH)

    config_dict: Dict[str, Any] = {}

    # Load from file if exists
    if Path(config_path).exists():
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}
        logger.debug(f"Loaded configuration from {config_path}")

    # Apply environment overrides
    if ignore_globs := os.getenv("DATASET_IGNORE_GLOBS"):
        config_dict.setdefault("recorder", {})["ignore_globs"] = _split_list(ignore_globs)
    if max_chars := os.getenv("DATASET_MAX_COMMAND_OUTPUT_CHARS"):
        config_dict.setdefault("recorder", {})["max_command_output_chars"] = int(max_chars)
    if tokens := os.getenv("DATASET_API_TOKENS"):
        config_dict.setdefault("server", {})["api_tokens"] = _split_list(tokens)
    if port := os.getenv("DATASET_PORT"):
        config_dict.setdefault("server", {})["port"] = int(port)
    if max_bytes := os.getenv("DATASET_MAX_RECORD_BYTES"):
        config_dict.setdefault("server", {})["max_record_bytes"] = int(max_bytes)
    if store_dir := os.getenv("DATASET_STORE_DIR"):
        config_dict.setdefault("server", {})["store_dir"] = store_dir
    if level := os.getenv("DATASET_LOG_LEVEL"):
        config_dict.setdefault("logging", {})["level"] = level.upper()

    return AppConfig(**config_dict)

"""
BIOGRAPH CONFIG - Explorer Configuration

Configuration is read once from config/biograph.toml and converted into
typed msgspec structs. Environment variables override individual LLM
settings so deployments do not need to edit the file.

Usage:
    from infrastructure.config import get_config

    config = get_config()
    config.overlay.density          # 30.0
    config.llm.reasoning_model      # "gemini/gemini-2.5-pro"

A missing or unreadable file is not fatal: a warning is emitted and the
defaults below apply.
"""
import os
import tomllib
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import msgspec

from agents.llm import DEFAULT_FAST_MODEL, DEFAULT_REASONING_MODEL, ModelRouter, StructuredLLM
from infrastructure.logger import LoggerConfig


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "biograph.toml"


# =============================================================================
# CONFIG SECTIONS
# =============================================================================

class ExplorerSection(msgspec.Struct, kw_only=True):
    default_domain: str = "SARS-CoV-2"
    default_layout: str = "3d-force"


class OverlaySection(msgspec.Struct, kw_only=True):
    density: float = 30.0
    tick_interval: float = 0.05


class LLMSection(msgspec.Struct, kw_only=True):
    fast_model: str = DEFAULT_FAST_MODEL
    reasoning_model: str = DEFAULT_REASONING_MODEL
    temperature: float = 0.0
    max_tokens: int = 8192
    timeout: float = 60.0


class LoggingSection(msgspec.Struct, kw_only=True):
    level: str = "INFO"
    mutation_log: bool = False
    mutation_log_dir: str = "workspace/logs"


class ExplorerConfig(msgspec.Struct, kw_only=True):
    explorer: ExplorerSection = msgspec.field(default_factory=ExplorerSection)
    overlay: OverlaySection = msgspec.field(default_factory=OverlaySection)
    llm: LLMSection = msgspec.field(default_factory=LLMSection)
    logging: LoggingSection = msgspec.field(default_factory=LoggingSection)

    def router(self) -> ModelRouter:
        return ModelRouter({
            "fast_model": self.llm.fast_model,
            "reasoning_model": self.llm.reasoning_model,
        })

    def structured_llm(self) -> StructuredLLM:
        return StructuredLLM(
            model=self.llm.fast_model,
            temperature=self.llm.temperature,
            max_tokens=self.llm.max_tokens,
            timeout=self.llm.timeout,
        )

    def logger_config(self) -> LoggerConfig:
        return LoggerConfig(
            enable_file_log=self.logging.mutation_log,
            log_path=Path(self.logging.mutation_log_dir),
        )


# =============================================================================
# LOADING
# =============================================================================

def load_toml_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read the raw TOML tables.

    Returns:
        Dict of sections, or {} if the file cannot be read
    """
    path = Path(path or os.getenv("BIOGRAPH_CONFIG") or DEFAULT_CONFIG_PATH)
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        warnings.warn(f"Failed to load config from {path}: {e}")
        return {}


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    llm = dict(raw.get("llm", {}))
    if os.getenv("BIOGRAPH_LLM_MODEL"):
        llm["fast_model"] = os.environ["BIOGRAPH_LLM_MODEL"]
    if os.getenv("BIOGRAPH_REASONING_MODEL"):
        llm["reasoning_model"] = os.environ["BIOGRAPH_REASONING_MODEL"]
    if os.getenv("BIOGRAPH_LLM_TEMPERATURE"):
        llm["temperature"] = float(os.environ["BIOGRAPH_LLM_TEMPERATURE"])
    return {**raw, "llm": llm}


def load_config(path: Optional[Path] = None) -> ExplorerConfig:
    """
    Build an ExplorerConfig from TOML plus environment overrides.

    An invalid value anywhere in the file drops the whole file in favour of
    the defaults, with a warning. Environment overrides still apply.
    """
    raw = _apply_env_overrides(load_toml_config(path))
    try:
        return msgspec.convert(raw, type=ExplorerConfig)
    except msgspec.ValidationError as e:
        warnings.warn(f"Invalid configuration, using defaults: {e}")
        return msgspec.convert(_apply_env_overrides({}), type=ExplorerConfig)


# =============================================================================
# SINGLETON
# =============================================================================

_config: Optional[ExplorerConfig] = None


def get_config() -> ExplorerConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached config (next get_config() reloads)."""
    global _config
    _config = None

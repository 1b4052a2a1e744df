from __future__ import annotations

import os
from dataclasses import dataclass

from playboard.errors import InvalidSettingError

AI_DEPTHS = (2, 3, 4)

# ---- Defaults ----
DEFAULT_AI_URL = "http://localhost:8000"
DEFAULT_EVAL_URL = "wss://chess-api.com/v1"
DEFAULT_EVAL_DEPTH = 18
DEFAULT_EVAL_VARIANTS = 1


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidSettingError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise InvalidSettingError(f"{name} must be a number, got {raw!r}") from None


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    ai_url: str = DEFAULT_AI_URL
    ai_timeout: float = 30.0
    ai_depth: int = 2
    eval_url: str = DEFAULT_EVAL_URL
    eval_depth: int = DEFAULT_EVAL_DEPTH
    eval_variants: int = DEFAULT_EVAL_VARIANTS
    log_level: str = "INFO"
    show_evaluation: bool = False

    def __post_init__(self) -> None:
        if self.ai_depth not in AI_DEPTHS:
            raise InvalidSettingError(f"AI depth must be one of {AI_DEPTHS}, got {self.ai_depth}")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            ai_url=os.environ.get("PLAYBOARD_AI_URL", DEFAULT_AI_URL).rstrip("/"),
            ai_timeout=_env_float("PLAYBOARD_AI_TIMEOUT", 30.0),
            ai_depth=_env_int("PLAYBOARD_AI_DEPTH", 2),
            eval_url=os.environ.get("PLAYBOARD_EVAL_URL", DEFAULT_EVAL_URL),
            eval_depth=_env_int("PLAYBOARD_EVAL_DEPTH", DEFAULT_EVAL_DEPTH),
            log_level=os.environ.get("PLAYBOARD_LOG_LEVEL", "INFO").upper(),
            show_evaluation=_env_flag("PLAYBOARD_SHOW_EVAL"),
        )

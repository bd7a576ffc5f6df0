"""
CasePilot Configuration

Runtime settings read from ``CP_*`` environment variables.

| Variable                  | Default          | Meaning                                   |
|---------------------------|------------------|-------------------------------------------|
| CP_LOG_LEVEL              | INFO             | Level for the ``casepilot`` logger        |
| CP_LOG_JSON               | true             | Emit structured JSON log lines            |
| CP_RULE_PACK              | (bundled)        | Path to a rule pack YAML/JSON file        |
| CP_WORKFLOW_PACK          | (bundled)        | Path to a workflow pack YAML/JSON file    |
| CP_HISTORY_LIMIT          | 1000             | Evaluation results kept in memory         |
| CP_DEADLINE_BUFFER_HOURS  | 24               | Dependency deadline buffer                |
| CP_ROLL_TO_BUSINESS_DAY   | false            | Roll computed deadlines to a court day    |
| CP_DOCS_ENABLED           | true             | Serve /docs and /redoc                    |
| CP_CORS_ORIGINS           | *                | Comma-separated allowed origins           |
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of the process configuration."""
    log_level: str = "INFO"
    log_json: bool = True
    rule_pack: Optional[str] = None
    workflow_pack: Optional[str] = None
    history_limit: int = 1000
    deadline_buffer_hours: float = 24.0
    roll_to_business_day: bool = False
    docs_enabled: bool = True
    cors_origins: tuple[str, ...] = field(default_factory=lambda: ("*",))

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from the current environment."""
        origins = os.getenv("CP_CORS_ORIGINS", "*")
        return cls(
            log_level=os.getenv("CP_LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("CP_LOG_JSON", "true"),
            rule_pack=os.getenv("CP_RULE_PACK") or None,
            workflow_pack=os.getenv("CP_WORKFLOW_PACK") or None,
            history_limit=int(os.getenv("CP_HISTORY_LIMIT", "1000")),
            deadline_buffer_hours=float(os.getenv("CP_DEADLINE_BUFFER_HOURS", "24")),
            roll_to_business_day=_env_bool("CP_ROLL_TO_BUSINESS_DAY", "false"),
            docs_enabled=_env_bool("CP_DOCS_ENABLED", "true"),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )


def get_settings() -> Settings:
    """Read settings fresh from the environment."""
    return Settings.from_env()

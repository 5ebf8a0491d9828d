"""Run configuration for the explorer."""
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: Optional[bool] = None) -> Optional[bool]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in TRUE_VALUES


def _env_number(name: str, cast: type) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return cast(value)


class ExplorerConfig(BaseModel):
    """
    Settings for one exploration run.

    strict: abort the whole run when a queue entry fails to resolve instead of
        skipping it.
    raise_on_unresolved: raise when the insert order leaves a residual. Follows
        `strict` when unset.
    timeout_seconds / max_entities: checked once per dequeued entry; exceeding
        them stops the run and marks the result incomplete.
    """
    strict: bool = False
    raise_on_unresolved: Optional[bool] = None
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    max_entities: Optional[int] = Field(default=None, gt=0)
    log_level: str = "INFO"
    database_url: Optional[str] = None

    @property
    def fail_on_residual(self) -> bool:
        if self.raise_on_unresolved is None:
            return self.strict
        return self.raise_on_unresolved

    @classmethod
    def from_env(cls, **overrides) -> "ExplorerConfig":
        """Build a config from DBEXPLORER_* environment variables (and .env)."""
        load_dotenv()
        values = {
            "strict": _env_flag("DBEXPLORER_STRICT", False),
            "raise_on_unresolved": _env_flag("DBEXPLORER_RAISE_ON_UNRESOLVED"),
            "timeout_seconds": _env_number("DBEXPLORER_TIMEOUT", float),
            "max_entities": _env_number("DBEXPLORER_MAX_ENTITIES", int),
            "log_level": os.getenv("DBEXPLORER_LOG_LEVEL", "INFO").upper(),
            "database_url": os.getenv("DBEXPLORER_DATABASE_URL"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

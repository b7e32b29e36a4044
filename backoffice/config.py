"""Scheduler configuration loaded from the environment."""
import os
from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from a local .env if present
load_dotenv()


class SchedulerSettings(BaseModel):
    """Runtime settings for the recurring task scheduler."""
    database_url: str = "sqlite:///./backoffice.db"
    timezone: str = "UTC"
    interval_seconds: int = Field(default=3600, ge=1)
    rule_timeout_seconds: float = Field(default=30.0, gt=0)
    max_workers: int = Field(default=1, ge=1)
    # 1 = single-step advancement per run; >1 = bounded catch-up
    max_catch_up_steps: int = Field(default=1, ge=1)

    @classmethod
    def from_env(cls) -> "SchedulerSettings":
        """Build settings from environment variables, falling back to defaults."""
        values = {}
        env_map = {
            "database_url": "DATABASE_URL",
            "timezone": "SCHEDULER_TIMEZONE",
            "interval_seconds": "SCHEDULER_INTERVAL_SECONDS",
            "rule_timeout_seconds": "RULE_TIMEOUT_SECONDS",
            "max_workers": "GENERATION_MAX_WORKERS",
            "max_catch_up_steps": "MAX_CATCH_UP_STEPS",
        }
        for field_name, env_name in env_map.items():
            raw = os.environ.get(env_name)
            if raw not in (None, ""):
                values[field_name] = raw
        return cls(**values)

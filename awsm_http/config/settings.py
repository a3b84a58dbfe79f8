"""Engine settings."""

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field


class EngineSettings(BaseModel):
    """Knobs for the request engine, loadable from YAML."""

    faker_locale: str = "en"
    seed: Optional[int] = None

    # Transport
    timeout: float = 30.0
    follow_redirects: bool = True
    verify_tls: bool = True
    retries: int = Field(default=0, ge=0)
    retry_wait: float = 0.5

    # State
    history_limit: int = Field(default=50, ge=1)
    persist_script_variables: bool = True

    # Scripts
    script_timeout: float = 5.0

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "EngineSettings":
        """Load settings from a YAML file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

"""Configuration model for MasteryLab."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class SelectionStrategy(str, Enum):
    RANDOM = "random"
    LEAST_SEEN = "least_seen"


class MasteryConfig(BaseModel):
    required_streak: int = Field(default=3, ge=1)
    max_avg_latency_ms: int = Field(default=30000, ge=0)
    max_hints: int = Field(default=1, ge=0)


class SelectionConfig(BaseModel):
    strategy: SelectionStrategy = SelectionStrategy.RANDOM
    # How many trailing history entries are excluded from remediation picks
    recent_window: int = Field(default=2, ge=2, le=3)
    seed: Optional[int] = None


def _default_data_dir() -> Path:
    env = os.environ.get("MASTERYLAB_DATA_DIR")
    if env:
        return Path(env)
    return Path.home() / ".masterylab"


class Settings(BaseModel):
    mastery: MasteryConfig = Field(default_factory=MasteryConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    data_dir: Path = Field(default_factory=_default_data_dir)

    @property
    def db_path(self) -> Path:
        return self.data_dir / "state.db"

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        config_path = config_path or (_default_data_dir() / "config.yaml")
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        return cls()

    def save(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        config_path = self.data_dir / "config.yaml"
        with open(config_path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)

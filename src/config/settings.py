# src/config/settings.py
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.feedback.settings import FeedbackSettings
from src.history.settings import HistorySettings
from src.leaderboard.settings import LeaderboardSettings
from src.scoring.settings import DecaySettings, ScoringSettings
from src.weights.settings import NormalizerSettings


class SystemConfig(BaseModel):
    name: str = "Multi-Evaluator Ranking Engine"
    version: str = "1.0.0"


class EngineSettings(BaseModel):
    """Settings for the ranking engine."""

    default_title: str = "Untitled Page"
    rank_entities: bool = True


class SchedulerSettings(BaseModel):
    """Settings for the periodic recalibration job."""

    enabled: bool = False
    interval_seconds: int = Field(default=3600, ge=1)
    rebuild_leaderboard: bool = True
    prune: bool = True


class RuntimeConfig(BaseSettings):
    """Runtime options overridable through RANKING_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="RANKING_")

    state_path: Path = Path("data/state/engine_state.json")
    persist_state: bool = True
    log_level: str = "INFO"


class Settings(BaseModel):
    system: SystemConfig = Field(default_factory=SystemConfig)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    decay: DecaySettings = Field(default_factory=DecaySettings)
    feedback: FeedbackSettings = Field(default_factory=FeedbackSettings)
    normalizer: NormalizerSettings = Field(default_factory=NormalizerSettings)
    leaderboard: LeaderboardSettings = Field(default_factory=LeaderboardSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file with env var overrides."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        data.pop("runtime", None)
        runtime = RuntimeConfig()

        return cls(
            **data,
            runtime=runtime,
        )

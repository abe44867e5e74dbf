from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from gated_notes.domain.constants import (
    DEFAULT_BURY_DELAY_HOURS,
    DEFAULT_LEARNING_STEPS,
    DEFAULT_RELEARN_STEPS,
)
from gated_notes.domain.models import SchedulerConfig, StudyMode


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/gated-notes/config.toml",
        Path.home() / ".gated-notes.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for gated-notes.
    Supports loading from:
    1. Environment variables (GATED_NOTES_*)
    2. Config file (~/.config/gated-notes/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="GATED_NOTES_",
        extra="ignore",
    )

    # Paths
    vault_root: Path | None = None

    # Scheduling (minutes)
    learning_steps: list[float] = Field(default_factory=lambda: list(DEFAULT_LEARNING_STEPS))
    relearn_steps: list[float] = Field(default_factory=lambda: list(DEFAULT_RELEARN_STEPS))
    bury_delay_hours: float = DEFAULT_BURY_DELAY_HOURS

    # Study
    gating_enabled: bool = True
    study_mode: StudyMode = StudyMode.CHAPTER
    new_cards_first: bool = False

    # 0 = warnings only, 1 = info, 2+ = debug
    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins
        toml_file = next((f for f in config_files() if f.exists()), None)

        # Earlier sources take priority: CLI > env > TOML
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("vault_root", mode="before")
    @classmethod
    def resolve_vault_root(cls, v: Any) -> Path | None:
        if v is None:
            return None
        return Path(v).expanduser().resolve()

    @field_validator("learning_steps", "relearn_steps")
    @classmethod
    def validate_steps(cls, v: list[float]) -> list[float]:
        if not v:
            raise ValueError("step table must not be empty")
        if any(step <= 0 for step in v):
            raise ValueError("steps must be positive minutes")
        return v

    def scheduler_config(self) -> SchedulerConfig:
        return SchedulerConfig(
            learning_steps=tuple(self.learning_steps),
            relearn_steps=tuple(self.relearn_steps),
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/gated-notes/config.toml (if exists)
    3. Environment variables (GATED_NOTES_*)
    4. cli_overrides (passed from Typer)
    """
    # Typer passes None for options the user did not set.
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    config = AppConfig(**overrides)

    if config.vault_root is None:
        config.vault_root = Path.cwd()

    return config

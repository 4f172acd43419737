from datetime import tzinfo
from pathlib import Path
from typing import Annotated, Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from reviewgate.domain.constants import (
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_NEW_PER_DAY,
    DEFAULT_OVERLAY_INTERVAL,
    DEFAULT_REVIEW_PER_DAY,
    MAX_NEW_PER_DAY,
    MAX_REVIEW_PER_DAY,
)
from reviewgate.domain.models import (
    EscapeValve,
    LearningPreferencesConfig,
    MixMode,
    UnlockPolicy,
)
from reviewgate.domain.ports import ConfigProvider

CONFIG_FILES = [
    Path(".config/reviewgate/config.toml"),
    Path(".reviewgate.toml"),
]


def _default_database_url() -> str:
    return f"sqlite:///{Path.home() / '.config/reviewgate/reviewgate.db'}"


class AppConfig(BaseSettings):
    """
    Configuration model for reviewgate.
    Supports loading from:
    1. Manual overrides (CLI / API)
    2. Environment variables (REVIEWGATE_*)
    3. Config file (~/.config/reviewgate/config.toml or ~/.reviewgate.toml)
    """

    model_config = SettingsConfigDict(
        env_prefix="REVIEWGATE_",
        extra="ignore",
    )

    # Gate
    enabled: bool = True
    blocked_apps: Annotated[set[str], NoDecode] = Field(default_factory=set)

    # Learning policy
    new_per_day: int = Field(default=DEFAULT_NEW_PER_DAY, ge=1, le=MAX_NEW_PER_DAY)
    review_per_day: int = Field(default=DEFAULT_REVIEW_PER_DAY, ge=1, le=MAX_REVIEW_PER_DAY)
    mix_mode: MixMode = MixMode.MIX
    bury_immediate_repeat: bool = True
    overlay_interval: int = Field(default=DEFAULT_OVERLAY_INTERVAL, ge=1)
    unlock_policy: UnlockPolicy = UnlockPolicy.ELAPSED_MINUTES
    escape_valve: EscapeValve = EscapeValve.ALLOW
    timezone: str | None = None

    # Scheduler
    desired_retention: float = Field(default=DEFAULT_DESIRED_RETENTION, gt=0.0, lt=1.0)
    enable_fuzzing: bool = False

    # Storage
    storage: Literal["sql", "memory"] = "sql"
    database_url: str = Field(default_factory=_default_database_url)

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
        toml_file = None
        for candidate in CONFIG_FILES:
            path = Path.home() / candidate
            if path.exists():
                toml_file = path
                break

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("blocked_apps", mode="before")
    @classmethod
    def split_blocked_apps(cls, v: Any) -> Any:
        # Env vars and CLI overrides pass a comma-separated string
        if isinstance(v, str):
            return {part.strip() for part in v.split(",") if part.strip()}
        return v

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                ZoneInfo(v)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValueError(f"Unknown timezone: {v}") from e
        return v

    def to_preferences(self) -> LearningPreferencesConfig:
        return LearningPreferencesConfig(
            new_per_day=self.new_per_day,
            review_per_day=self.review_per_day,
            mix_mode=self.mix_mode,
            bury_immediate_repeat=self.bury_immediate_repeat,
            overlay_interval=self.overlay_interval,
            unlock_policy=self.unlock_policy,
            escape_valve=self.escape_valve,
        )

    def resolve_tz(self) -> tzinfo | None:
        return ZoneInfo(self.timezone) if self.timezone else None


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/reviewgate/config.toml (if exists)
    3. Environment variables (REVIEWGATE_*)
    4. cli_overrides (non-None values passed from Typer or the API)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)


class SettingsConfigProvider(ConfigProvider):
    """Serves policy from an AppConfig instance."""

    def __init__(self, config: AppConfig):
        self.config = config

    async def learning_preferences(self) -> LearningPreferencesConfig:
        return self.config.to_preferences()

    async def blocked_apps(self) -> frozenset[str]:
        return frozenset(self.config.blocked_apps)

    async def gate_enabled(self) -> bool:
        return self.config.enabled

"""Settings model for the sync service."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .config_models import RateLimitConfig
from .error_codes import ErrorCode
from .exceptions import ConfigurationError


class Config(BaseSettings):
    """Service configuration using pydantic-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    # Mochi
    mochi_api_key: str = Field(default="", description="Mochi API key")
    mochi_base_url: str = Field(
        default="https://app.mochi.cards/api", description="Mochi API base URL"
    )
    request_timeout: float = Field(
        default=30.0, gt=0.0, description="Per-request timeout in seconds"
    )
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    # Logseq
    logseq_api_url: str = Field(
        default="http://127.0.0.1:12315/api",
        description="Logseq HTTP API server endpoint",
    )
    logseq_api_token: str = Field(
        default="", description="Authorization token of the Logseq API server"
    )
    graph_path: Path | None = Field(
        default=None,
        description="Graph directory used to resolve assets (queried from Logseq if unset)",
    )

    # Card building
    default_deck_name: str = Field(
        default="Logseq",
        description="Mochi deck used when a card has no deck property",
    )
    include_page_title: bool = Field(
        default=True, description="Include the page title in cards"
    )
    include_ancestor_blocks: bool = Field(
        default=True, description="Include ancestor blocks in cards"
    )
    card_tag: str = Field(default="card", description="Tag marking flashcard blocks")
    system_tag: str = Field(
        default="logseq", description="Tag applied to every synced Mochi card"
    )
    remote_id_property: str = Field(
        default="mochi-id", description="Block property holding the Mochi card id"
    )

    # Runtime
    run_mode: Literal["apply", "dry-run"] = Field(
        default="apply", description="Run mode: 'apply' or 'dry-run'"
    )
    delete_orphans: bool = Field(
        default=True,
        description="Delete Mochi cards whose Logseq block no longer exists",
    )
    write_back_ids: bool = Field(
        default=True,
        description="Store the assigned Mochi id as a property on the block",
    )

    # Storage and logging (relative to data_dir)
    data_dir: Path = Field(default=Path(), description="Directory for state and logs")
    db_path: Path = Field(
        default=Path(".sync_state.db"),
        description="Path to the id map database (relative to data_dir)",
    )
    log_level: str = Field(default="INFO", description="Log level")
    log_dir: Path = Field(
        default=Path("logs"), description="Log directory (relative to data_dir)"
    )

    @field_validator("data_dir", "db_path", "log_dir", mode="before")
    @classmethod
    def parse_path(cls, v: Any) -> Path:
        """Convert string to Path."""
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v
        if v is None:
            return Path()
        msg = f"Path field must be string or Path, got {type(v).__name__}"
        raise ValueError(msg)

    @field_validator("graph_path", mode="before")
    @classmethod
    def parse_graph_path(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return Path(str(v)).expanduser()

    @field_validator("card_tag", "system_tag", "remote_id_property")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        v = v.strip().lstrip("#")
        if not v:
            msg = "identifier settings cannot be empty"
            raise ValueError(msg)
        return v

    @property
    def dry_run(self) -> bool:
        return self.run_mode == "dry-run"

    def validate_config(self) -> Config:
        """Validate required settings before any network call."""
        if not self.mochi_api_key.strip():
            msg = "Mochi API key is not set"
            raise ConfigurationError(
                msg,
                suggestion=(
                    "Set MOCHI_API_KEY or mochi_api_key in config.yaml "
                    "(find it at https://app.mochi.cards/settings)"
                ),
                error_code=ErrorCode.CFG_MISSING_API_KEY.value,
            )
        if not self.default_deck_name.strip():
            msg = "Default deck name is not set"
            raise ConfigurationError(
                msg,
                suggestion="Set DEFAULT_DECK_NAME or default_deck_name in config.yaml",
                error_code=ErrorCode.CFG_MISSING_DECK.value,
            )
        if self.graph_path is not None and not self.graph_path.is_dir():
            msg = f"graph_path is not a directory: {self.graph_path}"
            raise ConfigurationError(
                msg,
                suggestion="Point graph_path at the folder containing pages/ and assets/",
                error_code=ErrorCode.CFG_INVALID.value,
            )
        return self

    def get_data_path(self, relative_path: Path | str | None = None) -> Path:
        """Get absolute path within data_dir."""
        data_dir = self.data_dir
        if not data_dir.is_absolute():
            data_dir = Path.cwd() / data_dir
        data_dir = data_dir.resolve()

        if relative_path is None:
            return data_dir
        return data_dir / relative_path

    def get_db_path(self) -> Path:
        """Get absolute path to the id map database."""
        return self.get_data_path(self.db_path)

    def get_log_dir(self) -> Path:
        """Get absolute path to log directory."""
        return self.get_data_path(self.log_dir)

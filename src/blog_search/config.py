"""Centralized configuration for blog-search using Pydantic Settings."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import __version__


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Every value can be overridden through the environment (case-insensitive)
    or a local ``.env`` file. Search tuning knobs live next to the API and
    logging settings so a single object can be injected everywhere.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",  # Ignore extra env vars not defined in model
    )

    # Content source
    posts_path: str = Field(default=".velite/posts.json", description="Path to the velite posts.json dataset")
    include_drafts: bool = Field(default=False, description="Keep unpublished posts when loading the dataset")
    site_url: str = Field(default="", description="Public site URL used to build canonical post links")
    site_version: str = Field(default=__version__, description="Version reported by the health endpoint")

    # Fuzzy matching
    search_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Maximum error ratio for a fuzzy match (0 = exact, 1 = match anything)",
    )
    search_min_match_char_length: int = Field(
        default=2, ge=1, description="Shortest query (and highlight range) that counts as a match"
    )
    search_weight_title: float = Field(default=0.3, gt=0.0, description="Relative weight of the title field")
    search_weight_description: float = Field(
        default=0.25, gt=0.0, description="Relative weight of the description field"
    )
    search_weight_body: float = Field(default=0.3, gt=0.0, description="Relative weight of the body field")
    search_weight_tags: float = Field(default=0.15, gt=0.0, description="Relative weight of the tags field")
    search_result_limit: int = Field(default=20, ge=1, description="Maximum results returned by the search API")

    # Executor and cache
    search_debounce_ms: int = Field(default=200, ge=0, description="Quiet period before a typed query runs")
    search_cache_max_size: int = Field(default=50, ge=1, description="Maximum cached queries")
    search_cache_max_age_seconds: float = Field(default=300.0, gt=0.0, description="Cached query time-to-live")

    # Server settings
    api_host: str = Field(default="127.0.0.1", description="HTTP API host")
    api_port: int = Field(default=3001, ge=1, le=65535, description="HTTP API port")

    # Logging and tracing
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON log lines")
    otlp_endpoint: str = Field(default="", description="OTLP/HTTP trace endpoint; export is disabled when empty")

    @field_validator("site_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    def field_weights(self) -> dict[str, float]:
        """Get the per-field search weights keyed by post field name."""
        return {
            "title": self.search_weight_title,
            "description": self.search_weight_description,
            "body": self.search_weight_body,
            "tags": self.search_weight_tags,
        }

    @property
    def debounce_seconds(self) -> float:
        return self.search_debounce_ms / 1000

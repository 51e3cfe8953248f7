from copy import deepcopy
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class ServerSettings(BaseSettings):
    """Server config"""

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    tz: str = "UTC"

    model_config = ConfigDict(extra="allow", env_prefix="SERVER_")

    @field_validator("tz", mode="before")
    @classmethod
    def _coerce_timezone(cls, value):
        if value is None or value == "":
            return "UTC"
        return str(value)


class DatabaseSettings(BaseSettings):
    """Async SQLAlchemy database config.

    ``url`` is read from ``DATABASE_URL`` and must use an async driver
    (``sqlite+aiosqlite://`` or ``postgresql+asyncpg://``).
    """

    url: str = "sqlite+aiosqlite:///./data/agentchat.db"
    echo: bool = False
    create_tables_on_start: bool = True

    model_config = ConfigDict(extra="allow", env_prefix="DATABASE_")


class SecuritySettings(BaseSettings):
    """Session token verification.

    The sign-in layer issues HS256 bearer tokens signed with ``SESSION_SECRET``.
    """

    secret: str = "change-me"
    algorithm: str = "HS256"
    token_ttl_minutes: int = 60 * 24

    model_config = ConfigDict(extra="allow", env_prefix="SESSION_")


class AgentSettings(BaseSettings):
    """Tool-calling agent config.

    Attributes:
        tools_enabled: Global switch (AGENT_TOOLS_ENABLED)
        providers: Providers allowed to use the agent path
        timezone: IANA zone used to anchor relative dates in the system prompt
        timeout_seconds: Wall-clock limit for one agent run
        history_window: Number of trailing messages forwarded to the model
        max_text_chars: Per-message truncation limit
        recursion_limit: Max graph steps of one run
    """

    tools_enabled: bool = False
    providers: List[str] = Field(default_factory=lambda: ["openai"])
    timezone: str = "America/New_York"
    timeout_seconds: float = Field(default=45, gt=0, le=600)
    history_window: int = Field(default=12, ge=1, le=100)
    max_text_chars: int = Field(default=4000, ge=100)
    recursion_limit: int = Field(default=12, ge=2)

    model_config = ConfigDict(extra="allow", env_prefix="AGENT_")


class ProviderKeys(BaseSettings):
    """API keys for model and generation providers."""

    openai_api_key: str = ""
    xai_api_key: str = ""
    getimg_api_key: str = ""
    replicate_api_key: str = ""

    model_config = ConfigDict(extra="allow")

    def key_for(self, provider: str) -> str:
        return getattr(self, f"{provider}_api_key", "") or ""


class GoogleSettings(BaseSettings):
    """Google OAuth client and Calendar API config."""

    client_id: str = ""
    client_secret: str = ""
    token_url: str = "https://oauth2.googleapis.com/token"
    calendar_api_base: str = "https://www.googleapis.com/calendar/v3"
    refresh_buffer_seconds: int = 120
    request_timeout: float = 20.0

    model_config = ConfigDict(extra="allow", env_prefix="GOOGLE_")


class MediaCacheSettings(BaseSettings):
    """In-memory image cache bounds."""

    max_entries: int = Field(default=256, ge=1)
    ttl_seconds: Optional[float] = Field(default=86400, description="None disables expiry")

    model_config = ConfigDict(extra="allow", env_prefix="MEDIA_CACHE_")


class EventRelaySettings(BaseSettings):
    """SSE relay config."""

    keepalive_seconds: float = Field(default=15, gt=0)
    queue_size: int = Field(default=100, ge=1)

    model_config = ConfigDict(extra="allow", env_prefix="EVENT_RELAY_")


class LogSettings(BaseSettings):
    """Loguru sinks"""

    log_level: str = "INFO"
    log_dir: str = "logs"
    log_file: str = "agentchat.log"

    model_config = ConfigDict(extra="allow", env_prefix="LOG_")


class Settings(BaseSettings):
    """Main application config"""

    server: ServerSettings = Field(default_factory=ServerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    providers: ProviderKeys = Field(default_factory=ProviderKeys)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    media_cache: MediaCacheSettings = Field(default_factory=MediaCacheSettings)
    event_relay: EventRelaySettings = Field(default_factory=EventRelaySettings)
    log: LogSettings = Field(default_factory=LogSettings)

    # Raw config dict
    _raw_config: Dict[str, Any] = {}

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "server": {"host": "0.0.0.0", "port": 8000},
                "agent": {"tools_enabled": True, "providers": ["openai"]},
            }
        },
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Build Settings from a merged YAML dict.

        YAML values win, anything a section leaves out is read from the
        environment by that section's own ``env_prefix``.
        """

        def section(key: str) -> Dict[str, Any]:
            value = data.get(key) or {}
            return value if isinstance(value, dict) else {}

        settings = cls(
            server=ServerSettings(**section("server")),
            database=DatabaseSettings(**section("database")),
            security=SecuritySettings(**section("security")),
            agent=AgentSettings(**section("agent")),
            providers=ProviderKeys(**section("providers")),
            google=GoogleSettings(**section("google")),
            media_cache=MediaCacheSettings(**section("media_cache")),
            event_relay=EventRelaySettings(**section("event_relay")),
            log=LogSettings(**section("log")),
        )
        settings._raw_config = deepcopy(data)
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return self._raw_config or self.model_dump()

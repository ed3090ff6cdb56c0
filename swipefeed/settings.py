import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # FANZA (DMM affiliate JSON API) credentials
    fanza_api_id: str = Field(default="", alias="FANZA_API_ID")
    fanza_affiliate_id: str = Field(default="", alias="FANZA_AFFILIATE_ID")
    fanza_rate_limit: int = Field(default=10, alias="FANZA_RATE_LIMIT")
    fanza_timeout: float = Field(default=10.0, alias="FANZA_TIMEOUT")

    # DUGA (XML web service) credentials
    duga_app_id: str = Field(default="", alias="DUGA_APP_ID")
    duga_agent_id: str = Field(default="", alias="DUGA_AGENT_ID")
    duga_banner_id: str = Field(default="01", alias="DUGA_BANNER_ID")
    duga_rate_limit: int = Field(default=60, alias="DUGA_RATE_LIMIT")
    duga_timeout: float = Field(default=15.0, alias="DUGA_TIMEOUT")

    # Ephemeral cache
    cache_ttl_seconds: int = Field(default=300, alias="CACHE_TTL_SECONDS")
    cache_max_size: int = Field(default=500, alias="CACHE_MAX_SIZE")

    # Persistent store retention
    retention_days: int = Field(default=30, alias="RETENTION_DAYS")
    retention_interval_hours: int = Field(default=24, alias="RETENTION_INTERVAL_HOURS")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./swipefeed.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # API server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    expose_provenance: bool = Field(default=False, alias="EXPOSE_PROVENANCE")


global_settings = Settings.model_validate(dict(os.environ))

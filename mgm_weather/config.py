from typing import List, Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import __version__

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class AppSettings(BaseSettings):
    app_name: str = "Karaman Weather API"
    app_version: str = __version__
    app_env: str = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(3000, validation_alias=AliasChoices("APP_PORT", "PORT"))

    # Constrained runtime (Vercel sets VERCEL=1)
    serverless: bool = Field(False, validation_alias=AliasChoices("APP_SERVERLESS", "VERCEL"))
    chromium_executable_path: Optional[str] = None

    # Upstream
    target_url: str = "https://www.mgm.gov.tr/tahmin/il-ve-ilceler.aspx?il=Karaman"
    site_origin: str = "https://www.mgm.gov.tr"
    api_base_url: str = "https://servis.mgm.gov.tr"
    merkez_id: str = "97001"
    station_id: str = "17246"
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "tr-TR,tr;q=0.9,en-US;q=0.8,en;q=0.7"

    # Extraction
    strategy: Literal["scope", "dom", "network", "direct"] = "scope"
    cache_ttl_seconds: int = Field(300, gt=0)

    # Wait policy
    wait_until: Literal["networkidle", "load", "domcontentloaded"] = "networkidle"
    navigation_timeout_s: Optional[float] = Field(None, gt=0)
    ready_selector: Optional[str] = "[ng-controller]"
    ready_timeout_s: float = Field(10.0, ge=0)
    text_selector: Optional[str] = None
    text_timeout_s: float = Field(15.0, ge=0)
    settle_delay_s: float = Field(0.0, ge=0)
    poll_interval_s: float = Field(0.5, gt=0)
    poll_backoff: float = Field(1.0, ge=1.0)
    poll_timeout_s: float = Field(5.0, ge=0)

    cors_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("serverless", mode="before")
    @classmethod
    def _truthy_flag(cls, v):
        # VERCEL holds arbitrary non-empty values
        if isinstance(v, str):
            return v.strip().lower() not in ("", "0", "false", "no", "off")
        return v

    @property
    def effective_navigation_timeout_s(self) -> float:
        if self.navigation_timeout_s is not None:
            return self.navigation_timeout_s
        return 30.0 if self.serverless else 60.0

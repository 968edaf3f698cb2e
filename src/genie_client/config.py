"""Configuration objects for the Genie client."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

RESORT_DEFAULTS = {
    "WDW": {
        "base_url": "https://disneyworld.disney.go.com",
        "timezone": "America/New_York",
    },
    "DLR": {
        "base_url": "https://disneyland.disney.go.com",
        "timezone": "America/Los_Angeles",
    },
}


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    resort: Literal["WDW", "DLR"] = Field("WDW", alias="GENIE_RESORT")
    base_url: Optional[str] = Field(None, alias="GENIE_BASE_URL")
    timezone: Optional[str] = Field(None, alias="GENIE_TIMEZONE")
    swid: str = Field("", alias="GENIE_SWID")
    access_token: SecretStr = Field(SecretStr(""), alias="GENIE_ACCESS_TOKEN")
    park_day_rollover_hour: int = Field(3, alias="GENIE_PARK_DAY_ROLLOVER_HOUR", ge=0, le=23)
    data_dir: Path = Field(Path.home() / ".genie-client", alias="GENIE_DATA_DIR")
    catalog_path: Optional[Path] = Field(None, alias="GENIE_CATALOG_PATH")
    timeout_seconds: float = Field(30.0, alias="GENIE_TIMEOUT_SECONDS")
    max_retries: int = Field(3, alias="GENIE_MAX_RETRIES", ge=1)

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def apply_resort_defaults(self) -> "Settings":
        """Fill in the host and timezone for the selected resort."""
        defaults = RESORT_DEFAULTS[self.resort]
        if not self.base_url:
            self.base_url = defaults["base_url"]
        if not self.timezone:
            self.timezone = defaults["timezone"]
        return self

    @property
    def store_path(self) -> Path:
        """Location of the key-value store file."""
        return self.data_dir / "kvdb.json"

from __future__ import annotations
from pathlib import Path
from typing import Optional
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from .errors import SettingsError

class Settings(BaseSettings):
    download_base_url: str = Field(default="http://www.astroboa.org/releases/astroboa/latest", alias="ASTROBOA_DOWNLOAD_URL")
    conf_file: Optional[Path] = Field(default=None, alias="ASTROBOA_CONF_FILE")
    service_user: str = Field(default="astroboa", alias="ASTROBOA_USER")

    java_bin: str = Field(default="java", alias="JAVA_BIN")
    java_version_pattern: str = Field(default=r'version "1\.[67]', alias="JAVA_VERSION_PATTERN")

    http_timeout: float = Field(default=60.0, alias="HTTP_TIMEOUT")
    command_timeout: float = Field(default=120.0, alias="COMMAND_TIMEOUT")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    log_dir: Path = Field(default=Path.home() / ".astroboa-cli" / "logs", alias="LOG_DIR")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)


def load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        bad = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise SettingsError(f"Invalid environment settings ({bad}): {e}") from e

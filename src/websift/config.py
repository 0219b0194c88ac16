"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (WEBSIFT__FETCH__TIMEOUT_MS=15000)
  2. websift.yaml           (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults. Nothing in
here is persisted: caches and sessions live in memory for the process lifetime.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from websift import __version__

DEFAULT_USER_AGENT = f"websift/{__version__}"


def _find_config_file() -> str | None:
    """Return the path of the first websift.yaml found, or None."""
    candidates = [
        Path("websift.yaml"),
        Path(platformdirs.user_config_dir("websift")) / "websift.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080
    auth_enabled: bool = False
    auth_key: str = ""


class SearchSettings(BaseModel):
    searxng_url: str = "http://localhost:8080"
    auth_username: str = ""
    auth_password: str = ""
    timeout_ms: int = Field(default=10_000, ge=1)
    max_results: int = Field(default=10, ge=1)


class FetchSettings(BaseModel):
    timeout_ms: int = Field(default=30_000, ge=1)
    min_timeout_ms: int = Field(default=1_000, ge=1)
    enable_robots_txt: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    # 0 disables the cap and launches every URL of a batch at once.
    max_batch_concurrency: int = Field(default=10, ge=0)


class ProxySettings(BaseModel):
    http_proxy: str = ""
    https_proxy: str = ""
    no_proxy: str = ""  # Comma-separated hostnames fetched without the proxy

    def no_proxy_hosts(self) -> list[str]:
        return [host.strip() for host in self.no_proxy.split(",") if host.strip()]


class CacheSettings(BaseModel):
    search_max_entries: int = Field(default=100, ge=1)
    page_max_entries: int = Field(default=200, ge=1)
    ttl_seconds: int = Field(default=3600, ge=1)
    robots_ttl_hours: int = Field(default=24, ge=1)


class SessionSettings(BaseModel):
    max_tracked_queries: int = Field(default=20, ge=1)
    max_tracked_urls: int = Field(default=50, ge=1)
    max_age_minutes: int = Field(default=60, ge=1)
    sweep_interval_minutes: int = Field(default=30, ge=1)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: WEBSIFT__SERVER__PORT=9090
        env_prefix="WEBSIFT__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    search: SearchSettings = SearchSettings()
    fetch: FetchSettings = FetchSettings()
    proxy: ProxySettings = ProxySettings()
    cache: CacheSettings = CacheSettings()
    session: SessionSettings = SessionSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )

    def masked_dump(self) -> dict:
        """Settings as a JSON-safe dict with credentials replaced by ``***``."""
        data = self.model_dump(mode="json")
        for group, key in (
            ("search", "auth_password"),
            ("server", "auth_key"),
        ):
            if data[group][key]:
                data[group][key] = "***"
        for key in ("http_proxy", "https_proxy"):
            data["proxy"][key] = _mask_url_credentials(data["proxy"][key])
        return data


def _mask_url_credentials(url: str) -> str:
    """``http://user:pw@host:3128`` → ``http://***@host:3128``."""
    if "@" not in url or "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    return f"{scheme}://***@{rest.rsplit('@', 1)[1]}"

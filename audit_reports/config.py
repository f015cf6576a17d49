"""Configuration objects and constants for report generation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

PACKAGE_ROOT = Path(__file__).resolve().parent
DEFAULT_TEMPLATES_DIR = PACKAGE_ROOT / "templates"
DEFAULT_ASSETS_DIR = PACKAGE_ROOT / "assets"
DEFAULT_OUTPUT_DIR = Path("output")
DEFAULT_PORT = 3000
DEFAULT_LIVE_RELOAD_PORT = 3001
DEFAULT_DOWNLOAD_TIMEOUT = 30.0
DEFAULT_CSS_VERSIONS_KEPT = 3
DEV_CACHE_FILENAME = "dev-cache.json"


class ConfigurationError(RuntimeError):
    """Raised when required settings are missing or malformed."""


def _is_truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AirtableSettings:
    """Credentials and table coordinates for the Airtable REST API."""

    api_key: str
    base_id: str
    table_name: str

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AirtableSettings":
        env = os.environ if environ is None else environ
        values = {
            name: (env.get(name) or "").strip()
            for name in ("AIRTABLE_API_KEY", "AIRTABLE_BASE_ID", "AIRTABLE_TABLE_NAME")
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ConfigurationError(
                "Missing required environment variable(s): "
                + ", ".join(missing)
                + ". Set them in your shell or in a .env file."
            )
        return cls(
            api_key=values["AIRTABLE_API_KEY"],
            base_id=values["AIRTABLE_BASE_ID"],
            table_name=values["AIRTABLE_TABLE_NAME"],
        )


@dataclass
class ReportConfig:
    """Top-level settings that control fetching, rendering and serving."""

    output_root: Path
    templates_dir: Path = DEFAULT_TEMPLATES_DIR
    assets_dir: Path = DEFAULT_ASSETS_DIR
    dev_mode: bool = False
    port: int = DEFAULT_PORT
    live_reload_port: int = DEFAULT_LIVE_RELOAD_PORT
    download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT
    css_versions_kept: int = DEFAULT_CSS_VERSIONS_KEPT
    default_record_id: Optional[str] = None

    @property
    def cache_path(self) -> Path:
        return self.output_root / DEV_CACHE_FILENAME

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ReportConfig":
        env = os.environ if environ is None else environ
        output_raw = (env.get("OUTPUT_DIR") or "").strip()
        dev_mode = _is_truthy(env.get("DEV")) or (
            (env.get("APP_ENV") or "").strip().lower() == "development"
        )
        try:
            port = int(env.get("PORT") or DEFAULT_PORT)
            live_reload_port = int(env.get("LIVE_RELOAD_PORT") or DEFAULT_LIVE_RELOAD_PORT)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid port setting: {exc}") from exc
        return cls(
            output_root=Path(output_raw or DEFAULT_OUTPUT_DIR).resolve(),
            dev_mode=dev_mode,
            port=port,
            live_reload_port=live_reload_port,
            default_record_id=(env.get("DEFAULT_RECORD_ID") or "").strip() or None,
        )

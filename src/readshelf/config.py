"""Configuration management via .env file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from readshelf.adapters.base import AdapterSettings


def _xdg_data_home() -> Path:
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def _xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


@dataclass
class AppConfig:
    # Paths
    data_dir: Path = field(default_factory=lambda: _xdg_data_home() / "readshelf")
    config_dir: Path = field(default_factory=lambda: _xdg_config_home() / "readshelf")
    db_path: Path = field(init=False)
    log_path: Path = field(init=False)

    # Server
    server_url: str = "http://localhost:8080"
    session_token: str = ""
    request_timeout: float = 30.0
    sync_interval: float = 60.0  # seconds between background flushes

    # Reader
    chars_per_location: int = 1024
    pdf_render_scale: float = 1.5

    def __post_init__(self) -> None:
        self.db_path = self.data_dir / "readshelf.db"
        self.log_path = self.data_dir / "readshelf.log"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

    @property
    def api_base(self) -> str:
        return f"{self.server_url.rstrip('/')}/api"

    def adapter_settings(self) -> AdapterSettings:
        return AdapterSettings(
            chars_per_location=self.chars_per_location,
            pdf_render_scale=self.pdf_render_scale,
        )


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """Load config from .env file. Searches CWD then config dir."""
    search_paths = [
        env_path,
        Path.cwd() / ".env",
        _xdg_config_home() / "readshelf" / ".env",
        Path.home() / ".env",
    ]
    for p in search_paths:
        if p and p.exists():
            load_dotenv(p)
            break

    defaults = AppConfig()
    return AppConfig(
        server_url=os.getenv("READSHELF_SERVER_URL", defaults.server_url),
        session_token=os.getenv("READSHELF_SESSION_TOKEN", defaults.session_token),
        request_timeout=float(
            os.getenv("READSHELF_REQUEST_TIMEOUT", defaults.request_timeout)
        ),
        sync_interval=float(
            os.getenv("READSHELF_SYNC_INTERVAL", defaults.sync_interval)
        ),
        chars_per_location=int(
            os.getenv("READSHELF_CHARS_PER_LOCATION", defaults.chars_per_location)
        ),
        pdf_render_scale=float(
            os.getenv("READSHELF_PDF_RENDER_SCALE", defaults.pdf_render_scale)
        ),
    )

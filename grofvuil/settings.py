"""
Settings for the command line client.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Where the API lives and where local state is kept."""

    api_url: str = Field(
        default="http://localhost:8000/api",
        alias="GROFVUIL_API_URL",
        description="Base URL of the Grofvuil API, including the path prefix",
    )
    home: Path = Field(
        default=Path.home() / ".grofvuil",
        alias="GROFVUIL_HOME",
        description="Directory holding the session and the local report store",
    )
    timeout: float = Field(
        default=10.0,
        alias="GROFVUIL_TIMEOUT",
        description="HTTP timeout in seconds",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "populate_by_name": True,
    }

    @property
    def reports_file(self) -> Path:
        return self.home / "reports.json"

    @property
    def session_file(self) -> Path:
        return self.home / "session.json"


_settings: Optional[ClientSettings] = None


def get_client_settings() -> ClientSettings:
    global _settings
    if _settings is None:
        _settings = ClientSettings()
    return _settings


def reset_client_settings() -> None:
    global _settings
    _settings = None

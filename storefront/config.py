"""
Runtime configuration and logging setup.

Settings are read from environment variables once, when the
application is built. Nothing else in the package reads the
environment directly.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field


DEFAULT_SESSION_FILE = Path.cwd() / "data" / "auth-store.json"
DEFAULT_PAGE_SIZE = 8
DEFAULT_MOCK_LATENCY = 0.3


class Settings(BaseModel):
    """Application settings.

    ``api_base`` switches the session store between the in-memory mock
    backend (empty) and a real HTTP backend (non-empty). ``dev_auth``
    controls whether the identity-injection routes exist at all.
    """

    api_base: str = ""
    environment: str = "development"
    show_dev_auth: bool = False
    session_file: Path = DEFAULT_SESSION_FILE
    mock_latency: float = Field(default=DEFAULT_MOCK_LATENCY, ge=0)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, gt=0)
    log_level: str = "INFO"

    @property
    def use_mock(self) -> bool:
        return not self.api_base

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def dev_auth(self) -> bool:
        return self.show_dev_auth or not self.is_production

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        values = {
            "api_base": (env.get("STOREFRONT_API_BASE") or "").strip().rstrip("/"),
            "environment": env.get("STOREFRONT_ENV") or "development",
            "show_dev_auth": env.get("STOREFRONT_SHOW_DEV_AUTH") == "1",
            "log_level": (env.get("LOG_LEVEL") or "INFO").upper(),
        }
        if env.get("STOREFRONT_SESSION_FILE"):
            values["session_file"] = Path(env["STOREFRONT_SESSION_FILE"])
        if env.get("STOREFRONT_MOCK_LATENCY"):
            values["mock_latency"] = float(env["STOREFRONT_MOCK_LATENCY"])
        if env.get("STOREFRONT_PAGE_SIZE"):
            values["page_size"] = int(env["STOREFRONT_PAGE_SIZE"])
        return cls(**values)


def setup_logging(level: str = "INFO", format: Optional[str] = None) -> None:
    """Configure the root logger with a single console handler.

    Calling this more than once replaces the previous handler instead of
    stacking duplicates.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(
        format or "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    root_logger.addHandler(stream_handler)

"""
Centralised configuration using Pydantic settings.

This module defines a ``Settings`` class which encapsulates
configuration for the scenario runner. Environment variables can
override defaults defined here by creating a ``.env`` file at the
project root or by exporting variables before starting a run.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runner configuration loaded from environment variables.

    ``DEV_BROWSER_URL``: HTTP endpoint of the long-lived browser server
    which owns the browser session and its named pages.
    ``SCREENSHOT_DIR``: Prefix applied to screenshot paths that are not
    absolute.
    ``WAIT_TIMEOUT_MS`` / ``ACTION_TIMEOUT_MS``: Fallback timeouts used
    when a step does not supply its own.
    ``STEP_LOG_PATH``: Optional JSONL file receiving one line per
    recorded step result.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DEV_BROWSER_URL: str = "http://localhost:9222"
    CONNECT_TIMEOUT_S: float = 5.0

    SCREENSHOT_DIR: str = "tmp"
    DEFAULT_PAGE: str = "main"

    # Explicit element/URL/load waits
    WAIT_TIMEOUT_MS: int = 10000
    # click/fill and modal interactions
    ACTION_TIMEOUT_MS: int = 5000

    LOG_LEVEL: str = "INFO"
    STEP_LOG_PATH: str = ""


settings = Settings()

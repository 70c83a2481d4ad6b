"""
Runtime configuration
Read from the environment, optionally seeded from a .env file
"""

import os
import pathlib
import shlex
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel


DEFAULT_BASE_URL = "http://127.0.0.1:8080"
DEFAULT_NL_DIR = "tests/md"
DEFAULT_ARTIFACTS_DIR = "artifacts"
DEFAULT_SERVER_COMMAND = "npx -y @playwright/mcp@0.0.37"

TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUTHY


class Settings(BaseModel):
    """Settings for one scenario run"""
    base_url: str = DEFAULT_BASE_URL
    nl_dir: str = DEFAULT_NL_DIR
    artifacts_dir: str = DEFAULT_ARTIFACTS_DIR
    save_html: bool = False
    debug: bool = False
    server_command: List[str] = shlex.split(DEFAULT_SERVER_COMMAND)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Build settings from environment variables (.env in the working directory by default)"""
        load_dotenv(env_file or pathlib.Path.cwd() / ".env")

        command = os.getenv("MCP_SERVER_COMMAND", "").strip() or DEFAULT_SERVER_COMMAND
        return cls(
            base_url=os.getenv("APP_BASE") or DEFAULT_BASE_URL,
            nl_dir=os.getenv("NL_DIR") or DEFAULT_NL_DIR,
            artifacts_dir=os.getenv("ARTIFACTS_DIR") or DEFAULT_ARTIFACTS_DIR,
            save_html=env_flag("SAVE_HTML"),
            debug=env_flag("DEBUG"),
            server_command=shlex.split(command),
        )

"""Configuration management for pybuildr.

Values are read from environment variables first and then from
``~/.config/pybuildr/config``, a simple ``KEY=value`` file.
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"

TOKEN_KEY = "GITHUB_TOKEN"
API_URL_KEY = "GITHUB_API_URL"
STATE_DIR_KEY = "PYBUILDR_STATE_DIR"
DEFAULT_USER_KEY = "PYBUILDR_DEFAULT_USER"


class Config:
    """Configuration loaded from the environment and the config file."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ~/.config/pybuildr
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "pybuildr"
        self.config_dir = config_dir
        self.config_file = self.config_dir / "config"
        self._file_values = self._load_config_file()

    def _load_config_file(self) -> dict[str, str]:
        """Read ``KEY=value`` pairs from the config file.

        Returns:
            Mapping of keys to values, empty when the file does not exist
        """
        values: dict[str, str] = {}
        if not self.config_file.exists():
            return values

        try:
            with open(self.config_file, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip()] = value.strip().strip('"').strip("'")
        except OSError as e:
            logger.warning(f"Failed to read config file {self.config_file}: {e}")
        return values

    def _get(self, key: str) -> Optional[str]:
        return os.environ.get(key) or self._file_values.get(key) or None

    @property
    def token(self) -> Optional[str]:
        """GitHub token used for API calls."""
        return self._get(TOKEN_KEY)

    @property
    def api_url(self) -> str:
        """Base URL of the GitHub REST API."""
        return (self._get(API_URL_KEY) or DEFAULT_API_URL).rstrip("/")

    @property
    def state_dir(self) -> Path:
        """Directory where workspace documents are stored."""
        value = self._get(STATE_DIR_KEY)
        if value:
            return Path(value).expanduser()
        return self.config_dir / "state"

    def get_default_user(self) -> str:
        """Get the user id that owns workspaces when none is given."""
        return self._get(DEFAULT_USER_KEY) or "default"

    def is_configured(self) -> bool:
        """Check whether a token is available."""
        return self.token is not None

    def get_config_path(self) -> Path:
        """Get the path of the config file."""
        return self.config_file

    def save_token(self, token: str) -> None:
        """Store a GitHub token in the config file.

        Other keys already in the file are kept.

        Args:
            token: GitHub token to store
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self._file_values[TOKEN_KEY] = token

        with open(self.config_file, "w", encoding="utf-8") as f:
            for key, value in sorted(self._file_values.items()):
                f.write(f"{key}={value}\n")

        # Token file should only be readable by the owner
        self.config_file.chmod(0o600)


config = Config()
